"""Distance classification API endpoint."""
from fastapi import APIRouter

from app.api.deps import DB, CurrentUser
from app.core.exceptions import DistanceCategoryUnresolvable
from app.schemas.reference import ClassifyDistanceRequest, DistanceClassificationResponse
from app.services.address_classifier import AddressClassifier, load_reference_data


router = APIRouter()


@router.post("/classify", response_model=DistanceClassificationResponse)
async def classify_distance(
    data: ClassifyDistanceRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Classify origin/destination addresses into a distance category.
    Unclassifiable pairs return DistanceCategoryUnresolvable with the parsed addresses.
    """
    reference = await load_reference_data(db)
    result = AddressClassifier(reference).classify(data.origin_address, data.destination_address)

    if result.category is None:
        raise DistanceCategoryUnresolvable(diagnostics=result.diagnostics())

    return DistanceClassificationResponse(
        category=result.category,
        title=result.title,
        origin_state=result.origin.state_code,
        dest_state=result.destination.state_code,
        is_neighbor=result.is_neighbor,
        is_metro_pair=result.is_metro_pair,
        origin=result.origin.to_dict(),
        destination=result.destination.to_dict(),
    )

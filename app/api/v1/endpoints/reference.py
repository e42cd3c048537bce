"""Reference master API endpoints: modes, service types, distance slabs,
metro cities, state adjacency and weight slabs."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, status, Query

from app.api.deps import DB, CurrentUser, BillingUser
from app.models.reference import Mode, ServiceType
from app.schemas.reference import (
    CodeTitleCreate,
    CodeTitleResponse,
    DistanceSlabCreate,
    DistanceSlabResponse,
    MetroCityCreate,
    MetroCityResponse,
    StateNeighborCreate,
    StateNeighborResponse,
    WeightSlabCreate,
    WeightSlabUpdate,
    WeightSlabResponse,
    WeightSlabListResponse,
)
from app.services.reference_service import ReferenceService
from app.services.weight_slab_service import WeightSlabService


router = APIRouter()


# ============================================
# MODES / SERVICE TYPES
# ============================================

@router.get("/modes", response_model=List[CodeTitleResponse])
async def list_modes(
    db: DB,
    current_user: CurrentUser,
    is_active: Optional[bool] = Query(None),
):
    items = await ReferenceService(db).list_code_titles(Mode, is_active)
    return [CodeTitleResponse.model_validate(item) for item in items]


@router.post("/modes", response_model=CodeTitleResponse, status_code=status.HTTP_201_CREATED)
async def create_mode(data: CodeTitleCreate, db: DB, current_user: BillingUser):
    item = await ReferenceService(db).create_code_title(Mode, data)
    return CodeTitleResponse.model_validate(item)


@router.get("/service-types", response_model=List[CodeTitleResponse])
async def list_service_types(
    db: DB,
    current_user: CurrentUser,
    is_active: Optional[bool] = Query(None),
):
    items = await ReferenceService(db).list_code_titles(ServiceType, is_active)
    return [CodeTitleResponse.model_validate(item) for item in items]


@router.post("/service-types", response_model=CodeTitleResponse, status_code=status.HTTP_201_CREATED)
async def create_service_type(data: CodeTitleCreate, db: DB, current_user: BillingUser):
    item = await ReferenceService(db).create_code_title(ServiceType, data)
    return CodeTitleResponse.model_validate(item)


# ============================================
# DISTANCE SLABS / METRO CITIES / ADJACENCY
# ============================================

@router.get("/distance-slabs", response_model=List[DistanceSlabResponse])
async def list_distance_slabs(db: DB, current_user: CurrentUser):
    items = await ReferenceService(db).list_distance_slabs()
    return [DistanceSlabResponse.model_validate(item) for item in items]


@router.post("/distance-slabs", response_model=DistanceSlabResponse, status_code=status.HTTP_201_CREATED)
async def create_distance_slab(data: DistanceSlabCreate, db: DB, current_user: BillingUser):
    slab = await ReferenceService(db).create_distance_slab(data)
    return DistanceSlabResponse.model_validate(slab)


@router.get("/metro-cities", response_model=List[MetroCityResponse])
async def list_metro_cities(db: DB, current_user: CurrentUser):
    items = await ReferenceService(db).list_metro_cities()
    return [MetroCityResponse.model_validate(item) for item in items]


@router.post("/metro-cities", response_model=MetroCityResponse, status_code=status.HTTP_201_CREATED)
async def create_metro_city(data: MetroCityCreate, db: DB, current_user: BillingUser):
    city = await ReferenceService(db).create_metro_city(data)
    return MetroCityResponse.model_validate(city)


@router.get("/state-neighbors", response_model=List[StateNeighborResponse])
async def list_state_neighbors(
    db: DB,
    current_user: CurrentUser,
    state_code: Optional[str] = Query(None, max_length=5),
):
    items = await ReferenceService(db).list_state_neighbors(state_code)
    return [StateNeighborResponse.model_validate(item) for item in items]


@router.post("/state-neighbors", response_model=StateNeighborResponse, status_code=status.HTTP_201_CREATED)
async def create_state_neighbor(data: StateNeighborCreate, db: DB, current_user: BillingUser):
    pair = await ReferenceService(db).create_state_neighbor(data)
    return StateNeighborResponse.model_validate(pair)


# ============================================
# WEIGHT SLABS
# ============================================

@router.get("/weight-slabs", response_model=WeightSlabListResponse)
async def list_weight_slabs(
    db: DB,
    current_user: CurrentUser,
    is_active: Optional[bool] = Query(None),
):
    items, total = await WeightSlabService(db).list_slabs(is_active)
    return WeightSlabListResponse(
        items=[WeightSlabResponse.model_validate(item) for item in items],
        total=total,
    )


@router.get("/weight-slabs/lookup", response_model=WeightSlabResponse)
async def lookup_weight_slab(
    db: DB,
    current_user: CurrentUser,
    weight_grams: int = Query(..., ge=0),
):
    """Active slab whose [min, max) range contains weight_grams."""
    slab = await WeightSlabService(db).lookup(weight_grams)
    return WeightSlabResponse.model_validate(slab)


@router.post("/weight-slabs", response_model=WeightSlabResponse, status_code=status.HTTP_201_CREATED)
async def create_weight_slab(data: WeightSlabCreate, db: DB, current_user: BillingUser):
    slab = await WeightSlabService(db).create(data)
    return WeightSlabResponse.model_validate(slab)


@router.put("/weight-slabs/{slab_id}", response_model=WeightSlabResponse)
async def update_weight_slab(
    slab_id: uuid.UUID,
    data: WeightSlabUpdate,
    db: DB,
    current_user: BillingUser,
):
    slab = await WeightSlabService(db).update(slab_id, data)
    return WeightSlabResponse.model_validate(slab)


@router.delete("/weight-slabs/{slab_id}", response_model=WeightSlabResponse)
async def deactivate_weight_slab(slab_id: uuid.UUID, db: DB, current_user: BillingUser):
    """Weight slabs are never deleted, only deactivated."""
    slab = await WeightSlabService(db).deactivate(slab_id)
    return WeightSlabResponse.model_validate(slab)

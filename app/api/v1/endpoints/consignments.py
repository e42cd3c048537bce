"""Consignment row API endpoints: intake, listing and rate application."""
from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, status, Query

from app.api.deps import DB, CurrentUser, BillingUser
from app.schemas.consignment import (
    ConsignmentBulkCreate,
    ConsignmentRowResponse,
    ConsignmentListResponse,
    PriceConsignmentsRequest,
    PriceConsignmentsResponse,
    PricingOutcome,
)
from app.services.consignment_service import ConsignmentService


router = APIRouter()


@router.post("", response_model=List[ConsignmentRowResponse], status_code=status.HTTP_201_CREATED)
async def import_consignments(
    data: ConsignmentBulkCreate,
    db: DB,
    current_user: BillingUser,
):
    """Store already-parsed booking rows as unbilled consignments."""
    rows = await ConsignmentService(db).create_rows(data.rows)
    return [ConsignmentRowResponse.model_validate(row) for row in rows]


@router.get("", response_model=ConsignmentListResponse)
async def list_consignments(
    db: DB,
    current_user: CurrentUser,
    party_name: Optional[str] = Query(None),
    billed: Optional[bool] = Query(None),
    invoice_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=200),
):
    items, total = await ConsignmentService(db).list_rows(
        party_name=party_name,
        billed=billed,
        invoice_id=invoice_id,
        skip=(page - 1) * size,
        limit=size,
    )
    return ConsignmentListResponse(
        items=[ConsignmentRowResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post("/apply-rate", response_model=PriceConsignmentsResponse)
async def apply_rate_bulk(
    data: PriceConsignmentsRequest,
    db: DB,
    current_user: BillingUser,
):
    """Price each row; failures are reported per row and do not stop the batch."""
    outcomes = await ConsignmentService(db).price_rows(data.row_ids)
    results = [PricingOutcome(**outcome) for outcome in outcomes]
    priced = sum(1 for result in results if result.ok)
    return PriceConsignmentsResponse(priced=priced, failed=len(results) - priced, results=results)


@router.get("/{row_id}", response_model=ConsignmentRowResponse)
async def get_consignment(row_id: uuid.UUID, db: DB, current_user: CurrentUser):
    row = await ConsignmentService(db).get_row(row_id)
    return ConsignmentRowResponse.model_validate(row)


@router.post("/{row_id}/apply-rate", response_model=ConsignmentRowResponse)
async def apply_rate(row_id: uuid.UUID, db: DB, current_user: BillingUser):
    """Resolve and store calculated_amount / pricing_meta for one unbilled row."""
    row, _ = await ConsignmentService(db).price_row(row_id)
    return ConsignmentRowResponse.model_validate(row)

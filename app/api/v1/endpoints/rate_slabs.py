"""Party rate slab API endpoints: resolution, audited CRUD and audit log."""
from typing import List, Optional
import uuid
from math import ceil

from fastapi import APIRouter, Response, status, Query

from app.api.deps import DB, CurrentUser, BillingUser
from app.config import settings
from app.models.rate_slab import ShipmentType, RateAuditAction
from app.schemas.rate_slab import (
    RateSlabUpsert,
    RateSlabUpdate,
    RateSlabBatchUpsert,
    RateSlabResponse,
    RateSlabListResponse,
    RateAuditResponse,
    RateAuditListResponse,
    ResolveRateRequest,
    ResolvedRateResponse,
)
from app.services.rate_audit_service import RateAuditService
from app.services.rate_resolver import RateResolver
from app.services.rate_slab_registry import RateSlabRegistry


router = APIRouter()


# ============================================
# RESOLUTION
# ============================================

@router.post("/resolve", response_model=ResolvedRateResponse)
async def resolve_rate(
    data: ResolveRateRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Resolve the applicable rate slab for a shipment context and price it.
    Lookup failures return the failing step as error_kind with diagnostics.
    """
    resolved = await RateResolver(db).resolve_request(data)
    return ResolvedRateResponse(**resolved.to_response())


# ============================================
# AUDIT LOG
# ============================================

@router.get("/audits", response_model=RateAuditListResponse)
async def list_rate_audits(
    db: DB,
    current_user: CurrentUser,
    rate_slab_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=settings.AUDIT_PAGE_LIMIT),
):
    """Rate slab mutations, newest first."""
    items, total = await RateAuditService(db).list_audits(
        rate_slab_id=rate_slab_id,
        skip=(page - 1) * size,
        limit=size,
    )
    return RateAuditListResponse(
        items=[RateAuditResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


# ============================================
# RATE SLAB CRUD
# ============================================

@router.get("", response_model=RateSlabListResponse)
async def list_rate_slabs(
    db: DB,
    current_user: CurrentUser,
    party_id: Optional[uuid.UUID] = Query(None),
    shipment_type: Optional[ShipmentType] = Query(None),
    mode_id: Optional[uuid.UUID] = Query(None),
    service_type_id: Optional[uuid.UUID] = Query(None),
    distance_slab_id: Optional[uuid.UUID] = Query(None),
    weight_slab_id: Optional[uuid.UUID] = Query(None),
    is_active: Optional[bool] = Query(True),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    items, total = await RateSlabRegistry(db).list_slabs(
        party_id=party_id,
        shipment_type=shipment_type.value if shipment_type else None,
        mode_id=mode_id,
        service_type_id=service_type_id,
        distance_slab_id=distance_slab_id,
        weight_slab_id=weight_slab_id,
        is_active=is_active,
        skip=(page - 1) * size,
        limit=size,
    )
    return RateSlabListResponse(
        items=[RateSlabResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.post("", response_model=RateSlabResponse, status_code=status.HTTP_201_CREATED)
async def upsert_rate_slab(
    data: RateSlabUpsert,
    response: Response,
    db: DB,
    current_user: BillingUser,
):
    """
    Create a rate slab. If the business key already exists the existing row
    is updated and reactivated instead (200 rather than 201).
    """
    registry = RateSlabRegistry(db, changed_by=current_user.id)
    rate_slab, action = await registry.upsert(data)
    if action == RateAuditAction.UPDATE:
        response.status_code = status.HTTP_200_OK
    return RateSlabResponse.model_validate(rate_slab)


@router.post("/batch", response_model=List[RateSlabResponse])
async def batch_upsert_rate_slabs(
    data: RateSlabBatchUpsert,
    db: DB,
    current_user: BillingUser,
):
    """Upsert many rate slabs atomically."""
    registry = RateSlabRegistry(db, changed_by=current_user.id)
    results = await registry.batch_upsert(data.items)
    return [RateSlabResponse.model_validate(rate_slab) for rate_slab, _ in results]


@router.get("/{rate_slab_id}", response_model=RateSlabResponse)
async def get_rate_slab(rate_slab_id: uuid.UUID, db: DB, current_user: CurrentUser):
    rate_slab = await RateSlabRegistry(db).get(rate_slab_id)
    return RateSlabResponse.model_validate(rate_slab)


@router.put("/{rate_slab_id}", response_model=RateSlabResponse)
async def update_rate_slab(
    rate_slab_id: uuid.UUID,
    data: RateSlabUpdate,
    db: DB,
    current_user: BillingUser,
):
    """Update by id. Moving onto another row's key returns DuplicateMapping with conflict_id."""
    registry = RateSlabRegistry(db, changed_by=current_user.id)
    rate_slab = await registry.update(rate_slab_id, data)
    return RateSlabResponse.model_validate(rate_slab)


@router.delete("/{rate_slab_id}", response_model=RateSlabResponse)
async def deactivate_rate_slab(
    rate_slab_id: uuid.UUID,
    db: DB,
    current_user: BillingUser,
):
    """Soft delete: the row is deactivated, never removed."""
    registry = RateSlabRegistry(db, changed_by=current_user.id)
    rate_slab = await registry.deactivate(rate_slab_id)
    return RateSlabResponse.model_validate(rate_slab)

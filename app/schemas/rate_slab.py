"""Pydantic schemas for party rate slabs, rate resolution and the rate audit log."""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.base import BaseResponseSchema, BaseRequestSchema
from app.models.rate_slab import ShipmentType, RateAuditAction


# ==================== Rate Slab CRUD ====================

class RateSlabPricing(BaseRequestSchema):
    """Pricing fields shared by create and update."""
    rate: Decimal = Field(..., ge=0, decimal_places=2)
    fuel_pct: Decimal = Field(Decimal("0"), ge=0, le=100)
    packing: Decimal = Field(Decimal("0"), ge=0)
    handling: Decimal = Field(Decimal("0"), ge=0)
    gst_pct: Decimal = Field(Decimal("0"), ge=0, le=100)


class RateSlabUpsert(RateSlabPricing):
    """Create-or-update by business key. All six key fields are required."""
    party_id: UUID
    shipment_type: ShipmentType
    mode_id: UUID
    service_type_id: UUID
    distance_slab_id: UUID
    weight_slab_id: UUID


class RateSlabUpdate(BaseRequestSchema):
    """Update by id; a changed key may collide with another active row."""
    party_id: Optional[UUID] = None
    shipment_type: Optional[ShipmentType] = None
    mode_id: Optional[UUID] = None
    service_type_id: Optional[UUID] = None
    distance_slab_id: Optional[UUID] = None
    weight_slab_id: Optional[UUID] = None
    rate: Optional[Decimal] = Field(None, ge=0)
    fuel_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    packing: Optional[Decimal] = Field(None, ge=0)
    handling: Optional[Decimal] = Field(None, ge=0)
    gst_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class RateSlabBatchUpsert(BaseRequestSchema):
    items: List[RateSlabUpsert] = Field(..., min_length=1)


class RateSlabResponse(BaseResponseSchema):
    id: UUID
    party_id: UUID
    shipment_type: str
    mode_id: UUID
    service_type_id: UUID
    distance_slab_id: UUID
    weight_slab_id: UUID
    rate: Decimal
    fuel_pct: Decimal
    packing: Decimal
    handling: Decimal
    gst_pct: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RateSlabListResponse(BaseResponseSchema):
    items: List[RateSlabResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class RateAuditResponse(BaseResponseSchema):
    id: UUID
    party_rate_slab_id: UUID
    action: RateAuditAction
    before_data: Optional[dict] = None
    after_data: Optional[dict] = None
    changed_by: Optional[str] = None
    changed_at: datetime


class RateAuditListResponse(BaseResponseSchema):
    items: List[RateAuditResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


# ==================== Rate Resolution ====================

class ResolveRateRequest(BaseRequestSchema):
    """
    Shipment context for rate resolution.

    Either party_id or party_name identifies the party. Distance comes from
    the two addresses, an explicit distance_slab_id, or the region title
    fallback. Weight comes from weight_grams or an explicit weight_slab_id.
    """
    party_id: Optional[UUID] = None
    party_name: Optional[str] = None
    shipment_type: ShipmentType = ShipmentType.NON_DOCUMENT
    mode_code: str = Field(..., min_length=1)
    service_type_code: str = Field(..., min_length=1)

    origin_address: Optional[str] = None
    destination_address: Optional[str] = None
    region: Optional[str] = Field(None, description="Distance slab title used when addresses do not classify")
    distance_slab_id: Optional[UUID] = None

    weight_grams: Optional[int] = Field(None, ge=0)
    weight_slab_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_context(self):
        if self.party_id is None and not (self.party_name or "").strip():
            raise ValueError("party_id or party_name is required")
        if self.weight_grams is None and self.weight_slab_id is None:
            raise ValueError("weight_grams or weight_slab_id is required")
        return self


class RateBreakdown(BaseResponseSchema):
    base: Decimal
    fuel_pct: Decimal
    fuel: Decimal
    packing: Decimal
    handling: Decimal
    gst_pct: Decimal
    gst: Decimal
    subtotal: Decimal
    total: Decimal


class ResolvedRateResponse(BaseResponseSchema):
    rate_slab_id: UUID
    party_id: UUID
    shipment_type: str
    mode_id: UUID
    service_type_id: UUID
    distance_slab_id: UUID
    distance_category: Optional[str] = None
    distance_title: Optional[str] = None
    weight_slab_id: UUID
    weight_slab_name: Optional[str] = None
    breakdown: RateBreakdown

"""Pydantic schemas for consignment intake, listing and pricing."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field

from app.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseRequestSchema
from app.schemas.rate_slab import RateBreakdown


class ConsignmentRowCreate(BaseCreateSchema):
    """One already-parsed booking row."""
    consignment_no: Optional[str] = Field(None, max_length=50)
    booking_reference: Optional[str] = Field(None, max_length=100)
    booking_date: Optional[date] = None
    sender_name: Optional[str] = Field(None, max_length=200)
    sender_address: Optional[str] = None
    recipient_name: Optional[str] = Field(None, max_length=200)
    recipient_address: Optional[str] = None
    mode: Optional[str] = Field(None, max_length=50)
    service_type: Optional[str] = Field(None, max_length=50)
    region: Optional[str] = Field(None, max_length=100)
    weight_kg: Optional[Decimal] = Field(None, ge=0)
    chargeable_weight_kg: Optional[Decimal] = Field(None, ge=0)
    retail_price: Optional[Decimal] = Field(None, ge=0)
    final_collected: Optional[Decimal] = Field(None, ge=0)
    calculated_amount: Optional[Decimal] = Field(None, ge=0)


class ConsignmentBulkCreate(BaseCreateSchema):
    rows: List[ConsignmentRowCreate] = Field(..., min_length=1)


class ConsignmentRowResponse(BaseResponseSchema):
    id: UUID
    consignment_no: Optional[str] = None
    booking_reference: Optional[str] = None
    booking_date: Optional[date] = None
    sender_name: Optional[str] = None
    sender_address: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None
    mode: Optional[str] = None
    service_type: Optional[str] = None
    shipment_type: Optional[str] = None
    region: Optional[str] = None
    weight_kg: Optional[Decimal] = None
    chargeable_weight_kg: Optional[Decimal] = None
    retail_price: Optional[Decimal] = None
    final_collected: Optional[Decimal] = None
    calculated_amount: Optional[Decimal] = None
    pricing_meta: Optional[dict] = None
    invoice_id: Optional[UUID] = None
    created_at: datetime


class ConsignmentListResponse(BaseResponseSchema):
    items: List[ConsignmentRowResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class PriceConsignmentsRequest(BaseRequestSchema):
    row_ids: List[UUID] = Field(..., min_length=1)


class PricingOutcome(BaseResponseSchema):
    """Per-row result of bulk pricing."""
    row_id: UUID
    ok: bool
    calculated_amount: Optional[Decimal] = None
    breakdown: Optional[RateBreakdown] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    diagnostics: Optional[dict] = None


class PriceConsignmentsResponse(BaseResponseSchema):
    priced: int
    failed: int
    results: List[PricingOutcome]

"""Pydantic schemas for reconciliation, invoices and billing status."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.base import BaseResponseSchema, BaseRequestSchema


# ==================== Reconciliation ====================

class RateOverrides(BaseRequestSchema):
    """Uniform repricing of a whole batch; any field left out keeps the row's own value."""
    base: Optional[Decimal] = Field(None, ge=0, description="Base rate per consignment")
    fuel_pct: Optional[Decimal] = Field(None, ge=0, le=100)
    packing: Optional[Decimal] = Field(None, ge=0)
    handling: Optional[Decimal] = Field(None, ge=0)
    gst_pct: Optional[Decimal] = Field(None, ge=0, le=100)

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.base, self.fuel_pct, self.packing, self.handling, self.gst_pct)
        )


class ReconcileRequest(BaseRequestSchema):
    consignment_row_ids: List[UUID] = Field(..., min_length=1)
    party_name: Optional[str] = Field(None, description="Only rows of this sender are invoiced")
    overrides: Optional[RateOverrides] = None
    invoice_date: Optional[date] = None
    additional_charges: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def dedupe_ids(self):
        self.consignment_row_ids = list(dict.fromkeys(self.consignment_row_ids))
        return self


class InvoiceTotals(BaseResponseSchema):
    subtotal: Decimal
    tax_amount: Decimal
    additional_charges: Decimal
    total_amount: Decimal


class ReconcileResponse(BaseResponseSchema):
    invoice_id: UUID
    invoice_number: str
    party_id: UUID
    party_name: str
    line_count: int
    totals: InvoiceTotals


# ==================== Invoice reads ====================

class InvoiceLineResponse(BaseResponseSchema):
    id: UUID
    line_number: int
    consignment_row_id: Optional[UUID] = None
    consignment_no: Optional[str] = None
    description: str
    booking_date: Optional[date] = None
    quantity: int
    base: Decimal
    fuel: Decimal
    packing: Decimal
    handling: Decimal
    gst_pct: Decimal
    subtotal: Decimal
    gst: Decimal
    amount: Decimal


class InvoiceAllocationResponse(BaseResponseSchema):
    id: UUID
    party_payment_id: UUID
    amount: Decimal
    created_at: datetime


class InvoiceBrief(BaseResponseSchema):
    id: UUID
    invoice_number: str
    party_id: UUID
    invoice_date: date
    subtotal: Decimal
    tax_amount: Decimal
    additional_charges: Decimal
    total_amount: Decimal
    received_amount: Decimal
    outstanding_amount: Decimal


class InvoiceResponse(InvoiceBrief):
    notes: Optional[str] = None
    slab_breakdown: Optional[dict] = None
    created_by: Optional[str] = None
    created_at: datetime
    lines: List[InvoiceLineResponse] = []
    allocations: List[InvoiceAllocationResponse] = []


class InvoiceListResponse(BaseResponseSchema):
    items: List[InvoiceBrief]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1


class InvoiceDeleteResponse(BaseResponseSchema):
    invoice_id: UUID
    invoice_number: str
    released_consignments: int


# ==================== Outstanding / Status ====================

class PartyOutstandingResponse(BaseResponseSchema):
    party_id: UUID
    party_name: str
    total_billed: Decimal
    total_received: Decimal
    total_outstanding: Decimal
    open_invoices: List[InvoiceBrief]


class BillingSummaryResponse(BaseResponseSchema):
    party_name: str
    party_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    consignment_count: int
    unbilled_count: int
    unbilled_amount: Decimal
    billed_amount: Decimal
    paid_amount: Decimal
    status: str

"""Pydantic schemas for party payments and invoice allocations."""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import Field, model_validator

from app.schemas.base import BaseResponseSchema, BaseRequestSchema


class AllocationItem(BaseRequestSchema):
    invoice_id: UUID
    amount: Decimal = Field(..., gt=0)


class AllocationsCreate(BaseRequestSchema):
    allocations: List[AllocationItem] = Field(..., min_length=1)


class PartyPaymentCreate(BaseRequestSchema):
    party_id: Optional[UUID] = None
    party_name: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None
    payment_method: Optional[str] = Field(None, max_length=30)
    reference_no: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    allocations: List[AllocationItem] = []

    @model_validator(mode="after")
    def check_party(self):
        if self.party_id is None and not (self.party_name or "").strip():
            raise ValueError("party_id or party_name is required")
        return self


class PaymentAllocationResponse(BaseResponseSchema):
    id: UUID
    invoice_id: UUID
    amount: Decimal
    created_at: datetime


class PartyPaymentResponse(BaseResponseSchema):
    id: UUID
    party_id: UUID
    payment_date: date
    amount: Decimal
    payment_method: Optional[str] = None
    reference_no: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    allocations: List[PaymentAllocationResponse] = []


class InvoiceBalance(BaseResponseSchema):
    invoice_id: UUID
    invoice_number: str
    total_amount: Decimal
    received_amount: Decimal
    outstanding_amount: Decimal


class PaymentRecordedResponse(BaseResponseSchema):
    payment: PartyPaymentResponse
    updated_invoice_balances: List[InvoiceBalance]


class PartyPaymentListResponse(BaseResponseSchema):
    items: List[PartyPaymentResponse]
    total: int
    page: int = 1
    size: int = 50
    pages: int = 1

"""API endpoints for party payments and their allocation to invoices."""
from typing import List, Optional
from uuid import UUID
from math import ceil

from fastapi import APIRouter, status, Query

from app.api.deps import DB, CurrentUser, BillingUser
from app.models.billing import Invoice, PartyPayment
from app.schemas.payment import (
    PartyPaymentCreate,
    PartyPaymentResponse,
    AllocationsCreate,
    InvoiceBalance,
    PaymentRecordedResponse,
    PartyPaymentListResponse,
)
from app.services.payment_allocation_service import PaymentAllocationService

router = APIRouter()


def _recorded(payment: PartyPayment, invoices: List[Invoice]) -> PaymentRecordedResponse:
    return PaymentRecordedResponse(
        payment=PartyPaymentResponse.model_validate(payment),
        updated_invoice_balances=[
            InvoiceBalance(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                total_amount=invoice.total_amount,
                received_amount=invoice.received_amount,
                outstanding_amount=invoice.outstanding_amount,
            )
            for invoice in invoices
        ],
    )


@router.post("", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_party_payment(
    data: PartyPaymentCreate,
    db: DB,
    current_user: BillingUser,
):
    """
    Record a payment received from a party, optionally split across its invoices.
    Invoice received amounts are recomputed from all their allocations.
    """
    service = PaymentAllocationService(db, created_by=current_user.id)
    payment, invoices = await service.record_party_payment(data)
    return _recorded(payment, invoices)


@router.get("", response_model=PartyPaymentListResponse)
async def list_party_payments(
    db: DB,
    current_user: CurrentUser,
    party_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    items, total = await PaymentAllocationService(db).list_payments(
        party_id=party_id,
        skip=(page - 1) * size,
        limit=size,
    )
    return PartyPaymentListResponse(
        items=[PartyPaymentResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/{payment_id}", response_model=PartyPaymentResponse)
async def get_party_payment(payment_id: UUID, db: DB, current_user: CurrentUser):
    payment = await PaymentAllocationService(db).get_payment(payment_id)
    return PartyPaymentResponse.model_validate(payment)


@router.post("/{payment_id}/allocations", response_model=PaymentRecordedResponse)
async def allocate_party_payment(
    payment_id: UUID,
    data: AllocationsCreate,
    db: DB,
    current_user: BillingUser,
):
    """Allocate the unallocated remainder of a payment to more invoices."""
    service = PaymentAllocationService(db, created_by=current_user.id)
    payment, invoices = await service.add_allocations(payment_id, data.allocations)
    return _recorded(payment, invoices)

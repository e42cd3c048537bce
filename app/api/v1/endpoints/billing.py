"""API endpoints for consignment invoicing, invoice reads and party billing status."""
from typing import Optional
from uuid import UUID
from datetime import date
from math import ceil

from fastapi import APIRouter, status, Query

from app.api.deps import DB, CurrentUser, BillingUser, AdminUser
from app.schemas.billing import (
    ReconcileRequest,
    ReconcileResponse,
    InvoiceTotals,
    InvoiceResponse,
    InvoiceBrief,
    InvoiceListResponse,
    InvoiceDeleteResponse,
    PartyOutstandingResponse,
    BillingSummaryResponse,
)
from app.services.billing_reconciler import BillingReconciler
from app.services.payment_allocation_service import PaymentAllocationService

router = APIRouter()


# ==================== Reconciliation ====================

@router.post("/invoices", response_model=ReconcileResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice_from_consignments(
    data: ReconcileRequest,
    db: DB,
    current_user: BillingUser,
):
    """
    Invoice the selected consignment rows as one party invoice.

    The whole batch is rejected when any row is already invoiced
    (AlreadyInvoiced) or the rows span more than one party (MixedPartyBatch).
    """
    reconciler = BillingReconciler(db, created_by=current_user.id)
    invoice, party = await reconciler.reconcile(data)

    return ReconcileResponse(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        party_id=party.id,
        party_name=party.party_name,
        line_count=len(invoice.lines),
        totals=InvoiceTotals(
            subtotal=invoice.subtotal,
            tax_amount=invoice.tax_amount,
            additional_charges=invoice.additional_charges,
            total_amount=invoice.total_amount,
        ),
    )


# ==================== Invoices ====================

@router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    db: DB,
    current_user: CurrentUser,
    party_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=100),
):
    items, total = await BillingReconciler(db).list_invoices(
        party_id=party_id,
        skip=(page - 1) * size,
        limit=size,
    )
    return InvoiceListResponse(
        items=[InvoiceBrief.model_validate(item) for item in items],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: UUID, db: DB, current_user: CurrentUser):
    invoice = await BillingReconciler(db).get_invoice(invoice_id)
    return InvoiceResponse.model_validate(invoice)


@router.delete("/invoices/{invoice_id}", response_model=InvoiceDeleteResponse)
async def delete_invoice(invoice_id: UUID, db: DB, current_user: AdminUser):
    """
    Delete an invoice with no payment allocations. Its consignments return to Unbilled.
    """
    invoice_number, released = await BillingReconciler(db).delete_invoice(invoice_id)
    return InvoiceDeleteResponse(
        invoice_id=invoice_id,
        invoice_number=invoice_number,
        released_consignments=released,
    )


# ==================== Status / Outstanding ====================

@router.get("/summary", response_model=BillingSummaryResponse)
async def party_billing_summary(
    db: DB,
    current_user: CurrentUser,
    party_name: str = Query(..., min_length=1),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Billed, paid and unbilled totals for a party over a booking period."""
    summary = await BillingReconciler(db).party_billing_summary(party_name, date_from, date_to)
    return BillingSummaryResponse(
        party_name=summary.party_name,
        party_id=summary.party_id,
        date_from=summary.date_from,
        date_to=summary.date_to,
        consignment_count=summary.consignment_count,
        unbilled_count=summary.unbilled_count,
        unbilled_amount=summary.unbilled_amount,
        billed_amount=summary.billed_amount,
        paid_amount=summary.paid_amount,
        status=summary.status.value,
    )


@router.get("/parties/{party_id}/outstanding", response_model=PartyOutstandingResponse)
async def party_outstanding(party_id: UUID, db: DB, current_user: CurrentUser):
    outstanding = await PaymentAllocationService(db).party_outstanding(party_id=party_id)
    return PartyOutstandingResponse(
        party_id=outstanding["party_id"],
        party_name=outstanding["party_name"],
        total_billed=outstanding["total_billed"],
        total_received=outstanding["total_received"],
        total_outstanding=outstanding["total_outstanding"],
        open_invoices=[InvoiceBrief.model_validate(item) for item in outstanding["open_invoices"]],
    )

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import (
    AlreadyInvoiced,
    ConsignmentNotFound,
    EmptyBatch,
    InvoiceHasPayments,
    InvoiceNotFound,
    MissingShipmentData,
    MixedPartyBatch,
)
from app.models.billing import Invoice, InvoiceLine
from app.models.consignment import ConsignmentRow
from app.models.party import Party
from app.schemas.billing import RateOverrides, ReconcileRequest
from app.schemas.payment import AllocationItem, PartyPaymentCreate
from app.services.billing_reconciler import BillingReconciler, BillingStatus
from app.services.payment_allocation_service import PaymentAllocationService
from app.services.rate_resolver import compute_breakdown


INVOICE_DATE = date(2026, 10, 19)


def request_for(rows, **fields) -> ReconcileRequest:
    return ReconcileRequest(
        consignment_row_ids=[row.id for row in rows],
        invoice_date=INVOICE_DATE,
        **fields,
    )


async def test_invoice_totals_match_rows(db, make_row):
    rows = [
        await make_row("CN001", calculated_amount="120.00"),
        await make_row("CN002", calculated_amount="80.50"),
        await make_row("CN003", calculated_amount="99.50"),
    ]

    invoice, party = await BillingReconciler(db, created_by="user-1").reconcile(request_for(rows))

    assert invoice.invoice_number == "PI/2026-27/00001"
    assert party.party_name == "Acme Traders"
    assert invoice.subtotal == Decimal("300.00")
    assert invoice.tax_amount == Decimal("0.00")
    assert invoice.total_amount == Decimal("300.00")
    assert [line.consignment_no for line in invoice.lines] == ["CN001", "CN002", "CN003"]
    assert all(row.invoice_id == invoice.id for row in rows)


async def test_priced_rows_carry_gst_into_the_invoice(db, make_row):
    breakdown = compute_breakdown("100", fuel_pct="10", packing="5", handling="2.50", gst_pct="18")
    row = await make_row(
        "CN010",
        calculated_amount=str(breakdown.total),
        pricing_meta={"rate_breakup": breakdown.to_json()},
    )

    invoice, _ = await BillingReconciler(db).reconcile(
        request_for([row], additional_charges=Decimal("10"))
    )

    assert invoice.subtotal == Decimal("117.50")
    assert invoice.tax_amount == Decimal("21.15")
    assert invoice.additional_charges == Decimal("10.00")
    assert invoice.total_amount == Decimal("148.65")


async def test_overrides_are_recorded(db, make_row):
    row = await make_row("CN020", calculated_amount="200")

    invoice, _ = await BillingReconciler(db).reconcile(
        request_for([row], overrides=RateOverrides(gst_pct=Decimal("18")))
    )

    assert invoice.subtotal == Decimal("200.00")
    assert invoice.tax_amount == Decimal("36.00")
    assert invoice.slab_breakdown == {"overrides": {"gst_pct": "18"}}


async def test_resubmitting_billed_rows_is_refused(db, make_row):
    rows = [await make_row(f"CN10{i}", calculated_amount="50") for i in range(3)]
    reconciler = BillingReconciler(db)
    await reconciler.reconcile(request_for(rows))

    with pytest.raises(AlreadyInvoiced) as exc_info:
        await reconciler.reconcile(request_for(rows))

    assert exc_info.value.diagnostics["consignments"] == ["CN100", "CN101", "CN102"]
    invoices = (await db.execute(select(Invoice))).scalars().all()
    assert len(invoices) == 1


async def test_already_invoiced_preview_is_capped(db, make_row):
    rows = [await make_row(f"CN{i:03d}", calculated_amount="10") for i in range(12)]
    reconciler = BillingReconciler(db)
    await reconciler.reconcile(request_for(rows))

    with pytest.raises(AlreadyInvoiced) as exc_info:
        await reconciler.reconcile(request_for(rows))

    error = exc_info.value
    assert error.message.endswith("CN009 and 2 more")
    assert len(error.diagnostics["consignments"]) == 10
    assert error.diagnostics["total_count"] == 12


async def test_one_billed_row_blocks_the_whole_batch(db, make_row):
    first = await make_row("CN201", calculated_amount="10")
    second = await make_row("CN202", calculated_amount="10")
    reconciler = BillingReconciler(db)
    await reconciler.reconcile(request_for([first]))

    with pytest.raises(AlreadyInvoiced):
        await reconciler.reconcile(request_for([first, second]))

    await db.refresh(second)
    assert second.invoice_id is None


async def test_mixed_parties_are_refused(db, make_row):
    rows = [
        await make_row("CN301", sender_name="Acme Traders", calculated_amount="10"),
        await make_row("CN302", sender_name="Zenith Exports", calculated_amount="10"),
    ]

    with pytest.raises(MixedPartyBatch) as exc_info:
        await BillingReconciler(db).reconcile(request_for(rows))
    assert exc_info.value.diagnostics["parties"] == ["Acme Traders", "Zenith Exports"]


async def test_party_filter_selects_matching_rows(db, make_row):
    acme = await make_row("CN401", sender_name=" acme traders", calculated_amount="40")
    zenith = await make_row("CN402", sender_name="Zenith Exports", calculated_amount="60")

    invoice, party = await BillingReconciler(db).reconcile(
        request_for([acme, zenith], party_name="Acme Traders")
    )

    assert invoice.total_amount == Decimal("40.00")
    assert party.party_name == "Acme Traders"
    await db.refresh(zenith)
    assert zenith.invoice_id is None


async def test_party_filter_matching_nothing(db, make_row):
    row = await make_row("CN501", sender_name="Zenith Exports", calculated_amount="10")
    with pytest.raises(EmptyBatch):
        await BillingReconciler(db).reconcile(request_for([row], party_name="Acme Traders"))


async def test_rows_without_sender(db, make_row):
    row = await make_row("CN601", sender_name="  ", calculated_amount="10")
    with pytest.raises(MissingShipmentData):
        await BillingReconciler(db).reconcile(request_for([row]))


async def test_unknown_row_id(db, make_row):
    with pytest.raises(ConsignmentNotFound):
        await BillingReconciler(db).reconcile(
            ReconcileRequest(consignment_row_ids=[uuid.uuid4()])
        )


async def test_invoice_numbers_increase_within_the_year(db, make_row):
    reconciler = BillingReconciler(db)
    first, _ = await reconciler.reconcile(request_for([await make_row("CN701", calculated_amount="1")]))
    second, _ = await reconciler.reconcile(request_for([await make_row("CN702", calculated_amount="1")]))
    next_year, _ = await reconciler.reconcile(ReconcileRequest(
        consignment_row_ids=[(await make_row("CN703", calculated_amount="1")).id],
        invoice_date=date(2027, 4, 1),
    ))

    assert first.invoice_number == "PI/2026-27/00001"
    assert second.invoice_number == "PI/2026-27/00002"
    assert next_year.invoice_number == "PI/2027-28/00001"


async def test_delete_releases_rows(db, make_row):
    rows = [await make_row("CN801", calculated_amount="10"), await make_row("CN802", calculated_amount="20")]
    reconciler = BillingReconciler(db)
    invoice, _ = await reconciler.reconcile(request_for(rows))

    invoice_number, released = await reconciler.delete_invoice(invoice.id)

    assert invoice_number == invoice.invoice_number
    assert released == 2
    result = await db.execute(select(ConsignmentRow).where(ConsignmentRow.invoice_id.is_not(None)))
    assert result.scalars().all() == []
    assert (await db.execute(select(InvoiceLine))).scalars().all() == []

    # Released rows can be invoiced again
    again, _ = await reconciler.reconcile(request_for(rows))
    assert again.total_amount == Decimal("30.00")


async def test_delete_refused_once_paid(db, make_row):
    row = await make_row("CN901", calculated_amount="100")
    reconciler = BillingReconciler(db)
    invoice, party = await reconciler.reconcile(request_for([row]))
    await PaymentAllocationService(db).record_party_payment(PartyPaymentCreate(
        party_id=party.id,
        amount=Decimal("40"),
        allocations=[AllocationItem(invoice_id=invoice.id, amount=Decimal("40"))],
    ))

    with pytest.raises(InvoiceHasPayments):
        await reconciler.delete_invoice(invoice.id)

    assert (await reconciler.get_invoice(invoice.id)).received_amount == Decimal("40.00")


async def test_delete_unknown_invoice(db):
    with pytest.raises(InvoiceNotFound):
        await BillingReconciler(db).delete_invoice(uuid.uuid4())


async def test_summary_status_follows_billing_and_payment(db, make_row):
    reconciler = BillingReconciler(db)
    row = await make_row("CN950", calculated_amount="100", booking_date=date(2026, 10, 1))

    summary = await reconciler.party_billing_summary("Acme Traders")
    assert summary.status == BillingStatus.PENDING
    assert summary.unbilled_amount == Decimal("100.00")

    invoice, party = await reconciler.reconcile(request_for([row]))
    summary = await reconciler.party_billing_summary("acme traders")
    assert summary.status == BillingStatus.BILLED
    assert summary.billed_amount == Decimal("100.00")

    payments = PaymentAllocationService(db)
    await payments.record_party_payment(PartyPaymentCreate(
        party_id=party.id,
        amount=Decimal("30"),
        allocations=[AllocationItem(invoice_id=invoice.id, amount=Decimal("30"))],
    ))
    summary = await reconciler.party_billing_summary("Acme Traders")
    assert summary.status == BillingStatus.PARTIALLY_PAID

    await payments.record_party_payment(PartyPaymentCreate(
        party_id=party.id,
        amount=Decimal("70"),
        allocations=[AllocationItem(invoice_id=invoice.id, amount=Decimal("70"))],
    ))
    summary = await reconciler.party_billing_summary("Acme Traders")
    assert summary.status == BillingStatus.PAID

    await make_row("CN951", calculated_amount="25", booking_date=date(2026, 10, 2))
    summary = await reconciler.party_billing_summary("Acme Traders")
    assert summary.status == BillingStatus.PENDING

    summary = await reconciler.party_billing_summary(
        "Acme Traders", date_from=date(2026, 10, 1), date_to=date(2026, 10, 1)
    )
    assert summary.status == BillingStatus.PAID


async def test_failed_commit_leaves_nothing_billed(db, make_row, monkeypatch):
    rows = [
        await make_row("CN701", sender_name="Fresh Party Ltd", calculated_amount="40"),
        await make_row("CN702", sender_name="Fresh Party Ltd", calculated_amount="60"),
    ]
    row_ids = [row.id for row in rows]

    async def failing_commit():
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(SQLAlchemyError):
        await BillingReconciler(db).reconcile(ReconcileRequest(
            consignment_row_ids=row_ids, invoice_date=INVOICE_DATE,
        ))
    monkeypatch.undo()

    assert await db.scalar(select(func.count()).select_from(Invoice)) == 0
    assert await db.scalar(select(func.count()).select_from(InvoiceLine)) == 0
    assert await db.scalar(select(func.count()).select_from(Party)) == 0
    links = await db.execute(select(ConsignmentRow.invoice_id).where(ConsignmentRow.id.in_(row_ids)))
    assert [invoice_id for (invoice_id,) in links.all()] == [None, None]

    invoice, _ = await BillingReconciler(db).reconcile(ReconcileRequest(
        consignment_row_ids=row_ids, invoice_date=INVOICE_DATE,
    ))
    assert invoice.invoice_number == "PI/2026-27/00001"
    assert invoice.total_amount == Decimal("100.00")

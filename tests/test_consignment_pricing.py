import uuid
from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import AlreadyInvoiced, DistanceCategoryUnresolvable, MissingShipmentData
from app.schemas.billing import ReconcileRequest
from app.schemas.consignment import ConsignmentRowCreate
from app.services.billing_reconciler import BillingReconciler
from app.services.consignment_service import ConsignmentService


SHIPMENT = {
    "sender_address": "Andheri East, Mumbai, Maharashtra 400069",
    "recipient_address": "Kothrud, Pune, Maharashtra 411038",
    "mode": "Non Document",
    "service_type": "Express",
    "weight_kg": Decimal("0.150"),
}


@pytest.fixture
async def rated_party(masters, make_party, make_rate_slab):
    party = await make_party()
    await make_rate_slab(party)
    return party


async def test_price_row_stores_breakup(db, rated_party, make_row):
    row = await make_row("CN100", **SHIPMENT)

    priced, resolved = await ConsignmentService(db).price_row(row.id)

    assert priced.calculated_amount == Decimal("138.65")
    assert priced.shipment_type == "NON_DOCUMENT"
    assert priced.region == "Metro Cities"
    assert priced.pricing_meta["rate_slab_id"] == str(resolved.rate_slab.id)
    assert priced.rate_breakup["gst"] == "21.15"


async def test_priced_row_is_invoiced_at_its_breakup(db, rated_party, make_row):
    row = await make_row("CN101", **SHIPMENT)
    await ConsignmentService(db).price_row(row.id)

    invoice, _ = await BillingReconciler(db).reconcile(ReconcileRequest(
        consignment_row_ids=[row.id], invoice_date=date(2026, 10, 19),
    ))
    assert invoice.subtotal == Decimal("117.50")
    assert invoice.tax_amount == Decimal("21.15")
    assert invoice.total_amount == Decimal("138.65")


async def test_chargeable_weight_is_used_when_weight_missing(db, rated_party, make_row):
    fields = dict(SHIPMENT, weight_kg=None, chargeable_weight_kg=Decimal("0.2"))
    row = await make_row("CN102", **fields)

    priced, resolved = await ConsignmentService(db).price_row(row.id)
    assert resolved.weight_slab.slab_name == "100-250g"


async def test_missing_fields_are_reported(db, rated_party, make_row):
    row = await make_row("CN103", mode=None, service_type="Express")

    with pytest.raises(MissingShipmentData) as exc_info:
        await ConsignmentService(db).price_row(row.id)
    assert exc_info.value.diagnostics["missing"] == ["mode", "weight_kg"]


async def test_billed_row_is_not_repriced(db, rated_party, make_row):
    row = await make_row("CN104", calculated_amount="50", **SHIPMENT)
    await BillingReconciler(db).reconcile(ReconcileRequest(consignment_row_ids=[row.id]))

    with pytest.raises(AlreadyInvoiced):
        await ConsignmentService(db).price_row(row.id)


async def test_region_title_is_used_for_unparseable_addresses(db, masters, make_party, make_rate_slab, make_row):
    party = await make_party()
    await make_rate_slab(party, distance="OTHER_STATE")
    fields = dict(SHIPMENT, sender_address="Warehouse 4", recipient_address="Gate 2", region="Other State")
    row = await make_row("CN105", **fields)

    priced, _ = await ConsignmentService(db).price_row(row.id)
    assert priced.pricing_meta["distance_category"] == "OTHER_STATE"


async def test_unresolvable_distance(db, rated_party, make_row):
    fields = dict(SHIPMENT, sender_address="Warehouse 4", recipient_address="Gate 2")
    row = await make_row("CN106", **fields)

    with pytest.raises(DistanceCategoryUnresolvable):
        await ConsignmentService(db).price_row(row.id)


async def test_bulk_pricing_reports_each_row(db, rated_party, make_row):
    good = await make_row("CN107", **SHIPMENT)
    heavy = await make_row("CN108", **dict(SHIPMENT, weight_kg=Decimal("2.6")))
    missing_id = uuid.uuid4()

    outcomes = await ConsignmentService(db).price_rows([good.id, heavy.id, missing_id])

    assert [outcome["ok"] for outcome in outcomes] == [True, False, False]
    assert outcomes[0]["calculated_amount"] == Decimal("138.65")
    assert outcomes[1]["error_kind"] == "NoRateConfigured"
    assert outcomes[2]["error_kind"] == "ConsignmentNotFound"

    await db.refresh(good)
    assert good.calculated_amount == Decimal("138.65")


async def test_list_rows_filters(db):
    service = ConsignmentService(db)
    await service.create_rows([
        ConsignmentRowCreate(consignment_no="CN200", sender_name="Acme Traders", calculated_amount=Decimal("10")),
        ConsignmentRowCreate(consignment_no="CN201", sender_name="Zenith Exports", calculated_amount=Decimal("10")),
    ])

    rows, total = await service.list_rows(party_name="ACME TRADERS")
    assert total == 1
    assert rows[0].consignment_no == "CN200"

    _, unbilled = await service.list_rows(billed=False)
    assert unbilled == 2


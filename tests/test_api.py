"""HTTP-level tests: auth, error payloads and the pricing -> invoice -> payment flow."""
from decimal import Decimal

import pytest


API = "/api/v1"

SHIPMENT = {
    "sender_name": "Acme Traders",
    "sender_address": "Andheri East, Mumbai, Maharashtra 400069",
    "recipient_address": "Kothrud, Pune, Maharashtra 411038",
    "mode": "Non Document",
    "service_type": "Express",
    "weight_kg": "0.150",
}


def rate_payload(party, masters, **overrides) -> dict:
    payload = {
        "party_id": str(party.id),
        "shipment_type": "NON_DOCUMENT",
        "mode_id": str(masters["modes"]["NON_DOCUMENT"]),
        "service_type_id": str(masters["service_types"]["EXPRESS"]),
        "distance_slab_id": str(masters["distance_slabs"]["METRO_CITIES"]),
        "weight_slab_id": str(masters["weight_slabs"]["100-250g"]),
        "rate": "100.00",
        "fuel_pct": "10",
        "packing": "5.00",
        "handling": "2.50",
        "gst_pct": "18",
    }
    payload.update(overrides)
    return payload


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


async def test_requests_need_a_token(client, masters):
    response = await client.get(f"{API}/reference/modes")
    assert response.status_code in (401, 403)

    response = await client.get(
        f"{API}/reference/modes", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


async def test_read_only_role_cannot_write(client, masters, make_party, auth_headers):
    party = await make_party()
    response = await client.post(
        f"{API}/rate-slabs",
        json=rate_payload(party, masters),
        headers=auth_headers(role="viewer"),
    )
    assert response.status_code == 403

    response = await client.get(f"{API}/rate-slabs", headers=auth_headers(role="viewer"))
    assert response.status_code == 200


async def test_rate_slab_upsert_returns_201_then_200(client, masters, make_party, auth_headers):
    party = await make_party()

    created = await client.post(f"{API}/rate-slabs", json=rate_payload(party, masters), headers=auth_headers())
    assert created.status_code == 201

    updated = await client.post(
        f"{API}/rate-slabs", json=rate_payload(party, masters, rate="125.00"), headers=auth_headers()
    )
    assert updated.status_code == 200
    assert updated.json()["id"] == created.json()["id"]
    assert Decimal(updated.json()["rate"]) == Decimal("125.00")

    audits = await client.get(
        f"{API}/rate-slabs/audits",
        params={"rate_slab_id": created.json()["id"]},
        headers=auth_headers(),
    )
    assert audits.json()["total"] == 2
    assert [item["action"] for item in audits.json()["items"]] == ["UPDATE", "CREATE"]
    assert audits.json()["items"][0]["changed_by"] == "user-1"


async def test_update_collision_reports_conflict_id(client, masters, make_party, auth_headers):
    party = await make_party()
    metro = await client.post(f"{API}/rate-slabs", json=rate_payload(party, masters), headers=auth_headers())
    within = await client.post(
        f"{API}/rate-slabs",
        json=rate_payload(party, masters, distance_slab_id=str(masters["distance_slabs"]["WITHIN_STATE"])),
        headers=auth_headers(),
    )

    response = await client.put(
        f"{API}/rate-slabs/{within.json()['id']}",
        json={"distance_slab_id": str(masters["distance_slabs"]["METRO_CITIES"])},
        headers=auth_headers(),
    )
    assert response.status_code == 409
    body = response.json()
    assert body["error_kind"] == "DuplicateMapping"
    assert body["diagnostics"]["conflict_id"] == metro.json()["id"]


async def test_resolve_rate(client, masters, make_party, make_rate_slab, auth_headers):
    party = await make_party()
    await make_rate_slab(party)

    response = await client.post(
        f"{API}/rate-slabs/resolve",
        json={
            "party_name": "Acme Traders",
            "mode_code": "NON_DOCUMENT",
            "service_type_code": "EXPRESS",
            "origin_address": SHIPMENT["sender_address"],
            "destination_address": SHIPMENT["recipient_address"],
            "weight_grams": 150,
        },
        headers=auth_headers(role="viewer"),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["distance_category"] == "METRO_CITIES"
    assert Decimal(body["breakdown"]["total"]) == Decimal("138.65")


async def test_lookup_failure_payload(client, masters, auth_headers):
    response = await client.post(
        f"{API}/rate-slabs/resolve",
        json={
            "party_name": "Acme Traders",
            "mode_code": "PIGEON",
            "service_type_code": "EXPRESS",
            "weight_grams": 150,
        },
        headers=auth_headers(),
    )
    assert response.status_code == 422
    assert response.json() == {
        "error_kind": "ModeNotRecognized",
        "message": "Mode not recognized: PIGEON",
        "diagnostics": {"mode": "PIGEON"},
    }


async def test_classify_distance(client, masters, auth_headers):
    response = await client.post(
        f"{API}/distance/classify",
        json={"origin_address": "Surat, Gujarat", "destination_address": "Nagpur, Maharashtra"},
        headers=auth_headers(),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["category"] == "OUT_OF_STATE"
    assert body["is_neighbor"] is True

    response = await client.post(
        f"{API}/distance/classify",
        json={"origin_address": "Somewhere", "destination_address": "Nagpur"},
        headers=auth_headers(),
    )
    assert response.status_code == 422
    assert response.json()["error_kind"] == "DistanceCategoryUnresolvable"


async def test_weight_slab_lookup_endpoint(client, masters, auth_headers):
    response = await client.get(
        f"{API}/reference/weight-slabs/lookup", params={"weight_grams": 100}, headers=auth_headers()
    )
    assert response.status_code == 200
    assert response.json()["slab_name"] == "100-250g"


async def import_and_price(client, auth_headers, count: int = 2) -> list:
    rows = [dict(SHIPMENT, consignment_no=f"CN{i:03d}") for i in range(count)]
    imported = await client.post(f"{API}/consignments", json={"rows": rows}, headers=auth_headers())
    assert imported.status_code == 201
    row_ids = [row["id"] for row in imported.json()]

    priced = await client.post(f"{API}/consignments/apply-rate", json={"row_ids": row_ids}, headers=auth_headers())
    assert priced.json()["priced"] == count
    return row_ids


async def test_invoice_and_payment_flow(client, masters, make_party, make_rate_slab, auth_headers):
    party = await make_party()
    await make_rate_slab(party)
    row_ids = await import_and_price(client, auth_headers)

    created = await client.post(
        f"{API}/billing/invoices",
        json={"consignment_row_ids": row_ids, "invoice_date": "2026-10-19"},
        headers=auth_headers(),
    )
    assert created.status_code == 201
    invoice = created.json()
    assert invoice["invoice_number"] == "PI/2026-27/00001"
    assert invoice["line_count"] == 2
    assert Decimal(invoice["totals"]["total_amount"]) == Decimal("277.30")

    again = await client.post(
        f"{API}/billing/invoices", json={"consignment_row_ids": row_ids}, headers=auth_headers()
    )
    assert again.status_code == 409
    assert again.json()["error_kind"] == "AlreadyInvoiced"
    assert again.json()["diagnostics"]["consignments"] == ["CN000", "CN001"]

    summary = await client.get(
        f"{API}/billing/summary", params={"party_name": "Acme Traders"}, headers=auth_headers()
    )
    assert summary.json()["status"] == "Billed"

    paid = await client.post(
        f"{API}/payments",
        json={
            "party_id": str(party.id),
            "amount": "277.30",
            "allocations": [{"invoice_id": invoice["invoice_id"], "amount": "277.30"}],
        },
        headers=auth_headers(),
    )
    assert paid.status_code == 201

    summary = await client.get(
        f"{API}/billing/summary", params={"party_name": "Acme Traders"}, headers=auth_headers()
    )
    assert summary.json()["status"] == "Paid"

    outstanding = await client.get(f"{API}/billing/parties/{party.id}/outstanding", headers=auth_headers())
    assert Decimal(outstanding.json()["total_outstanding"]) == Decimal("0")
    assert outstanding.json()["open_invoices"] == []

    # Paid invoices cannot be deleted, even by an admin
    refused = await client.delete(
        f"{API}/billing/invoices/{invoice['invoice_id']}", headers=auth_headers(role="admin")
    )
    assert refused.status_code == 409
    assert refused.json()["error_kind"] == "InvoiceHasPayments"


async def test_invoice_delete_is_admin_only(client, masters, make_party, make_rate_slab, auth_headers):
    party = await make_party()
    await make_rate_slab(party)
    row_ids = await import_and_price(client, auth_headers, count=1)
    created = await client.post(
        f"{API}/billing/invoices", json={"consignment_row_ids": row_ids}, headers=auth_headers()
    )
    invoice_id = created.json()["invoice_id"]

    forbidden = await client.delete(f"{API}/billing/invoices/{invoice_id}", headers=auth_headers())
    assert forbidden.status_code == 403

    deleted = await client.delete(
        f"{API}/billing/invoices/{invoice_id}", headers=auth_headers(role="admin")
    )
    assert deleted.status_code == 200
    assert deleted.json()["released_consignments"] == 1

    row = await client.get(f"{API}/consignments/{row_ids[0]}", headers=auth_headers())
    assert row.json()["invoice_id"] is None


async def test_mixed_party_batch_is_rejected(client, masters, auth_headers):
    rows = [
        {"consignment_no": "CN1", "sender_name": "Acme Traders", "calculated_amount": "10"},
        {"consignment_no": "CN2", "sender_name": "Zenith Exports", "calculated_amount": "10"},
    ]
    imported = await client.post(f"{API}/consignments", json={"rows": rows}, headers=auth_headers())
    row_ids = [row["id"] for row in imported.json()]

    response = await client.post(
        f"{API}/billing/invoices", json={"consignment_row_ids": row_ids}, headers=auth_headers()
    )
    assert response.status_code == 422
    assert response.json()["error_kind"] == "MixedPartyBatch"

    unbilled = await client.get(f"{API}/consignments", params={"billed": False}, headers=auth_headers())
    assert unbilled.json()["total"] == 2


@pytest.mark.parametrize("path", ["/", "/docs"])
async def test_public_pages(client, path):
    response = await client.get(path)
    assert response.status_code == 200


async def test_misspelt_request_field_is_rejected(client, masters, auth_headers):
    imported = await client.post(
        f"{API}/consignments",
        json={"rows": [dict(SHIPMENT, consignment_no="CN900", calculated_amount="10")]},
        headers=auth_headers(),
    )
    row_ids = [row["id"] for row in imported.json()]

    response = await client.post(
        f"{API}/billing/invoices",
        json={"consignment_row_ids": row_ids, "overides": {"gst_pct": "18"}},
        headers=auth_headers(),
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "overides"]

    unbilled = await client.get(f"{API}/consignments", params={"billed": False}, headers=auth_headers())
    assert unbilled.json()["total"] == 1

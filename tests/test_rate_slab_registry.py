import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DuplicateMapping, PartyNotFound, RateSlabNotFound
from app.models.rate_slab import PartyRateSlab, RateAudit, RateAuditAction, ShipmentType
from app.schemas.rate_slab import RateSlabUpdate, RateSlabUpsert
from app.services.rate_slab_registry import RateSlabRegistry


def upsert_payload(party, masters, **overrides) -> RateSlabUpsert:
    data = {
        "party_id": party.id,
        "shipment_type": ShipmentType.NON_DOCUMENT,
        "mode_id": masters["modes"]["NON_DOCUMENT"],
        "service_type_id": masters["service_types"]["EXPRESS"],
        "distance_slab_id": masters["distance_slabs"]["METRO_CITIES"],
        "weight_slab_id": masters["weight_slabs"]["100-250g"],
        "rate": Decimal("100.00"),
        "fuel_pct": Decimal("10"),
        "gst_pct": Decimal("18"),
    }
    data.update(overrides)
    return RateSlabUpsert(**data)


async def audits_for(db, rate_slab_id):
    result = await db.execute(
        select(RateAudit).where(RateAudit.party_rate_slab_id == rate_slab_id)
    )
    return list(result.scalars().all())


async def test_upsert_creates_then_updates_same_row(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db, changed_by="user-1")

    created, action = await registry.upsert(upsert_payload(party, masters))
    assert action == RateAuditAction.CREATE

    updated, action = await registry.upsert(upsert_payload(party, masters, rate=Decimal("120.00")))
    assert action == RateAuditAction.UPDATE
    assert updated.id == created.id
    assert updated.rate == Decimal("120.00")

    count = (await db.execute(select(PartyRateSlab))).scalars().all()
    assert len(count) == 1

    audits = await audits_for(db, created.id)
    assert sorted(a.action for a in audits) == ["CREATE", "UPDATE"]
    update_audit = next(a for a in audits if a.action == "UPDATE")
    assert update_audit.before_data["rate"] == "100.00"
    assert update_audit.after_data["rate"] == "120.00"
    assert update_audit.changed_by == "user-1"


async def test_upsert_reactivates_soft_deleted_row(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)

    created, _ = await registry.upsert(upsert_payload(party, masters))
    await registry.deactivate(created.id)

    revived, action = await registry.upsert(upsert_payload(party, masters, rate=Decimal("90")))
    assert action == RateAuditAction.UPDATE
    assert revived.id == created.id
    assert revived.is_active is True


async def test_upsert_checks_references(db, masters, make_party):
    party = await make_party()
    with pytest.raises(PartyNotFound):
        await RateSlabRegistry(db).upsert(upsert_payload(party, masters, party_id=uuid.uuid4()))


async def test_update_onto_existing_key_is_refused(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    metro, _ = await registry.upsert(upsert_payload(party, masters))
    within, _ = await registry.upsert(
        upsert_payload(party, masters, distance_slab_id=masters["distance_slabs"]["WITHIN_STATE"])
    )

    with pytest.raises(DuplicateMapping) as exc_info:
        await registry.update(
            within.id, RateSlabUpdate(distance_slab_id=masters["distance_slabs"]["METRO_CITIES"])
        )
    assert exc_info.value.diagnostics["conflict_id"] == str(metro.id)


async def test_update_pricing(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    rate_slab, _ = await registry.upsert(upsert_payload(party, masters))

    updated = await registry.update(rate_slab.id, RateSlabUpdate(handling=Decimal("7.50")))
    assert updated.handling == Decimal("7.50")
    assert updated.rate == Decimal("100.00")


async def test_deactivate_writes_delete_audit(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    rate_slab, _ = await registry.upsert(upsert_payload(party, masters))

    deactivated = await registry.deactivate(rate_slab.id)
    assert deactivated.is_active is False

    audits = await audits_for(db, rate_slab.id)
    delete_audit = next(a for a in audits if a.action == "DELETE")
    assert delete_audit.before_data["is_active"] is True
    assert delete_audit.after_data["is_active"] is False


async def test_update_that_deactivates_is_audited_as_delete(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    rate_slab, _ = await registry.upsert(upsert_payload(party, masters))

    await registry.update(rate_slab.id, RateSlabUpdate(is_active=False))
    await registry.update(rate_slab.id, RateSlabUpdate(rate=Decimal("90.00")))

    actions = sorted(a.action for a in await audits_for(db, rate_slab.id))
    assert actions == ["CREATE", "DELETE", "UPDATE"]


async def test_failed_audit_keeps_the_mutation(db, masters, make_party, monkeypatch):
    party = await make_party()
    registry = RateSlabRegistry(db)

    async def broken_record(**kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr(registry.audit, "record", broken_record)

    rate_slab, action = await registry.upsert(upsert_payload(party, masters))
    assert action == RateAuditAction.CREATE

    stored = await db.get(PartyRateSlab, rate_slab.id)
    assert stored is not None
    assert await audits_for(db, rate_slab.id) == []


async def test_batch_upsert(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    await registry.upsert(upsert_payload(party, masters))

    results = await registry.batch_upsert([
        upsert_payload(party, masters, rate=Decimal("110")),
        upsert_payload(party, masters, weight_slab_id=masters["weight_slabs"]["250-500g"]),
    ])
    assert [action for _, action in results] == [RateAuditAction.UPDATE, RateAuditAction.CREATE]

    slabs, total = await registry.list_slabs(party_id=party.id)
    assert total == 2


async def test_batch_upsert_is_all_or_nothing(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)

    with pytest.raises(PartyNotFound):
        await registry.batch_upsert([
            upsert_payload(party, masters),
            upsert_payload(party, masters, party_id=uuid.uuid4()),
        ])

    _, total = await registry.list_slabs(is_active=None)
    assert total == 0


async def test_list_hides_inactive_by_default(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    rate_slab, _ = await registry.upsert(upsert_payload(party, masters))
    await registry.deactivate(rate_slab.id)

    _, active_total = await registry.list_slabs()
    _, all_total = await registry.list_slabs(is_active=None)
    assert active_total == 0
    assert all_total == 1


async def test_audits_are_listed_newest_first(db, masters, make_party):
    party = await make_party()
    registry = RateSlabRegistry(db)
    rate_slab, _ = await registry.upsert(upsert_payload(party, masters))
    await registry.update(rate_slab.id, RateSlabUpdate(rate=Decimal("105")))
    await registry.deactivate(rate_slab.id)

    audits, total = await registry.audit.list_audits(rate_slab_id=rate_slab.id)
    assert total == 3
    assert [a.action for a in audits] == ["DELETE", "UPDATE", "CREATE"]


async def test_get_unknown(db, masters):
    with pytest.raises(RateSlabNotFound):
        await RateSlabRegistry(db).get(uuid.uuid4())

import uuid

import pytest

from app.core.exceptions import (
    InvalidWeightRange, NoMatchingWeightSlab, OverlappingWeightSlab, WeightSlabNotFound,
)
from app.schemas.reference import WeightSlabCreate, WeightSlabUpdate
from app.services.weight_slab_service import WeightSlabService, kg_to_grams


@pytest.mark.parametrize("weight_grams,expected", [
    (0, "0-100g"),
    (99, "0-100g"),
    (100, "100-250g"),
    (150, "100-250g"),
    (249, "100-250g"),
    (250, "250-500g"),
    (2999, "2.5kg-3kg"),
])
async def test_lookup_uses_half_open_ranges(db, masters, weight_grams, expected):
    slab = await WeightSlabService(db).lookup(weight_grams)
    assert slab.slab_name == expected


async def test_lookup_outside_all_slabs(db, masters):
    with pytest.raises(NoMatchingWeightSlab) as exc_info:
        await WeightSlabService(db).lookup(3000)
    assert exc_info.value.diagnostics == {"weight_grams": 3000}


async def test_lookup_skips_inactive_slabs(db, masters):
    service = WeightSlabService(db)
    await service.deactivate(masters["weight_slabs"]["100-250g"])
    with pytest.raises(NoMatchingWeightSlab):
        await service.lookup(150)


async def test_create_rejects_overlap(db, masters):
    with pytest.raises(OverlappingWeightSlab) as exc_info:
        await WeightSlabService(db).create(
            WeightSlabCreate(slab_name="200-300g", min_weight_grams=200, max_weight_grams=300)
        )
    assert exc_info.value.diagnostics["conflict_id"] == str(masters["weight_slabs"]["100-250g"])


async def test_create_adjacent_slab(db, masters):
    slab = await WeightSlabService(db).create(
        WeightSlabCreate(slab_name="3kg-5kg", min_weight_grams=3000, max_weight_grams=5000)
    )
    assert slab.is_active is True
    assert (await WeightSlabService(db).lookup(3000)).id == slab.id


async def test_inactive_slab_may_overlap(db, masters):
    slab = await WeightSlabService(db).create(
        WeightSlabCreate(slab_name="legacy", min_weight_grams=0, max_weight_grams=500, is_active=False)
    )
    assert slab.is_active is False


async def test_update_checks_range_and_overlap(db, masters):
    service = WeightSlabService(db)
    slab_id = masters["weight_slabs"]["2.5kg-3kg"]

    with pytest.raises(InvalidWeightRange):
        await service.update(slab_id, WeightSlabUpdate(min_weight_grams=3000))

    with pytest.raises(OverlappingWeightSlab):
        await service.update(slab_id, WeightSlabUpdate(min_weight_grams=1800))

    slab = await service.update(slab_id, WeightSlabUpdate(max_weight_grams=3500))
    assert slab.max_weight_grams == 3500


async def test_get_unknown_slab(db, masters):
    with pytest.raises(WeightSlabNotFound):
        await WeightSlabService(db).get(uuid.uuid4())


def test_kg_to_grams():
    assert kg_to_grams(None) is None
    assert kg_to_grams("0.15") == 150
    assert kg_to_grams(2.5) == 2500

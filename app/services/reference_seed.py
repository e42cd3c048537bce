"""Starter reference data: modes, service types, distance slabs, metro cities,
state adjacency and weight slabs. Seeding is idempotent."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reference import (
    DistanceCategory,
    DistanceSlab,
    MetroCity,
    Mode,
    ServiceType,
    StateNeighbor,
    WeightSlab,
)


logger = logging.getLogger(__name__)


MODES = [
    ("DOCUMENT", "Document"),
    ("NON_DOCUMENT", "Non Document"),
]

SERVICE_TYPES = [
    ("AIR", "Air"),
    ("SURFACE", "Surface"),
    ("EXPRESS", "Express"),
    ("STANDARD", "Standard"),
    ("PREMIUM", "Premium"),
]

DISTANCE_SLABS = [
    (DistanceCategory.METRO_CITIES.value, "Metro Cities"),
    (DistanceCategory.WITHIN_STATE.value, "Within State"),
    (DistanceCategory.OUT_OF_STATE.value, "Out of State"),
    (DistanceCategory.OTHER_STATE.value, "Other State"),
]

METRO_CITIES = [
    ("Mumbai", "MH"),
    ("Delhi", "DL"),
    ("Pune", "MH"),
    ("Bengaluru", "KA"),
    ("Chennai", "TN"),
    ("Kolkata", "WB"),
    ("Hyderabad", "TS"),
    ("Ahmedabad", "GJ"),
]

# One row per unordered pair
STATE_NEIGHBORS = [
    ("MH", "GJ"), ("MH", "MP"), ("MH", "CG"), ("MH", "TS"), ("MH", "KA"), ("MH", "GA"),
    ("GJ", "RJ"), ("GJ", "MP"),
    ("KA", "GA"), ("KA", "KL"), ("KA", "TN"), ("KA", "AP"), ("KA", "TS"),
    ("TN", "KL"), ("TN", "AP"),
    ("AP", "TS"), ("AP", "OD"), ("AP", "CG"),
    ("TS", "CG"),
    ("DL", "HR"), ("DL", "UP"),
    ("HR", "PB"), ("HR", "HP"), ("HR", "RJ"), ("HR", "UP"), ("HR", "CH"),
    ("PB", "HP"), ("PB", "RJ"), ("PB", "CH"), ("PB", "JK"),
    ("UP", "UK"), ("UP", "HP"), ("UP", "RJ"), ("UP", "MP"), ("UP", "CG"), ("UP", "JH"), ("UP", "BR"),
    ("RJ", "MP"),
    ("MP", "CG"),
    ("WB", "OD"), ("WB", "JH"), ("WB", "BR"), ("WB", "SK"), ("WB", "AS"),
    ("BR", "JH"),
    ("JH", "OD"), ("JH", "CG"),
    ("OD", "CG"),
]

WEIGHT_SLABS = [
    ("0-100g", 0, 100),
    ("100-250g", 100, 250),
    ("250-500g", 250, 500),
    ("500g-1kg", 500, 1000),
    ("1kg-1.5kg", 1000, 1500),
    ("1.5kg-2kg", 1500, 2000),
    ("2kg-2.5kg", 2000, 2500),
    ("2.5kg-3kg", 2500, 3000),
]


async def seed_reference_data(db: AsyncSession) -> dict:
    """
    Insert any missing starter rows and commit.

    Returns:
        Number of rows created per table.
    """
    created = {}

    async def existing(column):
        result = await db.execute(select(column))
        return set(result.scalars().all())

    codes = await existing(Mode.code)
    rows = [Mode(code=code, title=title) for code, title in MODES if code not in codes]
    db.add_all(rows)
    created["modes"] = len(rows)

    codes = await existing(ServiceType.code)
    rows = [ServiceType(code=code, title=title) for code, title in SERVICE_TYPES if code not in codes]
    db.add_all(rows)
    created["service_types"] = len(rows)

    codes = await existing(DistanceSlab.code)
    rows = [DistanceSlab(code=code, title=title) for code, title in DISTANCE_SLABS if code not in codes]
    db.add_all(rows)
    created["distance_slabs"] = len(rows)

    cities = await existing(MetroCity.city)
    rows = [
        MetroCity(city=city, state_code=state)
        for city, state in METRO_CITIES if city not in cities
    ]
    db.add_all(rows)
    created["metro_cities"] = len(rows)

    result = await db.execute(select(StateNeighbor.state_code, StateNeighbor.neighbor_state_code))
    pairs = {frozenset(pair) for pair in result.all()}
    rows = [
        StateNeighbor(state_code=a, neighbor_state_code=b)
        for a, b in STATE_NEIGHBORS if frozenset((a, b)) not in pairs
    ]
    db.add_all(rows)
    created["state_neighbors"] = len(rows)

    names = await existing(WeightSlab.slab_name)
    rows = [
        WeightSlab(slab_name=name, min_weight_grams=low, max_weight_grams=high)
        for name, low, high in WEIGHT_SLABS if name not in names
    ]
    db.add_all(rows)
    created["weight_slabs"] = len(rows)

    await db.commit()
    logger.info(f"Seeded reference data: {created}")
    return created

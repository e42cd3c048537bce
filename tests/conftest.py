"""Shared fixtures: a throwaway SQLite database per test, seeded reference
masters, and an HTTP client bound to the app with the DB dependency overridden."""
from decimal import Decimal
from typing import Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import app.models  # noqa: F401
from app.core.security import create_access_token
from app.database import Base, build_engine, get_db
from app.main import app as fastapi_app
from app.models.consignment import ConsignmentRow
from app.models.party import Party, normalize_party_name
from app.models.rate_slab import PartyRateSlab, ShipmentType
from app.models.reference import DistanceSlab, Mode, ServiceType, WeightSlab
from app.services.reference_seed import seed_reference_data


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def masters(db):
    """Seed reference data and return ids keyed by code / slab name."""
    await seed_reference_data(db)

    async def by(column, model):
        result = await db.execute(select(column, model.id))
        return {key: row_id for key, row_id in result.all()}

    return {
        "modes": await by(Mode.code, Mode),
        "service_types": await by(ServiceType.code, ServiceType),
        "distance_slabs": await by(DistanceSlab.code, DistanceSlab),
        "weight_slabs": await by(WeightSlab.slab_name, WeightSlab),
    }


@pytest.fixture
def make_party(db):
    async def _make(name: str = "Acme Traders") -> Party:
        party = Party(party_name=name, name_key=normalize_party_name(name))
        db.add(party)
        await db.commit()
        return party
    return _make


@pytest.fixture
def make_rate_slab(db, masters):
    async def _make(
        party: Party,
        *,
        rate: str = "100.00",
        fuel_pct: str = "10",
        packing: str = "5.00",
        handling: str = "2.50",
        gst_pct: str = "18",
        shipment_type: ShipmentType = ShipmentType.NON_DOCUMENT,
        mode: str = "NON_DOCUMENT",
        service_type: str = "EXPRESS",
        distance: str = "METRO_CITIES",
        weight: str = "100-250g",
    ) -> PartyRateSlab:
        rate_slab = PartyRateSlab(
            party_id=party.id,
            shipment_type=shipment_type.value,
            mode_id=masters["modes"][mode],
            service_type_id=masters["service_types"][service_type],
            distance_slab_id=masters["distance_slabs"][distance],
            weight_slab_id=masters["weight_slabs"][weight],
            rate=Decimal(rate),
            fuel_pct=Decimal(fuel_pct),
            packing=Decimal(packing),
            handling=Decimal(handling),
            gst_pct=Decimal(gst_pct),
        )
        db.add(rate_slab)
        await db.commit()
        return rate_slab
    return _make


@pytest.fixture
def make_row(db):
    async def _make(
        consignment_no: str,
        sender_name: Optional[str] = "Acme Traders",
        calculated_amount: Optional[str] = None,
        **fields,
    ) -> ConsignmentRow:
        row = ConsignmentRow(
            consignment_no=consignment_no,
            sender_name=sender_name,
            calculated_amount=Decimal(calculated_amount) if calculated_amount is not None else None,
            **fields,
        )
        db.add(row)
        await db.commit()
        return row
    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for a token carrying the given role."""
    def _headers(role: str = "billing_operator", user_id: str = "user-1") -> dict:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
    return _headers


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as http:
        yield http
    fastapi_app.dependency_overrides.clear()

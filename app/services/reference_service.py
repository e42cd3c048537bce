"""Reference masters: modes, service types, distance slabs, metro cities, state adjacency."""
import logging
from typing import List, Optional, Type, Union

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateMapping
from app.models.reference import Mode, ServiceType, DistanceSlab, MetroCity, StateNeighbor
from app.schemas.reference import (
    CodeTitleCreate,
    DistanceSlabCreate,
    MetroCityCreate,
    StateNeighborCreate,
)


logger = logging.getLogger(__name__)

CodeTitleModel = Union[Type[Mode], Type[ServiceType]]


class ReferenceService:
    """List/create for the small lookup tables behind rate resolution."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _existing(self, stmt):
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    # ==================== Modes / Service Types ====================

    async def list_code_titles(self, model: CodeTitleModel, is_active: Optional[bool] = None) -> List:
        stmt = select(model).order_by(model.code)
        if is_active is not None:
            stmt = stmt.where(model.is_active == is_active)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_code_title(self, model: CodeTitleModel, data: CodeTitleCreate):
        code = data.code.upper()
        existing = await self._existing(select(model).where(model.code == code))
        if existing is not None:
            raise DuplicateMapping(
                message=f"{model.__tablename__} code '{code}' already exists",
                diagnostics={"conflict_id": str(existing.id)},
            )
        item = model(code=code, title=data.title, is_active=data.is_active)
        self.db.add(item)
        await self.db.commit()
        logger.info(f"Created {model.__tablename__} {code}")
        return item

    # ==================== Distance Slabs ====================

    async def list_distance_slabs(self) -> List[DistanceSlab]:
        result = await self.db.execute(select(DistanceSlab).order_by(DistanceSlab.code))
        return list(result.scalars().all())

    async def create_distance_slab(self, data: DistanceSlabCreate) -> DistanceSlab:
        existing = await self._existing(
            select(DistanceSlab).where(DistanceSlab.code == data.code.value)
        )
        if existing is not None:
            raise DuplicateMapping(
                message=f"Distance slab '{data.code.value}' already exists",
                diagnostics={"conflict_id": str(existing.id)},
            )
        slab = DistanceSlab(code=data.code.value, title=data.title)
        self.db.add(slab)
        await self.db.commit()
        logger.info(f"Created distance slab {slab.code}")
        return slab

    # ==================== Metro Cities ====================

    async def list_metro_cities(self) -> List[MetroCity]:
        result = await self.db.execute(select(MetroCity).order_by(MetroCity.city))
        return list(result.scalars().all())

    async def create_metro_city(self, data: MetroCityCreate) -> MetroCity:
        existing = await self._existing(select(MetroCity).where(MetroCity.city == data.city))
        if existing is not None:
            raise DuplicateMapping(
                message=f"Metro city '{data.city}' already exists",
                diagnostics={"conflict_id": str(existing.id)},
            )
        city = MetroCity(
            city=data.city,
            state_code=data.state_code.upper(),
            is_active=data.is_active,
        )
        self.db.add(city)
        await self.db.commit()
        logger.info(f"Registered metro city {city.city}")
        return city

    # ==================== State Adjacency ====================

    async def list_state_neighbors(self, state_code: Optional[str] = None) -> List[StateNeighbor]:
        stmt = select(StateNeighbor).order_by(StateNeighbor.state_code, StateNeighbor.neighbor_state_code)
        if state_code:
            code = state_code.upper()
            stmt = stmt.where(
                or_(StateNeighbor.state_code == code, StateNeighbor.neighbor_state_code == code)
            )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_state_neighbor(self, data: StateNeighborCreate) -> StateNeighbor:
        a, b = data.state_code.upper(), data.neighbor_state_code.upper()
        # Symmetric: (A, B) and (B, A) are the same pair
        existing = await self._existing(
            select(StateNeighbor).where(
                or_(
                    and_(StateNeighbor.state_code == a, StateNeighbor.neighbor_state_code == b),
                    and_(StateNeighbor.state_code == b, StateNeighbor.neighbor_state_code == a),
                )
            )
        )
        if existing is not None:
            raise DuplicateMapping(
                message=f"States {a} and {b} are already neighbours",
                diagnostics={"conflict_id": str(existing.id)},
            )
        pair = StateNeighbor(state_code=a, neighbor_state_code=b)
        self.db.add(pair)
        await self.db.commit()
        logger.info(f"Registered neighbouring states {a}<->{b}")
        return pair

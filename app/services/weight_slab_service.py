"""Weight slab lookup and maintenance."""
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    NoMatchingWeightSlab, WeightSlabNotFound, OverlappingWeightSlab, InvalidWeightRange,
)
from app.models.reference import WeightSlab
from app.schemas.reference import WeightSlabCreate, WeightSlabUpdate


logger = logging.getLogger(__name__)


def kg_to_grams(weight_kg) -> Optional[int]:
    """Convert an uploaded kilogram weight to whole grams."""
    if weight_kg is None:
        return None
    return int(round(float(weight_kg) * 1000))


class WeightSlabService:
    """
    Weight slabs are half-open ranges [min, max). Active slabs never overlap,
    so at most one contains a given weight.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def lookup(self, weight_grams: int) -> WeightSlab:
        """Active slab containing weight_grams, lowest range first."""
        stmt = (
            select(WeightSlab)
            .where(
                and_(
                    WeightSlab.is_active == True,
                    WeightSlab.min_weight_grams <= weight_grams,
                    WeightSlab.max_weight_grams > weight_grams,
                )
            )
            .order_by(WeightSlab.min_weight_grams.asc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        slab = result.scalar_one_or_none()
        if slab is None:
            logger.warning(f"No weight slab for {weight_grams}g")
            raise NoMatchingWeightSlab(
                message=f"No matching weight slab for {weight_grams}g",
                diagnostics={"weight_grams": weight_grams},
            )
        return slab

    async def get(self, slab_id: uuid.UUID) -> WeightSlab:
        slab = await self.db.get(WeightSlab, slab_id)
        if slab is None:
            raise WeightSlabNotFound(diagnostics={"weight_slab_id": str(slab_id)})
        return slab

    async def list_slabs(self, is_active: Optional[bool] = None) -> Tuple[List[WeightSlab], int]:
        stmt = select(WeightSlab).order_by(WeightSlab.min_weight_grams.asc())
        count_stmt = select(func.count(WeightSlab.id))
        if is_active is not None:
            stmt = stmt.where(WeightSlab.is_active == is_active)
            count_stmt = count_stmt.where(WeightSlab.is_active == is_active)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def _ensure_no_overlap(
        self,
        min_grams: int,
        max_grams: int,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        stmt = select(WeightSlab).where(
            and_(
                WeightSlab.is_active == True,
                WeightSlab.min_weight_grams < max_grams,
                WeightSlab.max_weight_grams > min_grams,
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(WeightSlab.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        clash = result.scalar_one_or_none()
        if clash is not None:
            raise OverlappingWeightSlab(
                message=f"Range [{min_grams}, {max_grams}) overlaps '{clash.slab_name}'",
                diagnostics={
                    "conflict_id": str(clash.id),
                    "conflict_range": [clash.min_weight_grams, clash.max_weight_grams],
                },
            )

    async def create(self, data: WeightSlabCreate) -> WeightSlab:
        if data.is_active:
            await self._ensure_no_overlap(data.min_weight_grams, data.max_weight_grams)

        slab = WeightSlab(
            slab_name=data.slab_name,
            min_weight_grams=data.min_weight_grams,
            max_weight_grams=data.max_weight_grams,
            is_active=data.is_active,
        )
        self.db.add(slab)
        await self.db.commit()
        await self.db.refresh(slab)

        logger.info(f"Created weight slab {slab.slab_name} [{slab.min_weight_grams}, {slab.max_weight_grams})")
        return slab

    async def update(self, slab_id: uuid.UUID, data: WeightSlabUpdate) -> WeightSlab:
        slab = await self.get(slab_id)
        changes = data.model_dump(exclude_unset=True)

        min_grams = changes.get("min_weight_grams", slab.min_weight_grams)
        max_grams = changes.get("max_weight_grams", slab.max_weight_grams)
        is_active = changes.get("is_active", slab.is_active)

        if min_grams >= max_grams:
            raise InvalidWeightRange(
                diagnostics={"min_weight_grams": min_grams, "max_weight_grams": max_grams},
            )
        if is_active:
            await self._ensure_no_overlap(min_grams, max_grams, exclude_id=slab.id)

        for key, value in changes.items():
            setattr(slab, key, value)

        await self.db.commit()
        await self.db.refresh(slab)

        logger.info(f"Updated weight slab {slab.id}")
        return slab

    async def deactivate(self, slab_id: uuid.UUID) -> WeightSlab:
        slab = await self.get(slab_id)
        slab.is_active = False
        await self.db.commit()
        await self.db.refresh(slab)

        logger.info(f"Deactivated weight slab {slab.id}")
        return slab

"""
Registry of party rate slabs.

One row per business key (party, shipment type, mode, service type,
distance slab, weight slab). Creating a key that already exists updates
and reactivates that row instead of failing. Every mutation is followed by
one RateAudit row; audit writes are committed separately and their failure
never undoes the mutation.
"""
import logging
import uuid
from typing import Optional, List, Tuple, Dict, Any

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DuplicateMapping,
    RateSlabNotFound,
    PartyNotFound,
    ModeNotRecognized,
    ServiceTypeNotRecognized,
    DistanceCategoryUnresolvable,
    WeightSlabNotFound,
)
from app.models.party import Party
from app.models.rate_slab import PartyRateSlab, RateAuditAction, RATE_KEY_FIELDS
from app.models.reference import Mode, ServiceType, DistanceSlab, WeightSlab
from app.schemas.rate_slab import RateSlabUpsert, RateSlabUpdate
from app.services.rate_audit_service import RateAuditService


logger = logging.getLogger(__name__)

PRICING_FIELDS = ("rate", "fuel_pct", "packing", "handling", "gst_pct")

# key field -> (model, error raised when the referenced row is missing)
_KEY_REFERENCES = {
    "party_id": (Party, PartyNotFound),
    "mode_id": (Mode, ModeNotRecognized),
    "service_type_id": (ServiceType, ServiceTypeNotRecognized),
    "distance_slab_id": (DistanceSlab, DistanceCategoryUnresolvable),
    "weight_slab_id": (WeightSlab, WeightSlabNotFound),
}


class RateSlabRegistry:
    """Audited CRUD over PartyRateSlab."""

    def __init__(
        self,
        db: AsyncSession,
        changed_by: Optional[str] = None,
        audit_service: Optional[RateAuditService] = None,
    ):
        self.db = db
        self.changed_by = changed_by
        self.audit = audit_service or RateAuditService(db)

    # ==================== Reads ====================

    async def get(self, rate_slab_id: uuid.UUID) -> PartyRateSlab:
        rate_slab = await self.db.get(PartyRateSlab, rate_slab_id)
        if rate_slab is None:
            raise RateSlabNotFound(diagnostics={"rate_slab_id": str(rate_slab_id)})
        return rate_slab

    async def find_by_key(self, key: Dict[str, Any]) -> Optional[PartyRateSlab]:
        """Row for a business key, active or not."""
        conditions = [getattr(PartyRateSlab, field) == key[field] for field in RATE_KEY_FIELDS]
        result = await self.db.execute(select(PartyRateSlab).where(and_(*conditions)))
        return result.scalar_one_or_none()

    async def list_slabs(
        self,
        party_id: Optional[uuid.UUID] = None,
        shipment_type: Optional[str] = None,
        mode_id: Optional[uuid.UUID] = None,
        service_type_id: Optional[uuid.UUID] = None,
        distance_slab_id: Optional[uuid.UUID] = None,
        weight_slab_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = True,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PartyRateSlab], int]:
        filters = []
        if party_id:
            filters.append(PartyRateSlab.party_id == party_id)
        if shipment_type:
            filters.append(PartyRateSlab.shipment_type == shipment_type)
        if mode_id:
            filters.append(PartyRateSlab.mode_id == mode_id)
        if service_type_id:
            filters.append(PartyRateSlab.service_type_id == service_type_id)
        if distance_slab_id:
            filters.append(PartyRateSlab.distance_slab_id == distance_slab_id)
        if weight_slab_id:
            filters.append(PartyRateSlab.weight_slab_id == weight_slab_id)
        if is_active is not None:
            filters.append(PartyRateSlab.is_active == is_active)

        stmt = select(PartyRateSlab).order_by(PartyRateSlab.created_at.desc())
        count_stmt = select(func.count(PartyRateSlab.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    # ==================== Mutations ====================

    async def _check_references(self, key: Dict[str, Any]) -> None:
        for field, (model, error) in _KEY_REFERENCES.items():
            if await self.db.get(model, key[field]) is None:
                raise error(
                    message=f"{field} does not reference an existing row",
                    diagnostics={field: str(key[field])},
                )

    async def _apply_upsert(
        self,
        data: RateSlabUpsert,
    ) -> Tuple[PartyRateSlab, RateAuditAction, Optional[dict]]:
        """Find-by-key then create-or-update, flushed but not committed."""
        key = {field: getattr(data, field) for field in RATE_KEY_FIELDS}
        key["shipment_type"] = data.shipment_type.value
        await self._check_references(key)

        existing = await self.find_by_key(key)
        if existing is not None:
            before = existing.snapshot()
            for field in PRICING_FIELDS:
                setattr(existing, field, getattr(data, field))
            existing.is_active = True
            await self.db.flush()
            return existing, RateAuditAction.UPDATE, before

        rate_slab = PartyRateSlab(
            **key,
            **{field: getattr(data, field) for field in PRICING_FIELDS},
            is_active=True,
        )
        self.db.add(rate_slab)
        await self.db.flush()
        return rate_slab, RateAuditAction.CREATE, None

    async def upsert(self, data: RateSlabUpsert) -> Tuple[PartyRateSlab, RateAuditAction]:
        """
        Create a rate slab, or update and reactivate the row that already
        holds this business key.

        Returns:
            (rate_slab, action) where action is CREATE or UPDATE
        """
        try:
            rate_slab, action, before = await self._apply_upsert(data)
            await self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same key first
            await self.db.rollback()
            rate_slab, action, before = await self._apply_upsert(data)
            await self.db.commit()

        logger.info(f"Rate slab {action.value}: {rate_slab.id} rate={rate_slab.rate}")
        await self._audit(rate_slab, action, before, rate_slab.snapshot())
        return rate_slab, action

    async def batch_upsert(
        self,
        items: List[RateSlabUpsert],
    ) -> List[Tuple[PartyRateSlab, RateAuditAction]]:
        """Upsert many keys in one transaction; audits follow the commit."""
        applied = []
        try:
            for data in items:
                applied.append(await self._apply_upsert(data))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.exception(f"Batch rate upsert of {len(items)} items rolled back")
            raise

        for rate_slab, action, before in applied:
            await self._audit(rate_slab, action, before, rate_slab.snapshot())

        logger.info(f"Batch rate upsert: {len(applied)} items")
        return [(rate_slab, action) for rate_slab, action, _ in applied]

    async def update(self, rate_slab_id: uuid.UUID, data: RateSlabUpdate) -> PartyRateSlab:
        """
        Update by id. Moving the row onto a key held by another row raises
        DuplicateMapping carrying that row's id; nothing is merged.
        """
        rate_slab = await self.get(rate_slab_id)
        before = rate_slab.snapshot()
        changes = data.model_dump(exclude_unset=True)
        if changes.get("shipment_type") is not None:
            changes["shipment_type"] = data.shipment_type.value

        for field in PRICING_FIELDS + RATE_KEY_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        new_key = {field: changes.get(field, getattr(rate_slab, field)) for field in RATE_KEY_FIELDS}
        if any(field in changes for field in RATE_KEY_FIELDS):
            await self._check_references(new_key)
            conflict = await self.find_by_key(new_key)
            if conflict is not None and conflict.id != rate_slab.id:
                logger.warning(f"Rate slab {rate_slab.id} update collides with {conflict.id}")
                raise DuplicateMapping(
                    diagnostics={
                        "conflict_id": str(conflict.id),
                        "conflict_active": conflict.is_active,
                    },
                )

        for field, value in changes.items():
            setattr(rate_slab, field, value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            conflict = await self.find_by_key(new_key)
            raise DuplicateMapping(
                diagnostics={"conflict_id": str(conflict.id) if conflict else None},
            )
        await self.db.refresh(rate_slab)

        # Turning an active row inactive is a soft delete
        action = RateAuditAction.UPDATE
        if before["is_active"] and not rate_slab.is_active:
            action = RateAuditAction.DELETE

        logger.info(f"Rate slab {action.value}: {rate_slab.id}")
        await self._audit(rate_slab, action, before, rate_slab.snapshot())
        return rate_slab

    async def deactivate(self, rate_slab_id: uuid.UUID) -> PartyRateSlab:
        """Soft delete: the row stays so old invoice lines keep their meaning."""
        rate_slab = await self.get(rate_slab_id)
        before = rate_slab.snapshot()
        rate_slab.is_active = False
        await self.db.commit()
        await self.db.refresh(rate_slab)

        logger.info(f"Rate slab DELETE: {rate_slab.id}")
        await self._audit(rate_slab, RateAuditAction.DELETE, before, rate_slab.snapshot())
        return rate_slab

    async def _audit(
        self,
        rate_slab: PartyRateSlab,
        action: RateAuditAction,
        before: Optional[dict],
        after: Optional[dict],
    ) -> None:
        """Best-effort audit write; the mutation is already committed."""
        try:
            await self.audit.record(
                rate_slab_id=rate_slab.id,
                action=action,
                before_data=before,
                after_data=after,
                changed_by=self.changed_by,
            )
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to write {action.value} audit for rate slab {rate_slab.id}")
            await self.db.refresh(rate_slab)

from typing import Optional, Dict, Any, List, Tuple
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rate_slab import RateAudit, RateAuditAction


class RateAuditService:
    """
    Append-only audit trail for party rate slab mutations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        rate_slab_id: uuid.UUID,
        action: RateAuditAction,
        before_data: Optional[Dict[str, Any]] = None,
        after_data: Optional[Dict[str, Any]] = None,
        changed_by: Optional[str] = None,
    ) -> RateAudit:
        """
        Write and commit one audit row.

        Args:
            rate_slab_id: ID of the mutated rate slab
            action: CREATE, UPDATE or DELETE
            before_data: Snapshot before the mutation (updates/deletes)
            after_data: Snapshot after the mutation (creates/updates)
            changed_by: ID of the user performing the mutation

        Returns:
            The created RateAudit entry
        """
        audit = RateAudit(
            party_rate_slab_id=rate_slab_id,
            action=action.value,
            before_data=before_data,
            after_data=after_data,
            changed_by=changed_by,
        )
        self.db.add(audit)
        await self.db.commit()
        return audit

    async def list_audits(
        self,
        rate_slab_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[RateAudit], int]:
        """List audit rows, newest first."""
        stmt = select(RateAudit).order_by(RateAudit.changed_at.desc(), RateAudit.id.desc())
        count_stmt = select(func.count(RateAudit.id))

        if rate_slab_id:
            stmt = stmt.where(RateAudit.party_rate_slab_id == rate_slab_id)
            count_stmt = count_stmt.where(RateAudit.party_rate_slab_id == rate_slab_id)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

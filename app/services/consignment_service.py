"""Consignment intake, listing and pricing of stored rows."""
import logging
import uuid
from typing import Optional, List, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BillingError,
    AlreadyInvoiced,
    ConsignmentNotFound,
    MissingShipmentData,
)
from app.models.consignment import ConsignmentRow
from app.models.party import normalize_party_name
from app.schemas.consignment import ConsignmentRowCreate
from app.services.address_classifier import ReferenceData, load_reference_data
from app.services.rate_resolver import RateResolver, ResolvedRate, infer_shipment_type
from app.services.weight_slab_service import kg_to_grams


logger = logging.getLogger(__name__)


class ConsignmentService:
    """Stores already-parsed booking rows and applies resolved rates to them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_rows(self, rows: List[ConsignmentRowCreate]) -> List[ConsignmentRow]:
        created = [ConsignmentRow(**row.model_dump()) for row in rows]
        self.db.add_all(created)
        await self.db.commit()
        logger.info(f"Imported {len(created)} consignment rows")
        return created

    async def get_row(self, row_id: uuid.UUID) -> ConsignmentRow:
        row = await self.db.get(ConsignmentRow, row_id)
        if row is None:
            raise ConsignmentNotFound(diagnostics={"missing_ids": [str(row_id)]})
        return row

    async def list_rows(
        self,
        party_name: Optional[str] = None,
        billed: Optional[bool] = None,
        invoice_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[ConsignmentRow], int]:
        filters = []
        if normalize_party_name(party_name):
            filters.append(
                func.lower(func.trim(ConsignmentRow.sender_name)) == normalize_party_name(party_name)
            )
        if billed is True:
            filters.append(ConsignmentRow.invoice_id.is_not(None))
        elif billed is False:
            filters.append(ConsignmentRow.invoice_id.is_(None))
        if invoice_id:
            filters.append(ConsignmentRow.invoice_id == invoice_id)

        stmt = select(ConsignmentRow).order_by(
            ConsignmentRow.booking_date.desc(), ConsignmentRow.created_at.desc()
        )
        count_stmt = select(func.count(ConsignmentRow.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def _resolve_for_row(self, resolver: RateResolver, row: ConsignmentRow) -> ResolvedRate:
        if row.is_billed:
            raise AlreadyInvoiced.for_identifiers([row.display_identifier], 1)

        missing = [
            name for name, value in (
                ("sender_name", row.sender_name),
                ("mode", row.mode),
                ("service_type", row.service_type),
            )
            if not (value or "").strip()
        ]
        weight_grams = kg_to_grams(row.weight_kg) or kg_to_grams(row.chargeable_weight_kg)
        if weight_grams is None:
            missing.append("weight_kg")
        if missing:
            raise MissingShipmentData(
                message=f"Consignment {row.display_identifier} is missing {', '.join(missing)}",
                diagnostics={"row_id": str(row.id), "missing": missing},
            )

        mode = await resolver.resolve_mode(row.mode)
        return await resolver.resolve(
            mode_code=row.mode,
            service_type_code=row.service_type,
            shipment_type=infer_shipment_type(mode),
            party_name=row.sender_name,
            origin_address=row.sender_address,
            destination_address=row.recipient_address,
            region=row.region,
            weight_grams=weight_grams,
        )

    def _apply(self, row: ConsignmentRow, resolved: ResolvedRate) -> None:
        row.calculated_amount = resolved.breakdown.total
        row.shipment_type = resolved.shipment_type
        row.region = resolved.distance_slab.title
        row.pricing_meta = resolved.pricing_meta()

    async def price_row(
        self,
        row_id: uuid.UUID,
        reference: Optional[ReferenceData] = None,
    ) -> Tuple[ConsignmentRow, ResolvedRate]:
        """Resolve the rate for a stored row and write calculated_amount / pricing_meta."""
        reference = reference or await load_reference_data(self.db)
        resolver = RateResolver(self.db, reference)

        row = await self.get_row(row_id)
        resolved = await self._resolve_for_row(resolver, row)
        self._apply(row, resolved)
        await self.db.commit()

        logger.info(f"Priced consignment {row.display_identifier}: {resolved.breakdown.total}")
        return row, resolved

    async def price_rows(self, row_ids: List[uuid.UUID]) -> List[dict]:
        """
        Price each row independently; one row failing does not stop the rest.

        Returns one outcome dict per requested id.
        """
        reference = await load_reference_data(self.db)
        resolver = RateResolver(self.db, reference)
        outcomes = []

        for row_id in dict.fromkeys(row_ids):
            try:
                row = await self.get_row(row_id)
                resolved = await self._resolve_for_row(resolver, row)
            except BillingError as e:
                outcomes.append({
                    "row_id": row_id,
                    "ok": False,
                    "error_kind": e.kind,
                    "message": e.message,
                    "diagnostics": e.diagnostics,
                })
                continue

            self._apply(row, resolved)
            outcomes.append({
                "row_id": row_id,
                "ok": True,
                "calculated_amount": resolved.breakdown.total,
                "breakdown": resolved.breakdown.to_dict(),
            })

        await self.db.commit()
        priced = sum(1 for outcome in outcomes if outcome["ok"])
        logger.info(f"Bulk pricing: {priced} priced, {len(outcomes) - priced} failed")
        return outcomes

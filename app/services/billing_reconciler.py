"""
Billing reconciliation: unbilled consignment rows -> exactly one invoice.

A batch is invoiced whole or not at all. It is rejected when its rows
belong to more than one party or when any row already carries an invoice.
The double-billing check and the writes share one transaction with the
rows locked FOR UPDATE.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.exceptions import (
    BillingError,
    AlreadyInvoiced,
    ConsignmentNotFound,
    EmptyBatch,
    InvoiceHasPayments,
    InvoiceNotFound,
    MissingShipmentData,
    MixedPartyBatch,
)
from app.models.billing import Invoice, InvoiceLine
from app.models.consignment import ConsignmentRow
from app.models.party import Party, normalize_party_name
from app.schemas.billing import ReconcileRequest, RateOverrides
from app.services.invoice_number_service import InvoiceNumberService
from app.services.rate_resolver import RateBreakdown, compute_breakdown, round2, to_decimal, ZERO


logger = logging.getLogger(__name__)


class BillingStatus(str, Enum):
    PENDING = "Pending"
    BILLED = "Billed"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


def derive_billing_status(unbilled_count: int, billed_amount, paid_amount) -> BillingStatus:
    """Read-time status label; never stored."""
    billed = to_decimal(billed_amount)
    paid = to_decimal(paid_amount)

    if unbilled_count > 0:
        return BillingStatus.PENDING
    if billed > ZERO and paid >= billed:
        return BillingStatus.PAID
    if paid > ZERO:
        return BillingStatus.PARTIALLY_PAID
    if billed > ZERO:
        return BillingStatus.BILLED
    return BillingStatus.PENDING


def fallback_amount(row: ConsignmentRow) -> Decimal:
    """calculated_amount -> final_collected -> retail_price -> 0"""
    for value in (row.calculated_amount, row.final_collected, row.retail_price):
        if value is not None:
            return round2(value)
    return round2(ZERO)


def price_line(row: ConsignmentRow, overrides: Optional[RateOverrides] = None) -> RateBreakdown:
    """
    Breakdown billed for one row.

    With overrides, every supplied component replaces the row's own; the
    rest come from the row's stored breakup, else zero (base falls back to
    the row amount). Without overrides the stored breakup is used as-is, and
    a row with no breakup is billed at its fallback amount with no GST.
    """
    stored = RateBreakdown.from_json(row.rate_breakup) if row.rate_breakup else None

    if overrides is not None and not overrides.is_empty():
        def pick(name: str, default):
            value = getattr(overrides, name)
            if value is not None:
                return value
            if stored is not None:
                return getattr(stored, name)
            return default

        return compute_breakdown(
            base=pick("base", fallback_amount(row)),
            fuel_pct=pick("fuel_pct", ZERO),
            packing=pick("packing", ZERO),
            handling=pick("handling", ZERO),
            gst_pct=pick("gst_pct", ZERO),
        )

    if stored is not None:
        return RateBreakdown(
            base=round2(stored.base),
            fuel_pct=stored.fuel_pct,
            fuel=round2(stored.fuel),
            packing=round2(stored.packing),
            handling=round2(stored.handling),
            gst_pct=stored.gst_pct,
            gst=round2(stored.gst),
            subtotal=round2(stored.subtotal),
            total=round2(stored.total),
        )

    amount = fallback_amount(row)
    return RateBreakdown(
        base=amount,
        fuel_pct=ZERO,
        fuel=round2(ZERO),
        packing=round2(ZERO),
        handling=round2(ZERO),
        gst_pct=ZERO,
        gst=round2(ZERO),
        subtotal=amount,
        total=amount,
    )


def line_description(row: ConsignmentRow) -> str:
    parts = [f"Consignment {row.display_identifier}"]
    parts.extend(value for value in (row.mode, row.service_type, row.region) if value)
    return " - ".join(parts)[:255]


@dataclass
class BillingSummary:
    party_name: str
    party_id: Optional[uuid.UUID]
    date_from: Optional[date]
    date_to: Optional[date]
    consignment_count: int
    unbilled_count: int
    unbilled_amount: Decimal
    billed_amount: Decimal
    paid_amount: Decimal
    status: BillingStatus


class BillingReconciler:
    """Creates, reads and deletes party invoices built from consignment rows."""

    def __init__(
        self,
        db: AsyncSession,
        created_by: Optional[str] = None,
        preview_limit: Optional[int] = None,
    ):
        self.db = db
        self.created_by = created_by
        self.preview_limit = preview_limit or settings.ALREADY_INVOICED_PREVIEW_LIMIT

    # ==================== Reconcile ====================

    async def _lock_rows(self, row_ids: List[uuid.UUID]) -> List[ConsignmentRow]:
        result = await self.db.execute(
            select(ConsignmentRow)
            .where(ConsignmentRow.id.in_(row_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        rows_by_id = {row.id: row for row in result.scalars().all()}

        missing = [str(row_id) for row_id in row_ids if row_id not in rows_by_id]
        if missing:
            raise ConsignmentNotFound(diagnostics={"missing_ids": missing})

        # Lines follow the order the caller selected the rows in
        return [rows_by_id[row_id] for row_id in row_ids]

    async def _find_or_create_party(self, party_name: str) -> Party:
        name_key = normalize_party_name(party_name)
        result = await self.db.execute(select(Party).where(Party.name_key == name_key))
        party = result.scalar_one_or_none()
        if party is None:
            party = Party(party_name=party_name.strip(), name_key=name_key)
            self.db.add(party)
            await self.db.flush()
            logger.info(f"Created party stub '{party.party_name}'")
        return party

    def _select_party_rows(
        self,
        rows: List[ConsignmentRow],
        party_filter: Optional[str],
    ) -> Tuple[List[ConsignmentRow], str]:
        """Apply the party filter and enforce a single non-blank party."""
        filter_key = normalize_party_name(party_filter)
        if filter_key:
            rows = [row for row in rows if normalize_party_name(row.sender_name) == filter_key]
            if not rows:
                raise EmptyBatch(
                    message=f"No selected consignments belong to '{party_filter.strip()}'",
                    diagnostics={"party_name": party_filter},
                )

        names = {}
        for row in rows:
            key = normalize_party_name(row.sender_name)
            if key:
                names.setdefault(key, row.sender_name.strip())

        if len(names) > 1:
            raise MixedPartyBatch(diagnostics={"parties": sorted(names.values())})

        if filter_key:
            return rows, party_filter.strip()
        if not names:
            raise MissingShipmentData(
                message="Selected consignments have no sender name",
                diagnostics={"row_ids": [str(row.id) for row in rows]},
            )
        return rows, next(iter(names.values()))

    async def reconcile(self, request: ReconcileRequest) -> Tuple[Invoice, Party]:
        """
        Turn the selected rows into one invoice.

        Raises:
            ConsignmentNotFound, EmptyBatch, MixedPartyBatch,
            MissingShipmentData, AlreadyInvoiced
        """
        try:
            rows = await self._lock_rows(request.consignment_row_ids)
            rows, party_name = self._select_party_rows(rows, request.party_name)

            already_billed = [row.display_identifier for row in rows if row.is_billed]
            if already_billed:
                raise AlreadyInvoiced.for_identifiers(already_billed, self.preview_limit)

            party = await self._find_or_create_party(party_name)

            overrides = request.overrides
            priced = [(row, price_line(row, overrides)) for row in rows]

            subtotal = sum((breakdown.subtotal for _, breakdown in priced), ZERO)
            tax_amount = sum((breakdown.gst for _, breakdown in priced), ZERO)
            additional = round2(request.additional_charges)
            invoice_date = request.invoice_date or date.today()

            invoice_number = await InvoiceNumberService(self.db).next_number(invoice_date)
            invoice = Invoice(
                invoice_number=invoice_number,
                party_id=party.id,
                invoice_date=invoice_date,
                subtotal=round2(subtotal),
                tax_amount=round2(tax_amount),
                additional_charges=additional,
                total_amount=round2(subtotal + tax_amount + additional),
                received_amount=round2(ZERO),
                notes=request.notes,
                slab_breakdown=(
                    {"overrides": overrides.model_dump(mode="json", exclude_none=True)}
                    if overrides is not None and not overrides.is_empty()
                    else None
                ),
                created_by=self.created_by,
                lines=[
                    InvoiceLine(
                        line_number=line_number,
                        consignment_row_id=row.id,
                        consignment_no=row.consignment_no,
                        description=line_description(row),
                        booking_date=row.booking_date,
                        quantity=1,
                        base=breakdown.base,
                        fuel=breakdown.fuel,
                        packing=breakdown.packing,
                        handling=breakdown.handling,
                        gst_pct=breakdown.gst_pct,
                        subtotal=breakdown.subtotal,
                        gst=breakdown.gst,
                        amount=breakdown.total,
                    )
                    for line_number, (row, breakdown) in enumerate(priced, start=1)
                ],
            )
            self.db.add(invoice)
            await self.db.flush()

            for row, _ in priced:
                row.invoice_id = invoice.id

            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("Reconciliation rolled back")
            raise

        logger.info(
            f"Created invoice {invoice.invoice_number} for '{party.party_name}': "
            f"{len(priced)} consignments, total={invoice.total_amount}"
        )
        return invoice, party

    # ==================== Invoice reads ====================

    async def get_invoice(self, invoice_id: uuid.UUID) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.lines), selectinload(Invoice.allocations))
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFound(diagnostics={"invoice_id": str(invoice_id)})
        return invoice

    async def list_invoices(
        self,
        party_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Invoice], int]:
        stmt = select(Invoice).order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
        count_stmt = select(func.count(Invoice.id))
        if party_id:
            stmt = stmt.where(Invoice.party_id == party_id)
            count_stmt = count_stmt.where(Invoice.party_id == party_id)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    # ==================== Invoice deletion ====================

    async def delete_invoice(self, invoice_id: uuid.UUID) -> Tuple[str, int]:
        """
        Delete an unpaid invoice and return its rows to Unbilled.

        Returns:
            (invoice_number, number of consignment rows released)
        """
        try:
            result = await self.db.execute(
                select(Invoice)
                .options(
                    selectinload(Invoice.allocations),
                    selectinload(Invoice.lines),
                    selectinload(Invoice.consignments),
                )
                .where(Invoice.id == invoice_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            invoice = result.scalar_one_or_none()
            if invoice is None:
                raise InvoiceNotFound(diagnostics={"invoice_id": str(invoice_id)})
            if invoice.allocations:
                raise InvoiceHasPayments(
                    diagnostics={
                        "invoice_id": str(invoice.id),
                        "allocation_count": len(invoice.allocations),
                    },
                )

            invoice_number = invoice.invoice_number
            released_count = len(invoice.consignments)
            for row in invoice.consignments:
                row.invoice_id = None
            await self.db.flush()

            await self.db.delete(invoice)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception(f"Deleting invoice {invoice_id} rolled back")
            raise

        logger.info(f"Deleted invoice {invoice_number}; released {released_count} consignments")
        return invoice_number, released_count

    # ==================== Status ====================

    async def party_billing_summary(
        self,
        party_name: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> BillingSummary:
        """Billed / paid / unbilled totals and status for one party and period."""
        name_key = normalize_party_name(party_name)

        filters = [func.lower(func.trim(ConsignmentRow.sender_name)) == name_key]
        if date_from:
            filters.append(ConsignmentRow.booking_date >= date_from)
        if date_to:
            filters.append(ConsignmentRow.booking_date <= date_to)

        result = await self.db.execute(select(ConsignmentRow).where(and_(*filters)))
        rows = list(result.scalars().all())

        unbilled = [row for row in rows if row.invoice_id is None]
        unbilled_amount = sum((fallback_amount(row) for row in unbilled), ZERO)
        invoice_ids = {row.invoice_id for row in rows if row.invoice_id is not None}

        billed_amount = ZERO
        paid_amount = ZERO
        if invoice_ids:
            totals = await self.db.execute(
                select(
                    func.coalesce(func.sum(Invoice.total_amount), 0),
                    func.coalesce(func.sum(Invoice.received_amount), 0),
                ).where(Invoice.id.in_(invoice_ids))
            )
            billed, paid = totals.one()
            billed_amount = round2(billed)
            paid_amount = round2(paid)

        party_result = await self.db.execute(select(Party).where(Party.name_key == name_key))
        party = party_result.scalar_one_or_none()

        return BillingSummary(
            party_name=party.party_name if party else party_name.strip(),
            party_id=party.id if party else None,
            date_from=date_from,
            date_to=date_to,
            consignment_count=len(rows),
            unbilled_count=len(unbilled),
            unbilled_amount=round2(unbilled_amount),
            billed_amount=billed_amount,
            paid_amount=paid_amount,
            status=derive_billing_status(len(unbilled), billed_amount, paid_amount),
        )

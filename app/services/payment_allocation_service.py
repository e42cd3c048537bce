"""
Party payments and their allocation to invoices.

An invoice's received_amount is always recomputed as the sum of its
allocation rows, never incremented, so re-running the recompute after a
retry or a partial failure converges to the true figure.
"""
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, List, Iterable, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    BillingError,
    AllocationMismatch,
    InvoiceNotFound,
    PartyNotFound,
    PaymentNotFound,
)
from app.models.billing import Invoice, PartyPayment, PaymentAllocation
from app.models.party import Party, normalize_party_name
from app.schemas.payment import PartyPaymentCreate, AllocationItem
from app.services.rate_resolver import round2, ZERO


logger = logging.getLogger(__name__)


class PaymentAllocationService:
    """Records party payments, splits them across invoices and reports balances."""

    def __init__(self, db: AsyncSession, created_by: Optional[str] = None):
        self.db = db
        self.created_by = created_by

    async def _get_party(
        self,
        party_id: Optional[uuid.UUID] = None,
        party_name: Optional[str] = None,
    ) -> Party:
        party = None
        if party_id is not None:
            party = await self.db.get(Party, party_id)
        elif normalize_party_name(party_name):
            result = await self.db.execute(
                select(Party).where(Party.name_key == normalize_party_name(party_name))
            )
            party = result.scalar_one_or_none()
        if party is None:
            raise PartyNotFound(
                diagnostics={
                    "party_id": str(party_id) if party_id else None,
                    "party_name": party_name,
                },
            )
        return party

    async def _lock_invoices(self, invoice_ids: Iterable[uuid.UUID]) -> List[Invoice]:
        ids = list(dict.fromkeys(invoice_ids))
        if not ids:
            return []
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.id.in_(ids))
            .order_by(Invoice.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invoices = list(result.scalars().all())
        found = {invoice.id for invoice in invoices}
        missing = [str(invoice_id) for invoice_id in ids if invoice_id not in found]
        if missing:
            raise InvoiceNotFound(diagnostics={"invoice_ids": missing})
        return invoices

    def _validate_allocations(
        self,
        party: Party,
        invoices: List[Invoice],
        allocations: List[AllocationItem],
        payment_amount: Decimal,
        already_allocated: Decimal = ZERO,
    ) -> None:
        foreign = [str(invoice.id) for invoice in invoices if invoice.party_id != party.id]
        if foreign:
            raise AllocationMismatch(
                message="Allocations reference invoices of another party",
                diagnostics={"party_id": str(party.id), "invoice_ids": foreign},
            )

        requested = sum((round2(item.amount) for item in allocations), ZERO)
        if already_allocated + requested > round2(payment_amount):
            raise AllocationMismatch(
                message="Allocations exceed the payment amount",
                diagnostics={
                    "payment_amount": str(round2(payment_amount)),
                    "already_allocated": str(round2(already_allocated)),
                    "requested": str(requested),
                },
            )

    async def recompute_received_amounts(self, invoice_ids: Iterable[uuid.UUID]) -> List[Invoice]:
        """
        Set received_amount = SUM(allocations) for each invoice. Does not commit.

        Safe to run any number of times with the same allocation rows.
        """
        invoices = await self._lock_invoices(invoice_ids)
        if not invoices:
            return []

        await self.db.flush()
        result = await self.db.execute(
            select(PaymentAllocation.invoice_id, func.sum(PaymentAllocation.amount))
            .where(PaymentAllocation.invoice_id.in_([invoice.id for invoice in invoices]))
            .group_by(PaymentAllocation.invoice_id)
        )
        sums = {invoice_id: total for invoice_id, total in result.all()}

        for invoice in invoices:
            invoice.received_amount = round2(sums.get(invoice.id) or ZERO)
        await self.db.flush()
        return invoices

    async def record_party_payment(
        self,
        data: PartyPaymentCreate,
    ) -> Tuple[PartyPayment, List[Invoice]]:
        """
        Record a payment and its allocations, then recompute the touched invoices.

        Returns:
            (payment, updated invoices)
        """
        try:
            party = await self._get_party(data.party_id, data.party_name)
            invoices = await self._lock_invoices(item.invoice_id for item in data.allocations)
            self._validate_allocations(party, invoices, data.allocations, data.amount)

            payment = PartyPayment(
                party_id=party.id,
                payment_date=data.payment_date or date.today(),
                amount=round2(data.amount),
                payment_method=data.payment_method,
                reference_no=data.reference_no,
                notes=data.notes,
                created_by=self.created_by,
            )
            self.db.add(payment)
            await self.db.flush()

            for item in data.allocations:
                self.db.add(PaymentAllocation(
                    party_payment_id=payment.id,
                    invoice_id=item.invoice_id,
                    amount=round2(item.amount),
                ))

            updated = await self.recompute_received_amounts(invoice.id for invoice in invoices)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception("Recording party payment rolled back")
            raise

        logger.info(
            f"Recorded payment {payment.id} of {payment.amount} for '{party.party_name}' "
            f"across {len(updated)} invoices"
        )
        return await self.get_payment(payment.id), updated

    async def add_allocations(
        self,
        payment_id: uuid.UUID,
        allocations: List[AllocationItem],
    ) -> Tuple[PartyPayment, List[Invoice]]:
        """Allocate more of an existing payment."""
        try:
            payment = await self.get_payment(payment_id, for_update=True)
            party = await self._get_party(payment.party_id)
            invoices = await self._lock_invoices(item.invoice_id for item in allocations)
            already = sum((allocation.amount for allocation in payment.allocations), ZERO)
            self._validate_allocations(party, invoices, allocations, payment.amount, round2(already))

            for item in allocations:
                self.db.add(PaymentAllocation(
                    party_payment_id=payment.id,
                    invoice_id=item.invoice_id,
                    amount=round2(item.amount),
                ))

            updated = await self.recompute_received_amounts(invoice.id for invoice in invoices)
            await self.db.commit()
        except BillingError:
            await self.db.rollback()
            raise
        except Exception:
            await self.db.rollback()
            logger.exception(f"Adding allocations to payment {payment_id} rolled back")
            raise

        logger.info(f"Added {len(allocations)} allocations to payment {payment_id}")
        return await self.get_payment(payment_id), updated

    async def get_payment(self, payment_id: uuid.UUID, for_update: bool = False) -> PartyPayment:
        stmt = (
            select(PartyPayment)
            .options(selectinload(PartyPayment.allocations))
            .where(PartyPayment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        payment = result.scalar_one_or_none()
        if payment is None:
            raise PaymentNotFound(diagnostics={"payment_id": str(payment_id)})
        return payment

    async def list_payments(
        self,
        party_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PartyPayment], int]:
        stmt = (
            select(PartyPayment)
            .options(selectinload(PartyPayment.allocations))
            .order_by(PartyPayment.payment_date.desc(), PartyPayment.created_at.desc())
        )
        count_stmt = select(func.count(PartyPayment.id))
        if party_id:
            stmt = stmt.where(PartyPayment.party_id == party_id)
            count_stmt = count_stmt.where(PartyPayment.party_id == party_id)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def party_outstanding(
        self,
        party_id: Optional[uuid.UUID] = None,
        party_name: Optional[str] = None,
    ) -> dict:
        """Open invoices and outstanding = max(total - received, 0) per invoice."""
        party = await self._get_party(party_id, party_name)
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.party_id == party.id)
            .order_by(Invoice.invoice_date.asc(), Invoice.invoice_number.asc())
        )
        invoices = list(result.scalars().all())

        total_billed = sum((invoice.total_amount for invoice in invoices), ZERO)
        total_received = sum((invoice.received_amount for invoice in invoices), ZERO)
        open_invoices = [invoice for invoice in invoices if invoice.outstanding_amount > ZERO]
        total_outstanding = sum((invoice.outstanding_amount for invoice in open_invoices), ZERO)

        return {
            "party_id": party.id,
            "party_name": party.party_name,
            "total_billed": round2(total_billed),
            "total_received": round2(total_received),
            "total_outstanding": round2(total_outstanding),
            "open_invoices": open_invoices,
        }

"""Invoices, invoice lines, invoice numbering and party payments."""
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import (
    String, Boolean, DateTime, Date, ForeignKey, Integer, Text, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType, MoneyType, PercentType

if TYPE_CHECKING:
    from app.models.party import Party
    from app.models.consignment import ConsignmentRow


class Invoice(Base):
    """
    Party invoice produced by reconciliation.

    Totals are derived from the lines and never hand-edited:
    total_amount = subtotal + tax_amount + additional_charges.
    received_amount is recomputed from payment allocations.
    """
    __tablename__ = "invoices"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    party_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("parties.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    additional_charges: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    received_amount: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    slab_breakdown: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Rate overrides applied when the batch was repriced"
    )

    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    party: Mapped["Party"] = relationship("Party")
    lines: Mapped[List["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number"
    )
    allocations: Mapped[List["PaymentAllocation"]] = relationship(
        "PaymentAllocation",
        back_populates="invoice"
    )
    consignments: Mapped[List["ConsignmentRow"]] = relationship(
        "ConsignmentRow",
        back_populates="invoice"
    )

    @property
    def outstanding_amount(self) -> Decimal:
        return max(self.total_amount - (self.received_amount or Decimal("0")), Decimal("0"))

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', total={self.total_amount})>"


class InvoiceLine(Base):
    """One line per consignment; description and amounts are immutable once written."""
    __tablename__ = "invoice_lines"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    consignment_row_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)
    consignment_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    booking_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Breakdown provenance
    base: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    fuel: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    packing: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    handling: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    gst_pct: Mapped[Decimal] = mapped_column(PercentType, default=Decimal("0"), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    gst: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")

    def __repr__(self) -> str:
        return f"<InvoiceLine(invoice_id='{self.invoice_id}', amount={self.amount})>"


class InvoiceNumberSequence(Base):
    """
    Invoice number sequence management.
    Maintains series-wise number sequences per financial year.
    """
    __tablename__ = "invoice_number_sequences"
    __table_args__ = (
        UniqueConstraint("series_code", "financial_year", name="uq_invoice_sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    series_code: Mapped[str] = mapped_column(String(20), nullable=False, comment="e.g., PI")
    financial_year: Mapped[str] = mapped_column(String(10), nullable=False, comment="e.g., 2026-27")
    prefix: Mapped[str] = mapped_column(String(30), nullable=False, comment="e.g., PI/2026-27/")
    current_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    padding_length: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PartyPayment(Base):
    """Party-level receipt, split across invoices through allocations."""
    __tablename__ = "party_payments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    party_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("parties.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference_no: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    allocations: Mapped[List["PaymentAllocation"]] = relationship(
        "PaymentAllocation",
        back_populates="party_payment",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<PartyPayment(party_id='{self.party_id}', amount={self.amount})>"


class PaymentAllocation(Base):
    """Portion of a party payment applied to one invoice."""
    __tablename__ = "payment_allocations"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    party_payment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("party_payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    party_payment: Mapped["PartyPayment"] = relationship("PartyPayment", back_populates="allocations")
    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="allocations")

    def __repr__(self) -> str:
        return f"<PaymentAllocation(invoice_id='{self.invoice_id}', amount={self.amount})>"

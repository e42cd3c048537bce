import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Date, ForeignKey, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType, MoneyType

if TYPE_CHECKING:
    from app.models.billing import Invoice


class ConsignmentRow(Base):
    """
    One shipment event imported from a booking upload.

    invoice_id is the reconciliation marker: NULL means unbilled. It moves
    Unbilled -> Billed exactly once, when the row is reconciled into an
    invoice, and is cleared only when that invoice is deleted.
    """
    __tablename__ = "consignment_rows"
    __table_args__ = (
        Index("idx_consignment_sender", "sender_name"),
        Index("idx_consignment_invoice", "invoice_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    # Identification
    consignment_no: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    booking_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    booking_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Parties and addresses
    sender_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sender_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recipient_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    recipient_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Shipment attributes as uploaded
    mode: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    service_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    shipment_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Distance slab title, filled in when the row is priced"
    )
    weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)
    chargeable_weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True)

    # Amounts
    retail_price: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    final_collected: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    calculated_amount: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    pricing_meta: Mapped[Optional[dict]] = mapped_column(
        JSONType,
        nullable=True,
        comment="Resolved ids, distance diagnostics and rate_breakup"
    )

    # Reconciliation marker
    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True
    )

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

    invoice: Mapped[Optional["Invoice"]] = relationship("Invoice", back_populates="consignments")

    @property
    def is_billed(self) -> bool:
        return self.invoice_id is not None

    @property
    def display_identifier(self) -> str:
        return self.consignment_no or self.booking_reference or str(self.id)

    @property
    def rate_breakup(self) -> Optional[dict]:
        if not self.pricing_meta:
            return None
        return self.pricing_meta.get("rate_breakup") or None

    def __repr__(self) -> str:
        return f"<ConsignmentRow(no='{self.consignment_no}', invoice_id='{self.invoice_id}')>"

"""Party rate slabs (the resolvable rate records) and their audit trail."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, Any

from sqlalchemy import String, Boolean, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, JSONType, MoneyType, PercentType

if TYPE_CHECKING:
    from app.models.party import Party
    from app.models.reference import Mode, ServiceType, DistanceSlab, WeightSlab


class ShipmentType(str, Enum):
    """Shipment type axis of the rate key."""
    DOCUMENT = "DOCUMENT"
    NON_DOCUMENT = "NON_DOCUMENT"


class RateAuditAction(str, Enum):
    """Mutation recorded in rate_audits."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# Columns that make up the business key of a party rate slab
RATE_KEY_FIELDS = (
    "party_id",
    "shipment_type",
    "mode_id",
    "service_type_id",
    "distance_slab_id",
    "weight_slab_id",
)


class PartyRateSlab(Base):
    """
    Priced rule for one (party, shipment type, mode, service type,
    distance slab, weight slab) combination.

    The six-way key is unique across all rows, active or not: a logically
    repeated create reactivates and updates the existing row instead of
    inserting a second one. Rows are soft-deleted so historical invoice
    lines stay meaningful.
    """
    __tablename__ = "party_rate_slabs"
    __table_args__ = (
        UniqueConstraint(
            "party_id", "shipment_type", "mode_id",
            "service_type_id", "distance_slab_id", "weight_slab_id",
            name="uq_party_rate_slab_key"
        ),
        Index("idx_party_rate_slab_party", "party_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    # Business key
    party_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("parties.id", ondelete="CASCADE"),
        nullable=False
    )
    shipment_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="DOCUMENT, NON_DOCUMENT"
    )
    mode_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("modes.id"), nullable=False)
    service_type_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("service_types.id"), nullable=False
    )
    distance_slab_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("distance_slabs.id"), nullable=False
    )
    weight_slab_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("weight_slabs.id"), nullable=False
    )

    # Pricing
    rate: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    fuel_pct: Mapped[Decimal] = mapped_column(PercentType, default=Decimal("0"), nullable=False)
    packing: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    handling: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0"), nullable=False)
    gst_pct: Mapped[Decimal] = mapped_column(PercentType, default=Decimal("0"), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

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
    weight_slab: Mapped["WeightSlab"] = relationship("WeightSlab")

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe copy of the row for audit before/after data."""
        return {
            "id": str(self.id) if self.id else None,
            "party_id": str(self.party_id),
            "shipment_type": self.shipment_type,
            "mode_id": str(self.mode_id),
            "service_type_id": str(self.service_type_id),
            "distance_slab_id": str(self.distance_slab_id),
            "weight_slab_id": str(self.weight_slab_id),
            "rate": str(self.rate),
            "fuel_pct": str(self.fuel_pct),
            "packing": str(self.packing),
            "handling": str(self.handling),
            "gst_pct": str(self.gst_pct),
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return f"<PartyRateSlab(party_id='{self.party_id}', rate={self.rate}, active={self.is_active})>"


class RateAudit(Base):
    """
    Append-only record of one rate slab mutation.
    Never updated or deleted.
    """
    __tablename__ = "rate_audits"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    party_rate_slab_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("party_rate_slabs.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    action: Mapped[str] = mapped_column(String(10), nullable=False, comment="CREATE, UPDATE, DELETE")

    before_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    after_data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    changed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<RateAudit(action='{self.action}', slab='{self.party_rate_slab_id}')>"

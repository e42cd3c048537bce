"""Reference masters used by rate resolution: modes, service types, distance slabs,
metro cities, state adjacency and weight slabs."""
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, Boolean, DateTime, Integer, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


class DistanceCategory(str, Enum):
    """Coarse geographic classification of a shipment."""
    METRO_CITIES = "METRO_CITIES"      # Both ends in registered metro cities
    WITHIN_STATE = "WITHIN_STATE"      # Same state
    OUT_OF_STATE = "OUT_OF_STATE"      # Neighbouring states
    OTHER_STATE = "OTHER_STATE"        # Non-adjacent states


class Mode(Base):
    """Booking mode master (DOCUMENT, NON_DOCUMENT, ...)."""
    __tablename__ = "modes"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Mode(code='{self.code}')>"


class ServiceType(Base):
    """Service type master (AIR, SURFACE, EXPRESS, ...)."""
    __tablename__ = "service_types"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ServiceType(code='{self.code}')>"


class DistanceSlab(Base):
    """Lookup row backing a DistanceCategory code."""
    __tablename__ = "distance_slabs"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        comment="METRO_CITIES, WITHIN_STATE, OUT_OF_STATE, OTHER_STATE"
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<DistanceSlab(code='{self.code}', title='{self.title}')>"


class MetroCity(Base):
    """Membership set of metro cities."""
    __tablename__ = "metro_cities"
    __table_args__ = (
        UniqueConstraint("city", name="uq_metro_city"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state_code: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<MetroCity(city='{self.city}', state='{self.state_code}')>"


class StateNeighbor(Base):
    """
    Adjacency between two states.

    The relation is symmetric; a single row (A, B) also answers (B, A).
    """
    __tablename__ = "state_neighbors"
    __table_args__ = (
        UniqueConstraint("state_code", "neighbor_state_code", name="uq_state_neighbor"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    state_code: Mapped[str] = mapped_column(String(5), nullable=False, index=True)
    neighbor_state_code: Mapped[str] = mapped_column(String(5), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<StateNeighbor({self.state_code}<->{self.neighbor_state_code})>"


class WeightSlab(Base):
    """
    Gram-weight bucket used as one axis of the rate key.

    Ranges are half-open: a weight w belongs to the slab when
    min_weight_grams <= w < max_weight_grams. Slabs are never deleted,
    only deactivated.
    """
    __tablename__ = "weight_slabs"
    __table_args__ = (
        CheckConstraint("min_weight_grams < max_weight_grams", name="ck_weight_slab_range"),
        Index("idx_weight_slab_lookup", "is_active", "min_weight_grams"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    slab_name: Mapped[str] = mapped_column(String(100), nullable=False)
    min_weight_grams: Mapped[int] = mapped_column(Integer, nullable=False)
    max_weight_grams: Mapped[int] = mapped_column(Integer, nullable=False)
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

    def contains(self, weight_grams: int) -> bool:
        return self.min_weight_grams <= weight_grams < self.max_weight_grams

    def __repr__(self) -> str:
        return f"<WeightSlab('{self.slab_name}' [{self.min_weight_grams}, {self.max_weight_grams}))>"

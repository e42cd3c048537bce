import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType


def normalize_party_name(name: Optional[str]) -> str:
    """Trimmed, lower-cased party name used for all party matching."""
    return (name or "").strip().lower()


class Party(Base):
    """
    Billing client (sender) for whom rates and invoices are tracked.

    Parties are matched by normalized name; name_key is unique so a
    find-or-create never produces two parties for the same sender.
    """
    __tablename__ = "parties"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    party_name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_key: Mapped[str] = mapped_column(
        String(200),
        unique=True,
        nullable=False,
        index=True,
        comment="LOWER(TRIM(party_name))"
    )
    gstin: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Party(name='{self.party_name}')>"

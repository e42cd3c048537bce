"""
Invoice number generation.

Financial year based numbering (April-March), continuous within the year.
Format: {SERIES}/{FY}/{SEQUENCE}, e.g. PI/2026-27/00001

The sequence row is read with SELECT ... FOR UPDATE inside the caller's
transaction, so the number is consumed only if the invoice commits.
"""
from datetime import date
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.billing import InvoiceNumberSequence


def financial_year_for(on_date: date) -> str:
    """2026-10-19 -> '2026-27', 2027-02-01 -> '2026-27'"""
    if on_date.month >= 4:
        return f"{on_date.year}-{str(on_date.year + 1)[2:]}"
    return f"{on_date.year - 1}-{str(on_date.year)[2:]}"


class InvoiceNumberService:
    """Allocates invoice numbers from per-FY sequence rows."""

    def __init__(self, db: AsyncSession, series_code: Optional[str] = None):
        self.db = db
        self.series_code = (series_code or settings.INVOICE_SERIES_CODE).upper()

    async def next_number(self, on_date: date) -> str:
        """
        Increment the sequence for on_date's financial year and format it.
        Does not commit.
        """
        financial_year = financial_year_for(on_date)

        result = await self.db.execute(
            select(InvoiceNumberSequence)
            .where(
                and_(
                    InvoiceNumberSequence.series_code == self.series_code,
                    InvoiceNumberSequence.financial_year == financial_year,
                    InvoiceNumberSequence.is_active == True,
                )
            )
            .with_for_update()
        )
        sequence = result.scalar_one_or_none()

        if not sequence:
            sequence = InvoiceNumberSequence(
                series_code=self.series_code,
                financial_year=financial_year,
                prefix=f"{self.series_code}/{financial_year}/",
                current_number=0,
                padding_length=settings.INVOICE_NUMBER_PADDING,
            )
            self.db.add(sequence)
            await self.db.flush()

        sequence.current_number += 1
        await self.db.flush()
        return f"{sequence.prefix}{str(sequence.current_number).zfill(sequence.padding_length)}"

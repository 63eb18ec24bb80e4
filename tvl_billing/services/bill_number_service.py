"""
Bill Number Generation

- Financial year based numbering (April-March)
- Continuous sequence within a financial year
- Format: {PREFIX}/{FY}/{SEQUENCE}, e.g. BL/25-26/00001

The sequence counter itself lives in the bill repository, which must hand
out each value once.
"""

from datetime import date, datetime, timezone
from typing import Optional

from tvl_billing.services.bill_repository import BillRepository


def get_financial_year(on: Optional[date] = None) -> str:
    """
    Get financial year string for a date.

    Indian financial year: April to March
    - Jan 2026 → FY 25-26
    - Apr 2026 → FY 26-27
    """
    on = on or datetime.now(timezone.utc).date()
    if on.month >= 4:
        fy_start = on.year
    else:
        fy_start = on.year - 1
    return f"{str(fy_start)[2:]}-{str(fy_start + 1)[2:]}"


def format_bill_number(prefix: str, financial_year: str, sequence: int, padding: int = 5) -> str:
    return f"{prefix}/{financial_year}/{str(sequence).zfill(padding)}"


class BillNumberService:
    """Hands out bill numbers from the repository's per-year sequence."""

    def __init__(self, repository: BillRepository, prefix: str = "BL", padding: int = 5):
        self.repository = repository
        self.prefix = prefix
        self.padding = padding

    async def get_next_number(self, bill_date: Optional[date] = None) -> str:
        financial_year = get_financial_year(bill_date)
        sequence = await self.repository.next_sequence(self.prefix, financial_year)
        return format_bill_number(self.prefix, financial_year, sequence, self.padding)

    async def preview_next_number(self, bill_date: Optional[date] = None) -> str:
        """Preview the next number without consuming it."""
        financial_year = get_financial_year(bill_date)
        current = await self.repository.current_sequence(self.prefix, financial_year)
        return format_bill_number(self.prefix, financial_year, current + 1, self.padding)

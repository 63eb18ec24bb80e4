"""
Bill storage contract.

The billing services never talk to a database directly; they depend on a
BillRepository. Production deployments plug in their own implementation;
InMemoryBillRepository backs local runs and tests.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Protocol, Tuple

from tvl_billing.models.billing import Bill, BillFilter, BillStatus, Payment


class BillRepository(Protocol):
    """Persistence operations the bill service relies on.

    Implementations must store total_amount and status of a bill together
    in save(), and next_sequence() must never return the same value twice
    for a (prefix, financial_year) pair.
    """

    async def next_sequence(self, prefix: str, financial_year: str) -> int: ...

    async def current_sequence(self, prefix: str, financial_year: str) -> int: ...

    async def add(self, bill: Bill) -> Bill: ...

    async def get(self, bill_number: str) -> Optional[Bill]: ...

    async def save(self, bill: Bill) -> Bill: ...

    async def delete(self, bill_number: str) -> bool: ...

    async def list(
        self,
        customer_id: Optional[str] = None,
        status: Optional[BillStatus] = None,
    ) -> List[Bill]: ...

    async def search(
        self,
        criteria: BillFilter,
        sort_by: str = "entered_on",
        descending: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Bill], int]:
        """Return one page of matching bills and the total match count."""
        ...

    async def add_payment(self, payment: Payment) -> Payment: ...

    async def list_payments(
        self,
        bill_number: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Payment]: ...


class InMemoryBillRepository:
    """Dictionary-backed repository. Stored objects are copied on the way in and out."""

    def __init__(self) -> None:
        self._bills: Dict[str, Bill] = {}
        self._payments: List[Payment] = []
        self._sequences: Dict[Tuple[str, str], int] = defaultdict(int)

    async def next_sequence(self, prefix: str, financial_year: str) -> int:
        self._sequences[(prefix, financial_year)] += 1
        return self._sequences[(prefix, financial_year)]

    async def current_sequence(self, prefix: str, financial_year: str) -> int:
        return self._sequences.get((prefix, financial_year), 0)

    async def add(self, bill: Bill) -> Bill:
        if bill.bill_number in self._bills:
            raise ValueError(f"Bill {bill.bill_number} already exists")
        self._bills[bill.bill_number] = bill.model_copy(deep=True)
        return bill

    async def get(self, bill_number: str) -> Optional[Bill]:
        bill = self._bills.get(bill_number)
        return bill.model_copy(deep=True) if bill else None

    async def save(self, bill: Bill) -> Bill:
        if bill.bill_number not in self._bills:
            raise ValueError(f"Bill {bill.bill_number} does not exist")
        self._bills[bill.bill_number] = bill.model_copy(deep=True)
        return bill

    async def delete(self, bill_number: str) -> bool:
        return self._bills.pop(bill_number, None) is not None

    async def list(
        self,
        customer_id: Optional[str] = None,
        status: Optional[BillStatus] = None,
    ) -> List[Bill]:
        bills = [
            bill for bill in self._bills.values()
            if (customer_id is None or bill.customer_id == customer_id)
            and (status is None or bill.status == status)
        ]
        bills.sort(key=lambda b: (b.bill_date, b.entered_on))
        return [bill.model_copy(deep=True) for bill in bills]

    async def search(
        self,
        criteria: BillFilter,
        sort_by: str = "entered_on",
        descending: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Bill], int]:
        matched = [bill for bill in self._bills.values() if criteria.matches(bill)]

        # Bills without a value for the sort field go last in either direction
        present = [bill for bill in matched if getattr(bill, sort_by) is not None]
        missing = [bill for bill in matched if getattr(bill, sort_by) is None]
        present.sort(key=lambda b: getattr(b, sort_by), reverse=descending)
        ordered = present + missing

        page = ordered[offset:] if limit is None else ordered[offset:offset + limit]
        return [bill.model_copy(deep=True) for bill in page], len(matched)

    async def add_payment(self, payment: Payment) -> Payment:
        self._payments.append(payment.model_copy(deep=True))
        return payment

    async def list_payments(
        self,
        bill_number: Optional[str] = None,
        customer_id: Optional[str] = None,
    ) -> List[Payment]:
        return [
            payment.model_copy(deep=True) for payment in self._payments
            if (bill_number is None or payment.bill_number == bill_number)
            and (customer_id is None or payment.customer_id == customer_id)
        ]

    def reset(self) -> None:
        self._bills.clear()
        self._payments.clear()
        self._sequences.clear()

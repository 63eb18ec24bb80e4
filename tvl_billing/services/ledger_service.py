"""
Customer Ledger

Builds a customer's running account from bills (debits) and payments
(credits). Only finalized bills count; drafts and cancelled bills never
reach the ledger.
"""
from decimal import Decimal
from typing import Iterable, List

from tvl_billing.core.money import ZERO, quantize_money
from tvl_billing.models.billing import Bill, BillStatus, Payment
from tvl_billing.schemas.billing import CustomerBalanceResponse, CustomerLedgerResponse, LedgerEntry


# Bills that represent an amount owed by the customer
BILLED_STATUSES = (BillStatus.FINAL, BillStatus.PARTIAL, BillStatus.PAID)


def _bill_description(bill: Bill) -> str:
    parts = [f"Bill #{bill.bill_number}"]
    if bill.reservation_class:
        parts.append(bill.reservation_class)
    if bill.train_number:
        parts.append(bill.train_number)
    return " - ".join(parts)


def _payment_description(payment: Payment) -> str:
    description = f"Payment #{payment.payment_id[:8]} - {payment.mode.value}"
    if payment.reference:
        description += f" ({payment.reference})"
    return description


def build_ledger_entries(bills: Iterable[Bill], payments: Iterable[Payment]) -> List[LedgerEntry]:
    """
    Merge bills and payments into date-ordered ledger entries.

    On the same date bills come before payments. The running balance is
    debit minus credit; a negative balance is an advance.
    """
    entries: List[LedgerEntry] = []

    for bill in bills:
        if bill.status not in BILLED_STATUSES:
            continue
        entries.append(LedgerEntry(
            entry_date=bill.bill_date,
            entry_type="BILL",
            reference=bill.bill_number,
            description=_bill_description(bill),
            debit=bill.total_amount,
        ))

    for payment in payments:
        entries.append(LedgerEntry(
            entry_date=payment.paid_on,
            entry_type="PAYMENT",
            reference=payment.bill_number,
            description=_payment_description(payment),
            credit=payment.amount,
        ))

    # Stable sort keeps bills ahead of payments within a day
    entries.sort(key=lambda e: e.entry_date)

    running_balance = ZERO
    for entry in entries:
        running_balance += entry.debit - entry.credit
        entry.balance = quantize_money(running_balance)

    return entries


def build_customer_ledger(
    customer_id: str,
    bills: Iterable[Bill],
    payments: Iterable[Payment],
) -> CustomerLedgerResponse:
    entries = build_ledger_entries(bills, payments)
    closing = entries[-1].balance if entries else quantize_money(ZERO)
    return CustomerLedgerResponse(customer_id=customer_id, entries=entries, closing_balance=closing)


def calculate_customer_balance(
    customer_id: str,
    bills: Iterable[Bill],
    payments: Iterable[Payment],
) -> CustomerBalanceResponse:
    """
    Summarize what a customer owes.

    net_due and net_advance are never both positive.
    """
    total_billed: Decimal = sum(
        (bill.total_amount for bill in bills if bill.status in BILLED_STATUSES), ZERO
    )
    total_received: Decimal = sum((payment.amount for payment in payments), ZERO)

    net_due = max(ZERO, total_billed - total_received)
    net_advance = max(ZERO, total_received - total_billed)

    return CustomerBalanceResponse(
        customer_id=customer_id,
        total_billed=quantize_money(total_billed),
        total_received=quantize_money(total_received),
        net_due=quantize_money(net_due),
        net_advance=quantize_money(net_advance),
    )

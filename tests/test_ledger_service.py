from datetime import date, datetime, timezone
from decimal import Decimal

from tvl_billing.models.billing import Bill, BillStatus, Payment, PaymentMode
from tvl_billing.services.ledger_service import (
    build_customer_ledger,
    build_ledger_entries,
    calculate_customer_balance,
)


ENTERED_ON = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def _bill(number: str, total: str, status: BillStatus, on: date) -> Bill:
    return Bill(
        bill_number=number,
        status=status,
        customer_id="CUST001",
        train_number="12627",
        reservation_class="SL",
        bill_date=on,
        total_amount=Decimal(total),
        entered_on=ENTERED_ON,
        entered_by="clerk",
    )


def _payment(bill_number: str, amount: str, on: date) -> Payment:
    return Payment(
        bill_number=bill_number,
        customer_id="CUST001",
        amount=Decimal(amount),
        mode=PaymentMode.CASH,
        paid_on=on,
        reference="RCPT-1",
        received_by="cashier",
        received_at=ENTERED_ON,
    )


def test_only_finalized_bills_are_debits() -> None:
    bills = [
        _bill("BL/25-26/00001", "1000", BillStatus.FINAL, date(2025, 6, 1)),
        _bill("BL/25-26/00002", "500", BillStatus.DRAFT, date(2025, 6, 1)),
        _bill("BL/25-26/00003", "700", BillStatus.CANCELLED, date(2025, 6, 1)),
        _bill("BL/25-26/00004", "300", BillStatus.PAID, date(2025, 6, 2)),
    ]
    entries = build_ledger_entries(bills, [])

    assert [e.reference for e in entries] == ["BL/25-26/00001", "BL/25-26/00004"]
    assert entries[-1].balance == Decimal("1300.00")


def test_running_balance_orders_bills_before_payments_on_same_day() -> None:
    bills = [_bill("BL/25-26/00001", "1000", BillStatus.PARTIAL, date(2025, 6, 1))]
    payments = [
        _payment("BL/25-26/00001", "400", date(2025, 6, 1)),
        _payment("BL/25-26/00001", "100", date(2025, 6, 5)),
    ]
    entries = build_ledger_entries(bills, payments)

    assert [(e.entry_type, e.debit, e.credit, e.balance) for e in entries] == [
        ("BILL", Decimal("1000"), Decimal("0"), Decimal("1000.00")),
        ("PAYMENT", Decimal("0"), Decimal("400"), Decimal("600.00")),
        ("PAYMENT", Decimal("0"), Decimal("100"), Decimal("500.00")),
    ]
    assert entries[0].description == "Bill #BL/25-26/00001 - SL - 12627"
    assert entries[1].description.endswith("CASH (RCPT-1)")


def test_customer_ledger_closing_balance() -> None:
    ledger = build_customer_ledger("CUST001", [], [])
    assert ledger.entries == []
    assert ledger.closing_balance == Decimal("0.00")

    ledger = build_customer_ledger(
        "CUST001",
        [_bill("BL/25-26/00001", "250.50", BillStatus.FINAL, date(2025, 6, 1))],
        [],
    )
    assert ledger.closing_balance == Decimal("250.50")


def test_balance_due_and_advance() -> None:
    bills = [_bill("BL/25-26/00001", "1000", BillStatus.FINAL, date(2025, 6, 1))]

    due = calculate_customer_balance("CUST001", bills, [_payment("BL/25-26/00001", "250", date(2025, 6, 2))])
    assert due.net_due == Decimal("750.00")
    assert due.net_advance == Decimal("0.00")

    advance = calculate_customer_balance("CUST001", bills, [_payment("BL/25-26/00001", "1200", date(2025, 6, 2))])
    assert advance.net_due == Decimal("0.00")
    assert advance.net_advance == Decimal("200.00")
    assert advance.total_received == Decimal("1200.00")

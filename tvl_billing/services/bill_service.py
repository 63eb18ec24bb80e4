"""
Bill Service

Applies the billing engine and the bill state machine to stored bills:
- create a draft with computed totals and a fresh bill number
- update a draft and recompute its totals
- finalize / cancel / delete under the lifecycle rules
- record payments and settle the bill status
- customer ledger and balance

Acting users are passed in explicitly on every mutation.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic.alias_generators import to_snake

from tvl_billing.config import Settings, get_settings
from tvl_billing.core.money import ZERO
from tvl_billing.models.billing import (
    BILLING_INPUT_FIELDS,
    Bill,
    BillAction,
    BillFilter,
    BillStatus,
    Payment,
    PaymentMode,
)
from tvl_billing.schemas.billing import (
    BillCreate,
    BillUpdate,
    CustomerBalanceResponse,
    CustomerLedgerResponse,
)
from tvl_billing.services import bill_state_machine as state_machine
from tvl_billing.services.billing_engine import compute_total
from tvl_billing.services.bill_number_service import BillNumberService
from tvl_billing.services.bill_repository import BillRepository
from tvl_billing.services.exceptions import (
    BillFrozenError,
    BillNotFoundError,
    InvalidInputError,
    InvalidStateTransitionError,
)
from tvl_billing.services.ledger_service import build_customer_ledger, calculate_customer_balance


logger = logging.getLogger(__name__)


# Sortable fields by the name clients send; created_on is the listing default
SORT_FIELDS = {
    "created_on": "entered_on",
    "entered_on": "entered_on",
    "bill_date": "bill_date",
    "bill_number": "bill_number",
    "customer_name": "customer_name",
    "total_amount": "total_amount",
    "status": "status",
}


class BillService:
    """Service for bill lifecycle management."""

    def __init__(self, repository: BillRepository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or get_settings()
        self.numbers = BillNumberService(
            repository,
            prefix=self.settings.BILL_NUMBER_PREFIX,
            padding=self.settings.BILL_NUMBER_PADDING,
        )

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def get_bill(self, bill_number: str) -> Bill:
        bill = await self.repository.get(bill_number)
        if not bill:
            raise BillNotFoundError(f"Bill {bill_number} not found")
        return bill

    async def list_bills(
        self,
        customer_id: Optional[str] = None,
        status: Optional[BillStatus] = None,
    ) -> List[Bill]:
        return await self.repository.list(customer_id=customer_id, status=status)

    async def search_bills(
        self,
        criteria: Optional[BillFilter] = None,
        sort_by: str = "created_on",
        sort_order: str = "DESC",
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[Bill], int]:
        """
        Filter, sort and paginate bills.

        sort_by accepts snake_case or camelCase names (createdOn, billDate,
        totalAmount, ...). Returns the requested page and the total match count.

        Raises:
            InvalidInputError: Unknown sort field or order, or page/limit below 1
        """
        field = SORT_FIELDS.get(to_snake((sort_by or "created_on").strip()))
        if field is None:
            raise InvalidInputError(
                f"Cannot sort bills by '{sort_by}'. Allowed: {', '.join(SORT_FIELDS)}",
                field="sort_by",
            )

        order = (sort_order or "DESC").strip().upper()
        if order not in ("ASC", "DESC"):
            raise InvalidInputError(f"Sort order must be ASC or DESC, got '{sort_order}'", field="sort_order")
        if page < 1 or limit < 1:
            raise InvalidInputError("page and limit must be at least 1", field="page" if page < 1 else "limit")

        return await self.repository.search(
            criteria or BillFilter(),
            sort_by=field,
            descending=order == "DESC",
            offset=(page - 1) * limit,
            limit=limit,
        )

    async def create_bill(self, bill_in: BillCreate, entered_by: str) -> Bill:
        """
        Create a DRAFT bill with computed totals.

        GST rate and mode fall back to the configured defaults when the
        request does not carry them.

        Raises:
            InvalidInputError: If any charge field is invalid
        """
        charges = bill_in.model_dump(include=set(BILLING_INPUT_FIELDS))
        if "gst_rate" not in bill_in.model_fields_set:
            charges["gst_rate"] = self.settings.DEFAULT_GST_RATE
        if "gst_mode" not in bill_in.model_fields_set:
            charges["gst_mode"] = self.settings.DEFAULT_GST_MODE

        totals = compute_total(charges)

        bill_date = bill_in.bill_date or self._now().date()
        now = self._now()
        bill = Bill(
            **charges,
            bill_number=await self.numbers.get_next_number(bill_date),
            status=BillStatus.DRAFT,
            booking_id=bill_in.booking_id,
            customer_id=bill_in.customer_id,
            customer_name=bill_in.customer_name,
            train_number=bill_in.train_number,
            reservation_class=bill_in.reservation_class,
            pnr_numbers=bill_in.pnr_numbers,
            bill_date=bill_date,
            remarks=bill_in.remarks,
            entered_on=now,
            entered_by=entered_by,
            modified_on=now,
            modified_by=entered_by,
        )
        bill.apply_totals(totals)

        await self.repository.add(bill)
        logger.info(f"Created bill {bill.bill_number} for customer {bill.customer_id}: total={bill.total_amount}")
        return bill

    async def update_bill(self, bill_number: str, bill_in: BillUpdate, modified_by: str) -> Bill:
        """
        Update a DRAFT bill and recompute its totals from the merged inputs.

        Raises:
            BillNotFoundError: If the bill does not exist
            BillFrozenError: If the bill is no longer a draft
            InvalidInputError: If the merged charges are invalid
        """
        bill = await self.get_bill(bill_number)

        if state_machine.is_frozen(bill.status):
            logger.warning(f"Rejected update of bill {bill_number} in {bill.status.value} status")
            raise BillFrozenError(
                f"Bill {bill_number} is {bill.status.value}; its charges can no longer be changed"
            )

        changes = {k: v for k, v in bill_in.model_dump(exclude_unset=True).items() if v is not None}
        charges = bill.billing_input().model_dump()
        charges.update({k: v for k, v in changes.items() if k in BILLING_INPUT_FIELDS})

        totals = compute_total(charges)

        updated = Bill.model_validate({
            **bill.model_dump(),
            **charges,
            **{k: v for k, v in changes.items() if k not in BILLING_INPUT_FIELDS},
            "modified_on": self._now(),
            "modified_by": modified_by,
        })
        updated.apply_totals(totals)

        await self.repository.save(updated)
        logger.info(f"Updated bill {bill_number}: total={updated.total_amount}")
        return updated

    async def finalize_bill(self, bill_number: str, user_id: str) -> Bill:
        bill = await self.get_bill(bill_number)
        state_machine.transition_bill(bill, BillAction.FINALIZE, user_id, now=self._now())
        await self.repository.save(bill)
        return bill

    async def cancel_bill(self, bill_number: str, user_id: str) -> Bill:
        """
        Cancel a DRAFT or FINAL bill.

        Raises:
            InvalidStateTransitionError: If payments exist or status forbids it
        """
        bill = await self.get_bill(bill_number)

        if bill.status == BillStatus.FINAL:
            payments = await self.repository.list_payments(bill_number=bill_number)
            if bill.amount_paid > ZERO or payments:
                logger.warning(f"Rejected cancel of bill {bill_number}: payments recorded")
                raise InvalidStateTransitionError(
                    f"Bill {bill_number} has payments recorded and cannot be cancelled"
                )

        state_machine.transition_bill(bill, BillAction.CANCEL, user_id, now=self._now())
        await self.repository.save(bill)
        return bill

    async def delete_bill(self, bill_number: str) -> None:
        """
        Delete a DRAFT or CANCELLED bill.

        Raises:
            InvalidStateTransitionError: If the bill is finalized or paid
        """
        bill = await self.get_bill(bill_number)

        if not state_machine.can_delete(bill.status):
            logger.warning(f"Rejected delete of bill {bill_number} in {bill.status.value} status")
            raise InvalidStateTransitionError(
                f"Cannot delete a bill in '{bill.status.value}' status"
            )

        await self.repository.delete(bill_number)
        logger.info(f"Deleted bill {bill_number} ({bill.status.value})")

    async def record_payment(
        self,
        bill_number: str,
        amount: Decimal,
        received_by: str,
        paid_on: Optional[date] = None,
        mode: PaymentMode = PaymentMode.CASH,
        reference: Optional[str] = None,
    ) -> Bill:
        """
        Record a payment and settle the bill to FINAL, PARTIAL or PAID.

        Raises:
            InvalidInputError: If amount is not positive
            InvalidStateTransitionError: If the bill cannot accept payments
        """
        if amount is None or amount <= ZERO:
            raise InvalidInputError("Payment amount must be greater than zero", field="amount")

        bill = await self.get_bill(bill_number)
        amount_paid = bill.amount_paid + amount
        next_status = state_machine.settle(bill.status, bill.total_amount, amount_paid)

        now = self._now()
        payment = Payment(
            bill_number=bill_number,
            customer_id=bill.customer_id,
            amount=amount,
            mode=mode,
            paid_on=paid_on or now.date(),
            reference=reference,
            received_by=received_by,
            received_at=now,
        )
        await self.repository.add_payment(payment)

        previous_status = bill.status
        bill.amount_paid = amount_paid
        bill.status = next_status
        bill.modified_on = now
        bill.modified_by = received_by
        await self.repository.save(bill)

        logger.info(
            f"Payment of {amount} on bill {bill_number}: "
            f"{previous_status.value} -> {next_status.value}, paid={amount_paid}/{bill.total_amount}"
        )
        return bill

    async def list_payments(self, bill_number: str) -> List[Payment]:
        """
        Payments recorded against a bill, oldest first.

        Raises:
            BillNotFoundError: If the bill does not exist
        """
        await self.get_bill(bill_number)
        return await self.repository.list_payments(bill_number=bill_number)

    async def get_customer_ledger(self, customer_id: str) -> CustomerLedgerResponse:
        bills = await self.repository.list(customer_id=customer_id)
        payments = await self.repository.list_payments(customer_id=customer_id)
        return build_customer_ledger(customer_id, bills, payments)

    async def get_customer_balance(self, customer_id: str) -> CustomerBalanceResponse:
        bills = await self.repository.list(customer_id=customer_id)
        payments = await self.repository.list_payments(customer_id=customer_id)
        return calculate_customer_balance(customer_id, bills, payments)

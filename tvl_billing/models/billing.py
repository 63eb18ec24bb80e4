"""Billing domain models for railway/travel bookings.

Supports:
- Charge inputs for a bill (fare, fees, extra charges, discounts, GST)
- Computed totals breakdown
- Bill entity with lifecycle status and audit fields
- Payments received against a bill

These are storage-agnostic; a repository persists them.
"""
import uuid
from datetime import datetime, date
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from tvl_billing.core.enum_utils import (
    create_uppercase_validator,
    VALID_BILL_STATUSES,
    VALID_DISCOUNT_KINDS,
    VALID_GST_MODES,
    VALID_PAYMENT_MODES,
)
from tvl_billing.core.money import ZERO, to_decimal


class BillStatus(str, Enum):
    """Bill lifecycle status."""
    DRAFT = "DRAFT"
    FINAL = "FINAL"
    PAID = "PAID"
    PARTIAL = "PARTIAL"          # Finalized, some payment received
    CANCELLED = "CANCELLED"


class BillAction(str, Enum):
    """Lifecycle actions a caller may request."""
    FINALIZE = "FINALIZE"
    CANCEL = "CANCEL"
    REOPEN = "REOPEN"            # Recognised but never allowed


class GstMode(str, Enum):
    """How GST relates to the quoted amounts."""
    EXCLUSIVE = "EXCLUSIVE"      # Tax added on top
    INCLUSIVE = "INCLUSIVE"      # Tax already embedded


class DiscountKind(str, Enum):
    """Discount type."""
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class PaymentMode(str, Enum):
    """Payment mode."""
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"
    NET_BANKING = "NET_BANKING"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"


# Additive charge components, in the order they appear on a bill
CHARGE_FIELDS = (
    "base_fare",
    "service_charge",
    "platform_fee",
    "agent_fee",
    "station_boy_incentive",
    "misc_charges",
    "delivery_charge",
    "cancellation_charge",
)

# Every field of BillingInput, used to snapshot/merge inputs on a Bill
BILLING_INPUT_FIELDS = CHARGE_FIELDS + (
    "extra_charges",
    "discounts",
    "gst_rate",
    "gst_mode",
    "surcharge",
)


class DomainModel(BaseModel):
    """Base for billing models: snake_case in Python, camelCase accepted on input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ExtraCharge(DomainModel):
    """A labelled ad-hoc charge line."""
    label: str = ""
    amount: Decimal = ZERO

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, v):
        return "" if v is None else str(v)


class Discount(DomainModel):
    """A labelled discount, fixed amount or percentage of the running balance."""
    label: str = ""
    amount: Decimal = ZERO
    kind: DiscountKind = Field(DiscountKind.FIXED, validation_alias=AliasChoices("kind", "type"))

    _normalize_kind = create_uppercase_validator("kind", VALID_DISCOUNT_KINDS)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return to_decimal(v)

    @field_validator("label", mode="before")
    @classmethod
    def coerce_label(cls, v):
        return "" if v is None else str(v)


class BillingInput(DomainModel):
    """
    Charge fields of a bill, supplied per computation.

    Amounts are coerced leniently: missing or non-numeric values become 0.
    Sign is kept, negative amounts are rejected by the billing engine.
    """
    base_fare: Decimal = ZERO
    service_charge: Decimal = ZERO
    platform_fee: Decimal = ZERO
    agent_fee: Decimal = ZERO
    station_boy_incentive: Decimal = ZERO
    misc_charges: Decimal = ZERO
    delivery_charge: Decimal = ZERO
    cancellation_charge: Decimal = ZERO
    extra_charges: List[ExtraCharge] = Field(default_factory=list)
    discounts: List[Discount] = Field(default_factory=list)
    gst_rate: Decimal = ZERO
    gst_mode: GstMode = GstMode.EXCLUSIVE
    surcharge: Decimal = ZERO

    _normalize_gst_mode = create_uppercase_validator("gst_mode", VALID_GST_MODES)

    @field_validator(*CHARGE_FIELDS, "gst_rate", "surcharge", mode="before")
    @classmethod
    def coerce_amounts(cls, v):
        return to_decimal(v)

    @field_validator("extra_charges", "discounts", mode="before")
    @classmethod
    def coerce_lines(cls, v):
        return [] if v is None else v

    @field_validator("gst_mode", mode="before")
    @classmethod
    def default_gst_mode(cls, v):
        return GstMode.EXCLUSIVE if v is None or v == "" else v


class BillingTotals(DomainModel):
    """Computed breakdown returned by the billing engine."""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    total_discount: Decimal
    tax_amount: Decimal
    grand_total: Decimal


class Bill(BillingInput):
    """
    A bill for a booking.

    Holds a snapshot of the BillingInput fields from the last computation
    together with the computed totals. `total_amount` is never set
    independently of those inputs.
    """
    bill_number: str
    status: BillStatus = BillStatus.DRAFT

    # Booking / customer reference
    booking_id: Optional[str] = None
    customer_id: str
    customer_name: Optional[str] = None
    train_number: Optional[str] = None
    reservation_class: Optional[str] = None
    pnr_numbers: List[str] = Field(default_factory=list)
    bill_date: date
    remarks: Optional[str] = None

    # Computed totals
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    # Payment tracking
    amount_paid: Decimal = ZERO

    # Audit
    entered_on: datetime
    entered_by: str
    modified_on: Optional[datetime] = None
    modified_by: Optional[str] = None
    closed_on: Optional[datetime] = None
    closed_by: Optional[str] = None

    _normalize_status = create_uppercase_validator("status", VALID_BILL_STATUSES)

    @computed_field
    @property
    def amount_due(self) -> Decimal:
        return max(ZERO, self.total_amount - self.amount_paid)

    def billing_input(self) -> BillingInput:
        """Return the charge fields of this bill as a BillingInput."""
        return BillingInput.model_validate(self.model_dump(include=set(BILLING_INPUT_FIELDS)))

    def apply_totals(self, totals: BillingTotals) -> None:
        self.subtotal = totals.subtotal
        self.total_discount = totals.total_discount
        self.tax_amount = totals.tax_amount
        self.total_amount = totals.grand_total


class Payment(DomainModel):
    """A payment received against a bill."""
    payment_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    bill_number: str
    customer_id: str
    amount: Decimal
    mode: PaymentMode = PaymentMode.CASH
    paid_on: date
    reference: Optional[str] = None
    received_by: str
    received_at: datetime

    _normalize_mode = create_uppercase_validator("mode", VALID_PAYMENT_MODES)


class BillFilter(DomainModel):
    """Search criteria for bills. Unset criteria match every bill."""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None      # case-insensitive substring
    status: Optional[BillStatus] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    _normalize_status = create_uppercase_validator("status", VALID_BILL_STATUSES)

    def matches(self, bill: Bill) -> bool:
        if self.customer_id is not None and bill.customer_id != self.customer_id:
            return False
        if self.customer_name:
            if not bill.customer_name or self.customer_name.lower() not in bill.customer_name.lower():
                return False
        if self.status is not None and bill.status != self.status:
            return False
        if self.from_date is not None and bill.bill_date < self.from_date:
            return False
        if self.to_date is not None and bill.bill_date > self.to_date:
            return False
        if self.min_amount is not None and bill.total_amount < self.min_amount:
            return False
        if self.max_amount is not None and bill.total_amount > self.max_amount:
            return False
        return True

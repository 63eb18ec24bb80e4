"""Pydantic schemas for the Billing API."""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from tvl_billing.core.enum_utils import (
    create_uppercase_validator,
    VALID_BILL_ACTIONS,
    VALID_BILL_STATUSES,
    VALID_GST_MODES,
    VALID_PAYMENT_MODES,
)
from tvl_billing.core.money import to_decimal
from tvl_billing.models.billing import (
    Bill,
    BillAction,
    BillingInput,
    CHARGE_FIELDS,
    BillStatus,
    Discount,
    ExtraCharge,
    GstMode,
    PaymentMode,
)
from tvl_billing.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


# ==================== Calculation ====================

class BillingCalculationResponse(BaseResponseSchema):
    """Totals breakdown for a set of charges."""
    subtotal: Decimal
    total_discount: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    gst_rate: Decimal
    gst_mode: GstMode
    currency: str


class TransitionRequest(BaseCreateSchema):
    """Ask which status an action leads to."""
    status: BillStatus
    action: BillAction

    _normalize_status = create_uppercase_validator('status', VALID_BILL_STATUSES)
    _normalize_action = create_uppercase_validator('action', VALID_BILL_ACTIONS)


class TransitionResponse(BaseResponseSchema):
    status: BillStatus
    allowed_actions: List[BillAction] = []


# ==================== Bill ====================

class BillCreate(BillingInput):
    """Schema for creating a draft bill."""
    customer_id: str = Field(..., min_length=1, max_length=15)
    customer_name: Optional[str] = Field(None, max_length=100)
    booking_id: Optional[str] = None
    train_number: Optional[str] = Field(None, max_length=20)
    reservation_class: Optional[str] = Field(None, max_length=10)
    pnr_numbers: List[str] = []
    bill_date: Optional[date] = None
    remarks: Optional[str] = None


class BillUpdate(BaseUpdateSchema):
    """Schema for updating a bill (only draft). Charges are recomputed."""
    base_fare: Optional[Decimal] = None
    service_charge: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    agent_fee: Optional[Decimal] = None
    station_boy_incentive: Optional[Decimal] = None
    misc_charges: Optional[Decimal] = None
    delivery_charge: Optional[Decimal] = None
    cancellation_charge: Optional[Decimal] = None
    extra_charges: Optional[List[ExtraCharge]] = None
    discounts: Optional[List[Discount]] = None
    gst_rate: Optional[Decimal] = None
    gst_mode: Optional[GstMode] = None
    surcharge: Optional[Decimal] = None

    customer_name: Optional[str] = Field(None, max_length=100)
    train_number: Optional[str] = Field(None, max_length=20)
    reservation_class: Optional[str] = Field(None, max_length=10)
    pnr_numbers: Optional[List[str]] = None
    remarks: Optional[str] = None

    _normalize_gst_mode = create_uppercase_validator('gst_mode', VALID_GST_MODES)

    @field_validator(*CHARGE_FIELDS, 'gst_rate', 'surcharge', mode='before')
    @classmethod
    def coerce_amounts(cls, v):
        # None means "not sent"; anything else is coerced like a new bill's charges
        return None if v is None else to_decimal(v)


class BillResponse(Bill):
    """Response schema for Bill."""
    allowed_actions: List[BillAction] = []

    @classmethod
    def from_bill(cls, bill: Bill, allowed_actions: List[BillAction]) -> "BillResponse":
        return cls.model_validate({
            **bill.model_dump(),
            "allowed_actions": allowed_actions,
        })


class BillListResponse(BaseResponseSchema):
    """One page of bills matching a search."""
    items: List[BillResponse]
    total: int
    page: int = 1
    size: int = 10
    pages: int = 1


# ==================== Payment ====================

class PaymentCreate(BaseCreateSchema):
    """Schema for recording a payment against a bill."""
    amount: Decimal = Field(..., gt=0)
    mode: PaymentMode = PaymentMode.CASH
    paid_on: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)

    _normalize_mode = create_uppercase_validator('mode', VALID_PAYMENT_MODES)


# ==================== Customer Ledger ====================

class LedgerEntry(BaseResponseSchema):
    """One line of a customer's ledger."""
    entry_date: date
    entry_type: str  # BILL or PAYMENT
    reference: str
    description: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class CustomerLedgerResponse(BaseResponseSchema):
    customer_id: str
    entries: List[LedgerEntry]
    closing_balance: Decimal


class CustomerBalanceResponse(BaseResponseSchema):
    customer_id: str
    total_billed: Decimal
    total_received: Decimal
    net_due: Decimal
    net_advance: Decimal

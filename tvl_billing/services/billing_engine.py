"""
Billing Engine

Computes the totals of a bill from its charge fields:

1. Subtotal   = sum of charge components + extra charge lines
2. Discounts  = applied in the order given against a running balance
3. GST        = added on top (EXCLUSIVE) or extracted from the balance (INCLUSIVE)
4. Surcharge  = added after tax
5. Total      = rounded to paisa, never below zero

The engine is pure: no I/O, no shared state. It is safe to call from any
number of concurrent requests.
"""
import logging
from decimal import Decimal, DecimalException
from typing import Any, Iterable, Mapping, Tuple, Union

from pydantic import ValidationError

from tvl_billing.core.money import ZERO, HUNDRED, quantize_money
from tvl_billing.models.billing import (
    BillingInput,
    BillingTotals,
    CHARGE_FIELDS,
    Discount,
    DiscountKind,
    GstMode,
)
from tvl_billing.services.exceptions import InvalidInputError


logger = logging.getLogger(__name__)


def coerce_billing_input(data: Union[BillingInput, Mapping[str, Any]]) -> BillingInput:
    """
    Build a BillingInput from a model or a plain mapping.

    Raises:
        InvalidInputError: unknown gst_mode / discount kind, or malformed lines
    """
    if isinstance(data, BillingInput):
        return data
    if data is None:
        raise InvalidInputError("Billing input is required")
    if not isinstance(data, Mapping):
        raise InvalidInputError(f"Billing input must be a mapping, got {type(data).__name__}")

    try:
        return BillingInput.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise InvalidInputError(f"Invalid billing input at '{field}': {first.get('msg')}", field=field) from e


def validate_billing_input(billing_input: BillingInput) -> None:
    """
    Reject negative amounts and a negative GST rate.

    Raises:
        InvalidInputError: naming the first offending field
    """
    for field in CHARGE_FIELDS + ("surcharge", "gst_rate"):
        if getattr(billing_input, field) < ZERO:
            raise InvalidInputError(f"{field} cannot be negative", field=field)

    for index, charge in enumerate(billing_input.extra_charges):
        if charge.amount < ZERO:
            raise InvalidInputError(
                f"Extra charge '{charge.label}' cannot be negative",
                field=f"extra_charges.{index}.amount",
            )

    for index, discount in enumerate(billing_input.discounts):
        if discount.amount < ZERO:
            raise InvalidInputError(
                f"Discount '{discount.label}' cannot be negative",
                field=f"discounts.{index}.amount",
            )


def calculate_subtotal(billing_input: BillingInput) -> Decimal:
    """Sum of all additive charge components and extra charge lines."""
    subtotal = sum((getattr(billing_input, field) for field in CHARGE_FIELDS), ZERO)
    subtotal += sum((charge.amount for charge in billing_input.extra_charges), ZERO)
    return subtotal


def apply_discounts(amount: Decimal, discounts: Iterable[Discount]) -> Decimal:
    """
    Apply discounts sequentially to a running balance.

    A PERCENTAGE discount is taken on the balance left after the
    discounts before it, so [FIXED 100, PERCENTAGE 10] on 1000 gives 810
    while [PERCENTAGE 10, FIXED 100] gives 800.
    """
    running = amount
    for discount in discounts:
        if discount.kind == DiscountKind.PERCENTAGE:
            running -= running * discount.amount / HUNDRED
        else:
            running -= discount.amount
    return running


def apply_gst(
    amount: Decimal,
    gst_rate: Decimal,
    gst_mode: GstMode,
    surcharge: Decimal = ZERO,
) -> Tuple[Decimal, Decimal]:
    """
    Return (tax_amount, grand_total) for an amount after discounts.

    EXCLUSIVE: tax = amount * rate / 100, grand = amount + tax + surcharge
    INCLUSIVE: tax = amount * rate / (100 + rate), grand = amount + surcharge
    """
    if gst_mode == GstMode.INCLUSIVE:
        tax = amount * gst_rate / (HUNDRED + gst_rate)
        return tax, amount + surcharge

    tax = amount * gst_rate / HUNDRED
    return tax, amount + tax + surcharge


def compute_total(data: Union[BillingInput, Mapping[str, Any]]) -> BillingTotals:
    """
    Compute the totals breakdown for a bill's charge fields.

    Deterministic and side-effect free. Missing or non-numeric amounts
    count as 0; all returned amounts are rounded to 2 decimal places and
    the grand total is floored at zero.

    Args:
        data: BillingInput or a mapping of its fields (snake_case or camelCase)

    Returns:
        BillingTotals(subtotal, total_discount, tax_amount, grand_total)

    Raises:
        InvalidInputError: negative amount/rate, unknown gst_mode or discount kind,
            or amounts too large to round to paisa
    """
    billing_input = coerce_billing_input(data)
    validate_billing_input(billing_input)

    try:
        subtotal = calculate_subtotal(billing_input)
        running = apply_discounts(subtotal, billing_input.discounts)
        tax, grand = apply_gst(
            running,
            billing_input.gst_rate,
            billing_input.gst_mode,
            billing_input.surcharge,
        )
        totals = BillingTotals(
            subtotal=quantize_money(subtotal),
            total_discount=quantize_money(subtotal - running),
            tax_amount=quantize_money(tax),
            grand_total=quantize_money(max(ZERO, grand)),
        )
    except DecimalException as e:
        # Amounts beyond the decimal context precision cannot be rounded to paisa
        raise InvalidInputError("Amounts are too large to total") from e

    logger.debug(
        f"compute_total: subtotal={totals.subtotal}, discount={totals.total_discount}, "
        f"tax={totals.tax_amount} ({billing_input.gst_mode.value} @ {billing_input.gst_rate}%), "
        f"grand_total={totals.grand_total}"
    )
    return totals

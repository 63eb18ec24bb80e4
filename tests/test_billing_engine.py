from decimal import Decimal

import pytest

from tvl_billing.core.money import quantize_money, to_decimal
from tvl_billing.models.billing import BillingInput, Discount, DiscountKind, GstMode
from tvl_billing.services.billing_engine import (
    apply_discounts,
    apply_gst,
    calculate_subtotal,
    compute_total,
)
from tvl_billing.services.exceptions import ErrorKind, InvalidInputError


SAMPLE_CHARGES = {
    "baseFare": 1000,
    "serviceCharge": 50,
    "gstRate": 18,
}


def test_exclusive_gst_added_on_top() -> None:
    totals = compute_total({**SAMPLE_CHARGES, "gstMode": "EXCLUSIVE"})

    assert totals.subtotal == Decimal("1050.00")
    assert totals.total_discount == Decimal("0.00")
    assert totals.tax_amount == Decimal("189.00")
    assert totals.grand_total == Decimal("1239.00")


def test_inclusive_gst_extracted_from_amount() -> None:
    totals = compute_total({**SAMPLE_CHARGES, "gstMode": "INCLUSIVE"})

    assert totals.subtotal == Decimal("1050.00")
    assert totals.tax_amount == Decimal("160.17")
    assert totals.grand_total == Decimal("1050.00")


def test_gst_mode_defaults_to_exclusive() -> None:
    assert compute_total(SAMPLE_CHARGES).grand_total == Decimal("1239.00")
    assert compute_total({**SAMPLE_CHARGES, "gstMode": None}).grand_total == Decimal("1239.00")


def test_gst_mode_is_case_insensitive() -> None:
    totals = compute_total({**SAMPLE_CHARGES, "gst_mode": "inclusive"})
    assert totals.grand_total == Decimal("1050.00")


def test_discounts_apply_in_order() -> None:
    fixed_first = compute_total({
        "baseFare": 1000,
        "discounts": [
            {"label": "Loyalty", "amount": 100, "kind": "FIXED"},
            {"label": "Festive", "amount": 10, "kind": "PERCENTAGE"},
        ],
    })
    percentage_first = compute_total({
        "baseFare": 1000,
        "discounts": [
            {"label": "Festive", "amount": 10, "kind": "PERCENTAGE"},
            {"label": "Loyalty", "amount": 100, "kind": "FIXED"},
        ],
    })

    assert fixed_first.grand_total == Decimal("810.00")
    assert fixed_first.total_discount == Decimal("190.00")
    assert percentage_first.grand_total == Decimal("800.00")
    assert percentage_first.total_discount == Decimal("200.00")


def test_discount_accepts_type_alias() -> None:
    totals = compute_total({
        "baseFare": 500,
        "discounts": [{"label": "Promo", "amount": 20, "type": "percentage"}],
    })
    assert totals.grand_total == Decimal("400.00")


def test_grand_total_never_negative() -> None:
    totals = compute_total({
        "baseFare": 100,
        "gstRate": 18,
        "discounts": [{"label": "Waiver", "amount": 500, "kind": "FIXED"}],
    })

    assert totals.grand_total == Decimal("0.00")
    assert totals.total_discount == Decimal("500.00")
    assert totals.tax_amount == Decimal("-72.00")


def test_surcharge_added_after_tax() -> None:
    exclusive = compute_total({**SAMPLE_CHARGES, "surcharge": 25})
    inclusive = compute_total({**SAMPLE_CHARGES, "surcharge": 25, "gstMode": "INCLUSIVE"})

    assert exclusive.tax_amount == Decimal("189.00")
    assert exclusive.grand_total == Decimal("1264.00")
    assert inclusive.grand_total == Decimal("1075.00")


def test_extra_charges_included_in_subtotal() -> None:
    totals = compute_total({
        "baseFare": 1000,
        "platformFee": "20",
        "extraCharges": [
            {"label": "Tatkal", "amount": 150},
            {"label": "Porter", "amount": "30.50"},
        ],
    })
    assert totals.subtotal == Decimal("1200.50")
    assert totals.grand_total == Decimal("1200.50")


def test_every_charge_field_counts() -> None:
    charges = {
        "base_fare": 1,
        "service_charge": 2,
        "platform_fee": 3,
        "agent_fee": 4,
        "station_boy_incentive": 5,
        "misc_charges": 6,
        "delivery_charge": 7,
        "cancellation_charge": 8,
    }
    assert compute_total(charges).subtotal == Decimal("36.00")


def test_missing_and_non_numeric_amounts_count_as_zero() -> None:
    totals = compute_total({
        "baseFare": "abc",
        "serviceCharge": "",
        "agentFee": None,
        "platformFee": "1,250.75",
    })
    assert totals.subtotal == Decimal("1250.75")


def test_empty_input_is_all_zero() -> None:
    totals = compute_total({})
    assert totals.subtotal == Decimal("0.00")
    assert totals.tax_amount == Decimal("0.00")
    assert totals.grand_total == Decimal("0.00")


@pytest.mark.parametrize(
    "charges, field",
    [
        ({"baseFare": 1000, "serviceCharge": -5}, "service_charge"),
        ({"baseFare": 1000, "gstRate": -1}, "gst_rate"),
        ({"baseFare": 1000, "surcharge": "-0.01"}, "surcharge"),
        ({"extraCharges": [{"label": "Porter", "amount": -10}]}, "extra_charges.0.amount"),
        ({"discounts": [{"label": "Bad", "amount": -10}]}, "discounts.0.amount"),
    ],
)
def test_negative_amounts_rejected(charges, field) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        compute_total(charges)

    assert exc_info.value.kind == ErrorKind.INVALID_INPUT
    assert exc_info.value.field == field


def test_unknown_gst_mode_rejected() -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        compute_total({"baseFare": 100, "gstMode": "GROSS"})
    assert exc_info.value.kind == ErrorKind.INVALID_INPUT
    assert exc_info.value.field is not None


def test_unknown_discount_kind_rejected() -> None:
    with pytest.raises(InvalidInputError):
        compute_total({"discounts": [{"amount": 10, "kind": "BOGO"}]})


def test_non_mapping_input_rejected() -> None:
    with pytest.raises(InvalidInputError):
        compute_total(None)
    with pytest.raises(InvalidInputError):
        compute_total([1000, 50])


def test_compute_total_is_deterministic() -> None:
    billing_input = BillingInput(
        base_fare=Decimal("999.99"),
        agent_fee=Decimal("33.33"),
        gst_rate=Decimal("5"),
        gst_mode=GstMode.INCLUSIVE,
        discounts=[Discount(label="Promo", amount=Decimal("7.5"), kind=DiscountKind.PERCENTAGE)],
    )
    results = {compute_total(billing_input) for _ in range(5)}
    assert len(results) == 1


def test_compute_total_does_not_mutate_input() -> None:
    billing_input = BillingInput(base_fare=Decimal("100"), gst_rate=Decimal("18"))
    before = billing_input.model_dump()
    compute_total(billing_input)
    assert billing_input.model_dump() == before


def test_helpers() -> None:
    billing_input = BillingInput(base_fare=Decimal("100"), misc_charges=Decimal("5"))
    assert calculate_subtotal(billing_input) == Decimal("105")

    discounts = [Discount(amount=Decimal("10"), kind=DiscountKind.PERCENTAGE)]
    assert apply_discounts(Decimal("200"), discounts) == Decimal("180")

    tax, grand = apply_gst(Decimal("118"), Decimal("18"), GstMode.INCLUSIVE)
    assert quantize_money(tax) == Decimal("18.00")
    assert grand == Decimal("118")


def test_money_helpers() -> None:
    assert to_decimal("  12.5 ") == Decimal("12.5")
    assert to_decimal(True) == Decimal("0")
    assert to_decimal("NaN") == Decimal("0")
    assert to_decimal(-3) == Decimal("-3")
    assert quantize_money(Decimal("2.345")) == Decimal("2.35")
    assert quantize_money(Decimal("2.344")) == Decimal("2.34")


@pytest.mark.parametrize("amount", ["1e30", "1e999999"])
def test_amounts_beyond_decimal_precision_rejected(amount) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        compute_total({"baseFare": amount, "gstRate": 18})
    assert exc_info.value.kind == ErrorKind.INVALID_INPUT

"""
Enum helpers for the string-valued billing fields.

Statuses, actions, GST modes, discount kinds and payment modes are str-Enums
whose value is the UPPERCASE name. Clients may send any casing
("inclusive", "Finalize"); schemas normalize before Pydantic validates, and
services convert loose values with to_enum():

    _normalize_mode = create_uppercase_validator('gst_mode', VALID_GST_MODES)
    status = to_enum(raw_status, BillStatus)
"""

from enum import Enum
from typing import Any, Optional, Set, Type, TypeVar

from pydantic import field_validator


E = TypeVar('E', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """Plain string for an enum member or string; None stays None."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[E]) -> Optional[E]:
    """
    Look up an enum member case-insensitively.

    Returns None for values outside the enum so the caller can raise its
    own domain error.

        >>> to_enum(" final ", BillStatus)
        <BillStatus.FINAL: 'FINAL'>
        >>> to_enum("ARCHIVED", BillStatus) is None
        True
    """
    if value is None or isinstance(value, enum_class):
        return value
    lookup = value.strip().upper() if isinstance(value, str) else value
    try:
        return enum_class(lookup)
    except ValueError:
        return None


# =============================================================================
# SCHEMA NORMALIZATION
# =============================================================================

def normalize_to_uppercase(value: Any, valid_values: Set[str]) -> Any:
    """
    Uppercase a string when that makes it a valid value.

    Anything else is passed through untouched so that Pydantic reports
    the invalid value itself.
    """
    if isinstance(value, str):
        candidate = value.strip().upper()
        if candidate in valid_values:
            return candidate
    return value


def create_uppercase_validator(field_name: str, valid_values: Set[str]) -> classmethod:
    """Build a mode='before' validator applying normalize_to_uppercase to one field."""

    @field_validator(field_name, mode='before')
    @classmethod
    def _uppercase(cls, v):
        return normalize_to_uppercase(v, valid_values)

    return _uppercase


# =============================================================================
# VALID VALUES
# =============================================================================

VALID_BILL_STATUSES = {"DRAFT", "FINAL", "PAID", "PARTIAL", "CANCELLED"}

VALID_BILL_ACTIONS = {"FINALIZE", "CANCEL", "REOPEN"}

VALID_GST_MODES = {"EXCLUSIVE", "INCLUSIVE"}

VALID_DISCOUNT_KINDS = {"FIXED", "PERCENTAGE"}

VALID_PAYMENT_MODES = {"CASH", "UPI", "CARD", "NET_BANKING", "CHEQUE", "BANK_TRANSFER"}

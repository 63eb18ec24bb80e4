"""Exceptions raised by the billing services."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a billing failure, used by callers to pick a response."""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    NOT_FOUND = "NOT_FOUND"


class BillingError(Exception):
    """Base exception for billing failures."""

    kind: ErrorKind

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidInputError(BillingError):
    """Raised when a charge, discount or GST field fails validation."""

    kind = ErrorKind.INVALID_INPUT


class InvalidStateTransitionError(BillingError):
    """Raised when an action is not allowed from the bill's current status."""

    kind = ErrorKind.INVALID_STATE_TRANSITION


class BillFrozenError(InvalidStateTransitionError):
    """Raised when charge fields of a finalized, paid or cancelled bill are changed."""


class BillNotFoundError(BillingError):
    """Raised when a bill number does not exist."""

    kind = ErrorKind.NOT_FOUND

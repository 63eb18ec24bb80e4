"""
Bill State Machine

This module is the SINGLE SOURCE OF TRUTH for bill status changes.
All status changes must go through this module.

Lifecycle:
    DRAFT --FINALIZE--> FINAL --(payments)--> PARTIAL --> PAID
    DRAFT --CANCEL----> CANCELLED
    FINAL --CANCEL----> CANCELLED   (only while no payment is recorded)

Once a bill leaves DRAFT its charge fields are frozen. REOPEN is not
supported; a correction needs a new bill.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from tvl_billing.core.enum_utils import get_enum_value, to_enum
from tvl_billing.core.money import ZERO
from tvl_billing.models.billing import Bill, BillAction, BillStatus
from tvl_billing.services.exceptions import InvalidInputError, InvalidStateTransitionError


logger = logging.getLogger(__name__)


# =============================================================================
# TRANSITION RULES
# =============================================================================

# (current_status, action) -> next_status
BILL_TRANSITIONS: Dict[Tuple[BillStatus, BillAction], BillStatus] = {
    (BillStatus.DRAFT, BillAction.FINALIZE): BillStatus.FINAL,
    (BillStatus.DRAFT, BillAction.CANCEL): BillStatus.CANCELLED,
    (BillStatus.FINAL, BillAction.CANCEL): BillStatus.CANCELLED,
}

# Human-readable action names for each transition
TRANSITION_LABELS: Dict[Tuple[BillStatus, BillAction], str] = {
    (BillStatus.DRAFT, BillAction.FINALIZE): "Finalize Bill",
    (BillStatus.DRAFT, BillAction.CANCEL): "Cancel Draft",
    (BillStatus.FINAL, BillAction.CANCEL): "Cancel Bill",
}

# Statuses a payment can be recorded against
PAYABLE_STATUSES = (BillStatus.FINAL, BillStatus.PARTIAL)

# Statuses whose charge fields may no longer change
FROZEN_STATUSES = (BillStatus.FINAL, BillStatus.PARTIAL, BillStatus.PAID, BillStatus.CANCELLED)

TERMINAL_STATUSES = (BillStatus.PAID, BillStatus.CANCELLED)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _as_status(value: Any) -> BillStatus:
    status = to_enum(value, BillStatus)
    if status is None:
        raise InvalidInputError(f"Unknown bill status '{value}'", field="status")
    return status


def _as_action(value: Any) -> BillAction:
    action = to_enum(value, BillAction)
    if action is None:
        raise InvalidInputError(f"Unknown bill action '{value}'", field="action")
    return action


def can_transition(current_status: Any, action: Any) -> bool:
    """Check if an action is allowed from the current status."""
    return (_as_status(current_status), _as_action(action)) in BILL_TRANSITIONS


def get_allowed_actions(current_status: Any) -> List[BillAction]:
    """Get the actions that can be taken from the current status."""
    status = _as_status(current_status)
    return [action for (frm, action) in BILL_TRANSITIONS if frm == status]


def get_transition_label(current_status: Any, action: Any) -> str:
    """Get human-readable name for a transition."""
    status, act = _as_status(current_status), _as_action(action)
    return TRANSITION_LABELS.get((status, act), f"{status.value} -> {act.value}")


def transition(current_status: Any, action: Any) -> BillStatus:
    """
    Resolve the status a bill moves to when an action is applied.

    Pure; does not touch any bill.

    Raises:
        InvalidStateTransitionError: action not allowed from current_status
        InvalidInputError: unknown status or action value
    """
    status = _as_status(current_status)
    act = _as_action(action)

    if act == BillAction.REOPEN:
        raise InvalidStateTransitionError(
            f"Bill in '{status.value}' status cannot be reopened. "
            f"Create a new bill to make corrections."
        )

    next_status = BILL_TRANSITIONS.get((status, act))
    if next_status is None:
        allowed = get_allowed_actions(status)
        if not allowed:
            raise InvalidStateTransitionError(
                f"Cannot {act.value.lower()} a bill in '{status.value}' status. "
                f"No further actions are allowed."
            )
        raise InvalidStateTransitionError(
            f"Cannot {act.value.lower()} a bill in '{status.value}' status. "
            f"Allowed actions: {', '.join(a.value for a in allowed)}"
        )
    return next_status


def settle(current_status: Any, total_amount: Decimal, amount_paid: Decimal) -> BillStatus:
    """
    Derive the payment status of a finalized bill from the amount paid.

    - nothing paid             -> FINAL
    - paid less than total     -> PARTIAL
    - paid total or more       -> PAID

    Raises:
        InvalidStateTransitionError: bill is not FINAL or PARTIAL
    """
    status = _as_status(current_status)
    if status not in PAYABLE_STATUSES:
        raise InvalidStateTransitionError(
            f"Payments cannot be applied to a bill in '{status.value}' status"
        )

    if amount_paid <= ZERO:
        return BillStatus.FINAL
    if amount_paid < total_amount:
        return BillStatus.PARTIAL
    return BillStatus.PAID


# =============================================================================
# STATUS CHECK HELPERS
# =============================================================================

def can_edit(status: Any) -> bool:
    """Can the charge fields of this bill be changed?"""
    return _as_status(status) == BillStatus.DRAFT


def can_delete(status: Any) -> bool:
    """Can this bill be deleted? Finalized or paid bills are kept."""
    return _as_status(status) in (BillStatus.DRAFT, BillStatus.CANCELLED)


def can_finalize(status: Any) -> bool:
    return can_transition(status, BillAction.FINALIZE)


def can_cancel(status: Any) -> bool:
    return can_transition(status, BillAction.CANCEL)


def can_accept_payment(status: Any) -> bool:
    return _as_status(status) in PAYABLE_STATUSES


def is_frozen(status: Any) -> bool:
    """Is this bill past DRAFT (charge fields immutable)?"""
    return _as_status(status) in FROZEN_STATUSES


def is_terminal(status: Any) -> bool:
    return _as_status(status) in TERMINAL_STATUSES


# =============================================================================
# TRANSITION EXECUTOR
# =============================================================================

def transition_bill(bill: Bill, action: Any, user_id: str, now: Optional[datetime] = None) -> Bill:
    """
    Apply a lifecycle action to a bill.

    This function:
    1. Validates the action is allowed from the bill's status
    2. Updates the status
    3. Stamps modified_on/modified_by with the acting user

    Args:
        bill: Bill to update in place
        action: FINALIZE, CANCEL or REOPEN
        user_id: ID of the user performing the action
        now: Timestamp to record (defaults to current UTC time)

    Raises:
        InvalidStateTransitionError: If the action is not allowed
    """
    current_status = bill.status
    try:
        next_status = transition(current_status, action)
    except InvalidStateTransitionError:
        logger.warning(
            f"Rejected {get_enum_value(action)} on bill {bill.bill_number} "
            f"in {_as_status(current_status).value} status"
        )
        raise

    bill.status = next_status
    bill.modified_on = now or datetime.now(timezone.utc)
    bill.modified_by = user_id

    logger.info(
        f"Bill {bill.bill_number}: {_as_status(current_status).value} -> {next_status.value} by {user_id}"
    )
    return bill


# =============================================================================
# VISUALIZATION (for debugging/documentation)
# =============================================================================

def print_state_diagram():
    """Print a text representation of the state machine."""
    print("\n=== Bill State Machine ===\n")
    for status in BillStatus:
        actions = get_allowed_actions(status)
        if actions:
            print(f"{status.value}:")
            for action in actions:
                label = get_transition_label(status, action)
                print(f"  --{action.value}--> {BILL_TRANSITIONS[(status, action)].value} ({label})")
        elif status in PAYABLE_STATUSES:
            print(f"{status.value}: [settled by payments]")
        else:
            print(f"{status.value}: [TERMINAL STATE]")
        print()


if __name__ == "__main__":
    print_state_diagram()

"""API endpoints for railway booking bills (GST aware)."""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional
import logging
import math

from fastapi import APIRouter, Body, HTTPException, status, Query

from tvl_billing.api.deps import Billing, CurrentUserId
from tvl_billing.config import settings
from tvl_billing.models.billing import Bill, BillFilter, BillStatus, Payment
from tvl_billing.schemas.billing import (
    BillCreate,
    BillListResponse,
    BillResponse,
    BillUpdate,
    BillingCalculationResponse,
    CustomerBalanceResponse,
    CustomerLedgerResponse,
    PaymentCreate,
    TransitionRequest,
    TransitionResponse,
)
from tvl_billing.services import bill_state_machine as state_machine
from tvl_billing.services.billing_engine import coerce_billing_input, compute_total
from tvl_billing.services.exceptions import BillingError, ErrorKind


logger = logging.getLogger(__name__)

router = APIRouter()


ERROR_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def _http_error(exc: BillingError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        detail=exc.message,
    )


def _bill_response(bill: Bill) -> BillResponse:
    return BillResponse.from_bill(bill, state_machine.get_allowed_actions(bill.status))


# ==================== Calculation ====================

@router.post("/calculate", response_model=BillingCalculationResponse)
async def calculate_totals(charges: Dict[str, Any] = Body(...)):
    """
    Compute the totals breakdown for a set of charges without saving anything.

    The body is validated by the billing engine, so an unknown gstMode or
    discount kind is a 400 like any other invalid charge.
    """
    try:
        billing_in = coerce_billing_input(charges)
        totals = compute_total(billing_in)
    except BillingError as e:
        raise _http_error(e) from e

    return BillingCalculationResponse(
        **totals.model_dump(),
        gst_rate=billing_in.gst_rate,
        gst_mode=billing_in.gst_mode,
        currency=settings.CURRENCY,
    )


@router.post("/transition", response_model=TransitionResponse)
async def resolve_transition(transition_in: TransitionRequest):
    """Resolve the status an action leads to from a given status."""
    try:
        next_status = state_machine.transition(transition_in.status, transition_in.action)
    except BillingError as e:
        raise _http_error(e) from e

    return TransitionResponse(
        status=next_status,
        allowed_actions=state_machine.get_allowed_actions(next_status),
    )


# ==================== Bills ====================

@router.post("/bills", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_in: BillCreate,
    service: Billing,
    user_id: CurrentUserId,
):
    """Create a draft bill."""
    try:
        bill = await service.create_bill(bill_in, entered_by=user_id)
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.get("/bills", response_model=BillListResponse)
async def list_bills(
    service: Billing,
    customer_id: Optional[str] = Query(None, alias="customerId"),
    customer_name: Optional[str] = Query(None, alias="customerName"),
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    min_amount: Optional[Decimal] = Query(None, alias="minAmount"),
    max_amount: Optional[Decimal] = Query(None, alias="maxAmount"),
    sort_by: str = Query("createdOn", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """Search bills by customer, status, bill date and amount range, sorted and paginated."""
    criteria = BillFilter(
        customer_id=customer_id,
        customer_name=customer_name,
        status=bill_status,
        from_date=from_date,
        to_date=to_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    try:
        bills, total = await service.search_bills(
            criteria, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit
        )
    except BillingError as e:
        raise _http_error(e) from e

    return BillListResponse(
        items=[_bill_response(b) for b in bills],
        total=total,
        page=page,
        size=limit,
        pages=math.ceil(total / limit) if total else 1,
    )


# Bill numbers contain "/" (BL/25-26/00001), hence the :path converters.

@router.post("/bills/{bill_number:path}/finalize", response_model=BillResponse)
async def finalize_bill(
    bill_number: str,
    service: Billing,
    user_id: CurrentUserId,
):
    """Finalize a draft bill. Its charges are frozen afterwards."""
    try:
        bill = await service.finalize_bill(bill_number, user_id)
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.post("/bills/{bill_number:path}/cancel", response_model=BillResponse)
async def cancel_bill(
    bill_number: str,
    service: Billing,
    user_id: CurrentUserId,
):
    """Cancel a draft bill, or a final bill with no payments."""
    try:
        bill = await service.cancel_bill(bill_number, user_id)
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.post("/bills/{bill_number:path}/payments", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    bill_number: str,
    payment_in: PaymentCreate,
    service: Billing,
    user_id: CurrentUserId,
):
    """Record a payment against a finalized bill."""
    try:
        bill = await service.record_payment(
            bill_number,
            payment_in.amount,
            received_by=user_id,
            paid_on=payment_in.paid_on,
            mode=payment_in.mode,
            reference=payment_in.reference,
        )
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.get("/bills/{bill_number:path}/payments", response_model=list[Payment])
async def list_bill_payments(
    bill_number: str,
    service: Billing,
):
    """List payments recorded against a bill."""
    try:
        return await service.list_payments(bill_number)
    except BillingError as e:
        raise _http_error(e) from e


@router.get("/bills/{bill_number:path}", response_model=BillResponse)
async def get_bill(
    bill_number: str,
    service: Billing,
):
    """Get bill by number."""
    try:
        bill = await service.get_bill(bill_number)
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.patch("/bills/{bill_number:path}", response_model=BillResponse)
async def update_bill(
    bill_number: str,
    bill_in: BillUpdate,
    service: Billing,
    user_id: CurrentUserId,
):
    """Update a draft bill and recompute its totals."""
    try:
        bill = await service.update_bill(bill_number, bill_in, modified_by=user_id)
    except BillingError as e:
        raise _http_error(e) from e
    return _bill_response(bill)


@router.delete("/bills/{bill_number:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bill(
    bill_number: str,
    service: Billing,
    user_id: CurrentUserId,
):
    """Delete a draft or cancelled bill."""
    try:
        await service.delete_bill(bill_number)
    except BillingError as e:
        raise _http_error(e) from e
    logger.info(f"Bill {bill_number} deleted by {user_id}")


# ==================== Customer Ledger ====================

@router.get("/customers/{customer_id}/ledger", response_model=CustomerLedgerResponse)
async def get_customer_ledger(customer_id: str, service: Billing):
    """Customer ledger: bills as debits, payments as credits, running balance."""
    return await service.get_customer_ledger(customer_id)


@router.get("/customers/{customer_id}/balance", response_model=CustomerBalanceResponse)
async def get_customer_balance(customer_id: str, service: Billing):
    """Total billed, total received and the net due or advance."""
    return await service.get_customer_balance(customer_id)

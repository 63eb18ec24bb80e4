from fastapi import APIRouter

from tvl_billing.api.v1.endpoints import billing


api_router = APIRouter(prefix="/api/v1")

# Billing: totals calculation, bill lifecycle, payments, customer ledger
api_router.include_router(billing.router, prefix="/billing", tags=["Billing"])

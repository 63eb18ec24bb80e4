import logging
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tvl_billing import __version__
from tvl_billing.api.v1.endpoints.billing import ERROR_STATUS_CODES
from tvl_billing.api.v1.router import api_router
from tvl_billing.config import settings
from tvl_billing.services.exceptions import BillingError


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


API_DESCRIPTION = """
Billing back office for railway bookings.

- **Totals**: subtotal of fare and fees, sequential discounts, GST (exclusive or inclusive), surcharge
- **Lifecycle**: DRAFT → FINAL → PARTIAL/PAID, or CANCELLED. Finalized bills are frozen
- **Ledger**: per-customer debits, credits and running balance

Mutating requests must carry an `X-User-Id` header naming the acting user.
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    openapi_tags=[
        {"name": "Billing", "description": "Bill totals, lifecycle, payments and customer ledger"},
        {"name": "Health", "description": "Service health"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    """Billing errors that escape an endpoint still get their mapped status."""
    logger.warning(f"{exc.kind.value} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.kind, 400),
        content={"detail": exc.message, "kind": exc.kind.value, "field": exc.field},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    content = {
        "detail": str(exc) if settings.DEBUG else "Internal server error",
        "type": type(exc).__name__,
        "path": request.url.path,
    }
    if settings.DEBUG:
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": __version__,
        "currency": settings.CURRENCY,
        "defaultGstRate": str(settings.DEFAULT_GST_RATE),
        "defaultGstMode": settings.DEFAULT_GST_MODE,
        "checkedAt": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/", tags=["Health"])
async def root():
    return {"service": settings.APP_NAME, "version": settings.APP_VERSION, "docs": "/docs"}

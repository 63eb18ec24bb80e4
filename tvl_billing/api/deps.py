from typing import Annotated, Optional
from functools import lru_cache
import logging

from fastapi import Depends, Header, HTTPException, status

from tvl_billing.services.bill_repository import InMemoryBillRepository
from tvl_billing.services.bill_service import BillService


logger = logging.getLogger(__name__)


@lru_cache()
def get_bill_repository() -> InMemoryBillRepository:
    """Process-wide repository. Deployments override this dependency with a persistent one."""
    return InMemoryBillRepository()


def get_bill_service(
    repository: Annotated[InMemoryBillRepository, Depends(get_bill_repository)],
) -> BillService:
    return BillService(repository)


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Identify the acting user from the X-User-Id header.

    Authentication happens upstream; this layer only requires that the
    caller names the user so audit fields can be stamped explicitly.
    """
    if not x_user_id or not x_user_id.strip():
        logger.warning("Rejected request without X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return x_user_id.strip()


# Type aliases for cleaner dependency injection
Billing = Annotated[BillService, Depends(get_bill_service)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]

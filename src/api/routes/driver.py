"""
Driver endpoints
================

GET /api/v1/driver/status -- order-eligibility flag as reported by the dispatch platform
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_driver, get_engine
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import DriverStatusResponse
from src.infrastructure.models import DriverModel
from src.services.permit_engine import PermitEngine

router = APIRouter(prefix="/driver", tags=["driver"])


@router.get(
    "/status",
    response_model=DriverStatusResponse,
    summary="Get the driver's order-eligibility status",
    description="Queries the dispatch platform and refreshes the cached flag. "
    "If the platform is unreachable the cached flag is returned with "
    "``synced=false``.",
)
@limiter.limit(RATE_LIMIT)
async def driver_status(
    request: Request,
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    status = await engine.get_driver_status(driver.id)
    return DriverStatusResponse(
        orders_enabled=status.orders_enabled,
        last_checked=status.last_checked,
        synced=status.synced,
        has_active_permit=status.has_active_permit,
        error=status.error,
    )

"""FastAPI dependency injection helpers."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.api.security import decode_driver_id
from src.infrastructure.models import DriverModel
from src.infrastructure.repositories import DriverRepository
from src.services.permit_engine import PermitEngine

_bearer = HTTPBearer(auto_error=False)


def get_engine(request: Request) -> PermitEngine:
    return request.app.state.permit_engine


async def get_current_driver(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> DriverModel:
    """Resolve the bearer token to an active driver, else 401."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing access token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    driver_id = decode_driver_id(credentials.credentials, request.app.state.settings)
    if driver_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    async with request.app.state.session_factory() as session:
        driver = await DriverRepository(session).get_by_id(driver_id)

    if driver is None or not driver.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token or driver is blocked",
        )
    return driver

"""
Bearer-token helpers.

Tokens are issued by the identity service (phone + SMS code exchange);
this service only verifies them.  ``create_access_token`` exists for the
seed script and tests.
"""

from __future__ import annotations

import time
from typing import Optional

from jose import JWTError, jwt

from src.config import Settings


def create_access_token(driver_id: int, settings: Settings) -> str:
    exp = int(time.time()) + settings.jwt_ttl_seconds
    return jwt.encode(
        {"driver_id": driver_id, "exp": exp},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_driver_id(token: str, settings: Settings) -> Optional[int]:
    """Return the token's driver id, or None if it is invalid or expired."""
    try:
        claims = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None
    driver_id = claims.get("driver_id")
    if isinstance(driver_id, bool) or not isinstance(driver_id, int):
        return None
    return driver_id

"""
Shared rate limiter, keyed by client address.

The per-route limit is bound when the route modules are imported, so it
comes from the process environment (``RATE_LIMIT``), not from a
``Settings`` passed to ``create_app``.  Change it by setting the env var
before start-up.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.config import settings

limiter = Limiter(key_func=get_remote_address)

RATE_LIMIT = settings.rate_limit

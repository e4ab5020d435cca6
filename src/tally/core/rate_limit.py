"""Per-route rate limiting with slowapi.

These limits are a coarse per-IP abuse brake in front of the credential
routes. Account-level brute force protection is the login attempt lockout.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from src.tally.core.config import get_settings
from src.tally.core.logging import get_logger

logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """Generate rate limit key from client IP only.

    Never include user-controlled headers: rotating them would create
    unlimited new buckets.
    """
    return get_remote_address(request) or "unknown"


def create_limiter() -> Limiter:
    """Create an in-memory rate limiter. Disabled in testing environment."""
    settings = get_settings()

    if settings.app_env == "testing":
        logger.info("Rate limiter disabled (testing environment)")
        return Limiter(key_func=get_rate_limit_key, enabled=False)

    return Limiter(key_func=get_rate_limit_key)


# Reads settings at import time; reconfiguration requires a restart
limiter = create_limiter()

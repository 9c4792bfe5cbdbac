"""
Rate limiting for the UniConnect API, using slowapi.

Every route shares the default window (RATE_LIMIT_DEFAULT, per client
address). Login and registration carry stricter limits of their own.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from uniconnect.config import settings
from uniconnect.logging_config import logger

AUTH_LIMIT = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


def auth_rate_limit():
    """Stricter limit for credential endpoints"""
    return limiter.limit(AUTH_LIMIT)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"[RateLimit] Exceeded for {get_remote_address(request)}: {exc.detail}")
    return JSONResponse(
        status_code=429,
        content={
            "code": "RATE_LIMIT_EXCEEDED",
            "message": "Too many requests from this IP, please try again later.",
            "details": {"limit": str(exc.detail)},
        },
    )

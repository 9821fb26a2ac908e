"""
Rate limiting for the login and contact endpoints.
Uses slowapi to slow down password guessing and contact form spam.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from portfolio_cms.config import settings


def get_client_identifier(request: Request) -> str:
    """
    Get client identifier for rate limiting.
    Uses forwarded IP if behind proxy, otherwise remote address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First IP in the chain is the original client
        return forwarded.split(",")[0].strip()

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)


RATE_LIMITS = {
    "login": "5/minute",  # Login attempts per minute per IP
    "contact": "10/hour",  # Contact form submissions per hour per IP
}

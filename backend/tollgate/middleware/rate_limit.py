"""Rate limiting for the credential-accepting endpoints"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from tollgate.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting.

    Auth endpoints are hit before a user is known, so limits are keyed by
    client address. Honours X-Forwarded-For's first hop when present.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_identifier,
    default_limits=settings.RATE_LIMIT_DEFAULT,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit configurations for different endpoints
RATE_LIMITS = {
    # Credential guessing surface - tight limits
    "signup": "10/minute",
    "login": "10/minute",
    "reset_password": "5/minute",

    # Clients refresh on every expiry, plus retries
    "refresh": "30/minute",
}


def get_rate_limit(endpoint: str) -> str:
    """Get rate limit for specific endpoint"""
    return RATE_LIMITS.get(endpoint, settings.RATE_LIMIT_DEFAULT[0])

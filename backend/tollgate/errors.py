"""Service-layer exceptions mapped to HTTP responses.

Each class carries an HTTP ``status_code`` and a stable ``error_code`` that
ends up in the ``error.code`` field of the response envelope.
"""
from typing import Any, Optional


class AuthServiceError(Exception):
    """Base class for errors raised by the stores and services."""

    status_code: int = 400
    error_code: str = "ValidationError"
    default_message: str = "Bad request"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(AuthServiceError):
    """Malformed input (400)."""
    status_code = 400
    error_code = "ValidationError"
    default_message = "Validation failed"


class DuplicateEmail(AuthServiceError):
    """Signup with an email that is already registered (400)."""
    status_code = 400
    error_code = "DuplicateEmail"
    default_message = "Email already exists"


class InvalidCredentials(AuthServiceError):
    """Login failed. The message never says which half was wrong (401)."""
    status_code = 401
    error_code = "InvalidCredentials"
    default_message = "Invalid credentials"


class IncorrectCurrentPassword(InvalidCredentials):
    """Password update with a wrong current password (400)."""
    status_code = 400
    default_message = "Current password is incorrect"


class InvalidRefreshToken(AuthServiceError):
    """Refresh token has a bad signature, is expired, revoked or unknown (401)."""
    status_code = 401
    error_code = "InvalidRefreshToken"
    default_message = "Invalid or expired refresh token"


class MissingToken(AuthServiceError):
    """No bearer token on an auth-required endpoint (401)."""
    status_code = 401
    error_code = "MissingToken"
    default_message = "Access token required"


class InvalidToken(AuthServiceError):
    """Bearer token present but invalid or expired (403)."""
    status_code = 403
    error_code = "InvalidToken"
    default_message = "Invalid or expired token"


class NotFound(AuthServiceError):
    status_code = 404
    error_code = "NotFound"
    default_message = "Resource not found"


class RateLimited(AuthServiceError):
    status_code = 429
    error_code = "RateLimited"
    default_message = "Too many requests. Please try again later."


class Unexpected(AuthServiceError):
    status_code = 500
    error_code = "Unexpected"
    default_message = "An unexpected error occurred"


__all__ = [
    "AuthServiceError",
    "ValidationError",
    "DuplicateEmail",
    "InvalidCredentials",
    "IncorrectCurrentPassword",
    "InvalidRefreshToken",
    "MissingToken",
    "InvalidToken",
    "NotFound",
    "RateLimited",
    "Unexpected",
]

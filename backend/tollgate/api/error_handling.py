"""Exception handlers that render every failure as the response envelope"""
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from tollgate.errors import AuthServiceError, RateLimited, Unexpected
from tollgate.schemas.common import error_body
from tollgate.utils.logger import logger

_STATUS_TO_CODE = {
    400: "ValidationError",
    401: "MissingToken",
    403: "InvalidToken",
    404: "NotFound",
    405: "MethodNotAllowed",
    429: "RateLimited",
}

# Submitted values can hold passwords; never send them back
_VALIDATION_DETAIL_EXCLUDE = ("input", "url")


def _error_response(status_code: int, code: str, message: str, details: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, details))


def _validation_details(errors) -> list:
    return [{k: v for k, v in error.items() if k not in _VALIDATION_DETAIL_EXCLUDE} for error in errors]


def _describe_validation_errors(errors) -> str:
    first = errors[0] if errors else None
    if not first:
        return "Validation failed"
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def register_exception_handlers(app: FastAPI) -> None:
    """Install envelope-producing handlers for service, validation and unexpected errors."""

    @app.exception_handler(AuthServiceError)
    async def handle_service_error(request: Request, exc: AuthServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            f"{exc.error_code}: {exc.message}",
            extra={"path": request.url.path, "method": request.method, "status": exc.status_code},
        )
        return _error_response(exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(_validation_details(exc.errors()))
        logger.info(
            "Request validation failed",
            extra={"path": request.url.path, "method": request.method, "status": 400},
        )
        return _error_response(400, "ValidationError", _describe_validation_errors(errors), errors)

    @app.exception_handler(RateLimitExceeded)
    async def handle_rate_limit(request: Request, exc: RateLimitExceeded):
        logger.warning(
            "Rate limit exceeded",
            extra={"path": request.url.path, "method": request.method, "status": 429},
        )
        return _error_response(
            RateLimited.status_code,
            RateLimited.error_code,
            RateLimited.default_message,
            {"limit": str(exc.detail)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, "Unexpected")
        return _error_response(exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        # Full trace goes to the log only
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={"path": request.url.path, "method": request.method, "status": 500},
            exc_info=True,
        )
        return _error_response(Unexpected.status_code, Unexpected.error_code, Unexpected.default_message)

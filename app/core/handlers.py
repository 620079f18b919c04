"""
Exception handlers.

Converts every failure into the response envelope. Expected errors
(AuthAPIError) keep their status and message; unexpected ones are logged with
the full traceback and answered with a generic 500 unless DEBUG is on.
"""

import logging
import traceback
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import AuthAPIError
from app.core.rate_limit import rate_limit_exceeded_handler
from app.core.responses import error

logger = logging.getLogger(__name__)

HTTP_MESSAGES = {
    401: "Unauthenticated.",
    403: "This action is unauthorized.",
    404: "Resource not found.",
    405: "Method not allowed.",
}

_VALUE_ERROR_PREFIX = "Value error, "


def _debugging() -> bool:
    return settings.DEBUG and not settings.is_production


def _field_name(loc: tuple[Any, ...]) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


def group_validation_errors(raw_errors: list[dict[str, Any]]) -> dict[str, list[str]]:
    """Group pydantic errors by field: {"email": ["..."], "roles.0": ["..."]}."""
    grouped: dict[str, list[str]] = {}
    for err in raw_errors:
        msg = str(err.get("msg", "Invalid value."))
        if msg.startswith(_VALUE_ERROR_PREFIX):
            msg = msg[len(_VALUE_ERROR_PREFIX):]
        grouped.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(msg)
    return grouped


def auth_api_error_handler(request: Request, exc: AuthAPIError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s on %s %s: %s",
        exc.__class__.__name__,
        request.method,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error(exc.message, status_code=exc.status_code, errors=exc.errors, headers=headers)


def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = group_validation_errors(exc.errors())
    logger.warning(
        "Validation failed on %s %s (fields: %s)",
        request.method,
        request.url.path,
        ", ".join(sorted(errors)),
    )
    return error("Validation failed!", status_code=422, errors=errors)


def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = exc.status_code
    message = HTTP_MESSAGES.get(status_code)
    if message is None or (_debugging() and isinstance(exc.detail, str) and exc.detail):
        message = str(exc.detail) if exc.detail else "An HTTP error occurred."
    return error(message, status_code=status_code, headers=getattr(exc, "headers", None))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc.__class__.__name__,
        exc_info=exc,
    )
    if not _debugging():
        return error("Something went wrong. Please try again later.", status_code=500)
    details = {
        "exception": exc.__class__.__name__,
        "message": str(exc),
        "trace": traceback.format_exception(type(exc), exc, exc.__traceback__)[-15:],
    }
    return error(str(exc) or "An unexpected error occurred.", status_code=500, errors=details)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthAPIError, auth_api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

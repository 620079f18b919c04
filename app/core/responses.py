"""Uniform JSON response envelope: {status, message, data?, errors?}."""

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(
    success: bool,
    message: str,
    data: Any = None,
    errors: Any = None,
) -> dict[str, Any]:
    """Build the envelope body; data and errors are omitted when None."""
    body: dict[str, Any] = {"status": success, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if errors is not None:
        body["errors"] = jsonable_encoder(errors)
    return body


def respond(
    success: bool,
    message: str,
    data: Any = None,
    errors: Any = None,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render the envelope as a JSONResponse. Used by every handler."""
    return JSONResponse(
        status_code=status_code,
        content=envelope(success, message, data=data, errors=errors),
        headers=headers,
    )


def success(message: str = "Operation successful!", data: Any = None, status_code: int = 200) -> JSONResponse:
    return respond(True, message, data=data, status_code=status_code)


def error(
    message: str = "Bad request!",
    status_code: int = 400,
    errors: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return respond(False, message, errors=errors, status_code=status_code, headers=headers)

"""Pydantic request/response schemas."""

from app.schemas.auth import (
    ApiResponse,
    EmailRequest,
    LoginPayload,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPayload,
    UserPayload,
)
from app.schemas.health import HealthResponse

__all__ = [
    "ApiResponse",
    "EmailRequest",
    "HealthResponse",
    "LoginPayload",
    "LoginRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "TokenPayload",
    "UserPayload",
]

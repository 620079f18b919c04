"""Request/response schemas for auth endpoints."""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, ValidationInfo, field_validator

from app.core.security import NAME_MAX_LEN, PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from app.services.roles import normalize_role_name


def _lower_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _check_confirmed(value: str, info: ValidationInfo) -> str:
    if info.data.get("password") is not None and value != info.data["password"]:
        raise ValueError("The password field confirmation does not match.")
    return value


LowerEmail = Annotated[EmailStr, BeforeValidator(_lower_email)]


class RegisterRequest(BaseModel):
    """New account. Email is lowercased, role names title-cased before validation."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    email: LowerEmail
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str
    roles: list[str] = Field(..., min_length=1, description='e.g. ["User", "Subscriber"]')

    @field_validator("password_confirmation")
    @classmethod
    def password_confirmed(cls, v: str, info: ValidationInfo) -> str:
        return _check_confirmed(v, info)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("The name field is required.")
        return v.strip()

    @field_validator("roles")
    @classmethod
    def normalize_roles(cls, v: list[str]) -> list[str]:
        roles = [normalize_role_name(r) for r in v]
        if any(not r for r in roles):
            raise ValueError("Role names cannot be empty.")
        return roles


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: LowerEmail
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class EmailRequest(BaseModel):
    """Body of resend-verification-email and forgot-password."""

    email: LowerEmail


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    email: LowerEmail
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str

    @field_validator("password_confirmation")
    @classmethod
    def password_confirmed(cls, v: str, info: ValidationInfo) -> str:
        return _check_confirmed(v, info)


class UserPayload(BaseModel):
    """Public view of a user (never the password hash)."""

    id: int
    name: str
    email: str
    role_names: list[str]

    class Config:
        from_attributes = True


class TokenPayload(BaseModel):
    access_token: str
    token_type: str = Field(default="Bearer")
    expires_in: int = Field(..., description="Seconds until the token expires")


class LoginPayload(TokenPayload):
    user: UserPayload


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint."""

    status: bool
    message: str
    data: Any | None = None
    errors: Any | None = None

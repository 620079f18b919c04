"""Auth endpoints and auth dependencies (get_current_token, require_verified_user, require_any_role)."""

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_settings, settings
from app.core.database import get_db
from app.core.exceptions import AuthRequiredError, ForbiddenError, InvalidTokenError
from app.core.rate_limit import limiter
from app.core.responses import success
from app.models import AccessToken, User
from app.schemas.auth import (
    ApiResponse,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.services.access_control import Decision, authorize, parse_role_specifier
from app.services.auth_workflows import AuthService, build_auth_service
from app.services.mailer import Mailer, build_mailer
from app.services.tokens import TokenIssuer

router = APIRouter()
security = HTTPBearer(auto_error=False)

MSG_EMAIL_NOT_VERIFIED = "Your email address is not verified."


def get_mailer() -> Mailer:
    """Dependency: mail transport selected by MAIL_DRIVER. Overridden in tests."""
    return build_mailer(get_settings())


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
) -> AuthService:
    return build_auth_service(db, mailer, get_settings())


def get_current_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> tuple[User, AccessToken]:
    """Dependency: require a live Bearer token. Raises 401 if missing, expired or revoked."""
    if credentials is None:
        raise AuthRequiredError()
    return TokenIssuer(db, settings.ACCESS_TOKEN_EXPIRE_MINUTES).resolve(credentials.credentials)


def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User | None:
    """Dependency: the bearer's user when a valid token is sent, otherwise None."""
    if credentials is None:
        return None
    try:
        user, _token = TokenIssuer(db, settings.ACCESS_TOKEN_EXPIRE_MINUTES).resolve(
            credentials.credentials
        )
    except InvalidTokenError:
        return None
    return user


def require_verified_token(
    current: Annotated[tuple[User, AccessToken], Depends(get_current_token)],
) -> tuple[User, AccessToken]:
    """Dependency: authenticated and email verified. Raises 403 for unverified users."""
    if not current[0].has_verified_email():
        raise ForbiddenError(MSG_EMAIL_NOT_VERIFIED)
    return current


def require_verified_user(
    current: Annotated[tuple[User, AccessToken], Depends(require_verified_token)],
) -> User:
    return current[0]


def require_any_role(*specifiers: str) -> Callable[..., User]:
    """Dependency factory: verified user holding at least one role, else 403.

    Each specifier is a role name or a "|" separated list, e.g. "Admin | Super Admin".
    """
    roles = frozenset().union(*(parse_role_specifier(s) for s in specifiers))

    def dependency(user: Annotated[User, Depends(require_verified_user)]) -> User:
        if authorize(user, roles) is Decision.DENIED:
            raise ForbiddenError()
        return user

    return dependency


@router.post("/register", response_model=ApiResponse)
async def register(
    body: RegisterRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
    caller: Annotated[User | None, Depends(get_optional_user)],
) -> JSONResponse:
    """
    Create an account and email a signed verification link.
    Admin and Super Admin may only be assigned by an authenticated administrator.
    """
    result = await service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        roles=body.roles,
        caller=caller,
    )
    return success(result.message, result.data)


@router.post("/login", response_model=ApiResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    """
    Authenticate with email and password; returns a bearer access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    result = service.login(body.email, body.password)
    return success(result.message, result.data)


@router.post("/refresh-token", response_model=ApiResponse)
def refresh_token(
    current: Annotated[tuple[User, AccessToken], Depends(require_verified_token)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    """Revoke the presented token and return a new one."""
    user, token = current
    result = service.refresh(user, token)
    return success(result.message, result.data)


@router.post("/logout", response_model=ApiResponse)
def logout(
    current: Annotated[tuple[User, AccessToken], Depends(require_verified_token)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    user, token = current
    result = service.logout(user, token)
    return success(result.message)


@router.post("/verify-email/{user_id}/{fingerprint}", response_model=ApiResponse)
async def verify_email(
    user_id: int,
    fingerprint: str,
    service: Annotated[AuthService, Depends(get_auth_service)],
    expires: Annotated[int | None, Query()] = None,
    signature: Annotated[str | None, Query()] = None,
) -> JSONResponse:
    """Confirm the email address from the signed link sent at registration."""
    result = await service.verify_email(user_id, fingerprint, expires, signature)
    return success(result.message)


@router.post("/resend-verification-email", response_model=ApiResponse)
async def resend_verification_email(
    body: EmailRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    result = await service.resend_verification(body.email)
    return success(result.message)


@router.post("/forgot-password", response_model=ApiResponse)
@limiter.limit(settings.PASSWORD_RATE_LIMIT)
async def forgot_password(
    request: Request,
    body: EmailRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    """
    Email a password reset link. The response is the same whether or not the
    address belongs to an account.
    """
    result = await service.forgot_password(body.email)
    return success(result.message)


@router.post("/reset-password", response_model=ApiResponse)
@limiter.limit(settings.PASSWORD_RATE_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> JSONResponse:
    result = await service.reset_password(body.email, body.token, body.password)
    return success(result.message)

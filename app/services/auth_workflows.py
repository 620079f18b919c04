"""
Auth orchestrator: one method per public workflow.

Each workflow checks its preconditions first (raising the matching
AuthAPIError), then performs at most one state change through the
collaborators. Unexpected collaborator failures are logged with the user
context and surfaced as InternalError carrying a workflow-specific message.
"""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import (
    AuthAPIError,
    ConflictError,
    EmailNotVerifiedError,
    InternalError,
    InvalidCredentialsError,
    InvalidLinkError,
    InvalidResetTokenError,
    NotFoundError,
    ThrottledError,
    ValidationError,
)
from app.core.logging import user_context
from app.core.security import verify_password_or_dummy
from app.models import AccessToken, User
from app.services.credential_store import CredentialStore, normalize_email
from app.services.events import EventDispatcher, PasswordReset, Registered, Verified, log_event
from app.services.mailer import Mailer
from app.services.notifications import AuthNotifier
from app.services.password_reset import PasswordResetBroker, ResetStatus
from app.services.roles import RoleResolver
from app.services.signed_links import SignedLinkVerifier
from app.services.tokens import IssuedToken, TokenIssuer

logger = logging.getLogger(__name__)

MSG_REGISTERED = "User registered successfully. Please verify your email."
MSG_REGISTRATION_FAILED = "Registration failed. Please try again later."
MSG_LOGIN_OK = "Login successful."
MSG_LOGIN_FAILED = "An unexpected error occurred during login. Please try again later."
MSG_REFRESHED = "Refresh token created successfully."
MSG_REFRESH_FAILED = "An unexpected error occurred during refresh token generation. Please try again later."
MSG_LOGGED_OUT = "Logged out successfully."
MSG_LOGOUT_FAILED = "Failed to log out. An internal server error occurred."
MSG_VERIFIED = "Email verified successfully."
MSG_ALREADY_VERIFIED = "Email already verified."
MSG_VERIFY_FAILED = "Failed to verify email. Please try again."
MSG_VERIFY_ERROR = "An unexpected server error occurred during email verification. Please try again later."
MSG_LINK_SENT = "Verification link sent."
MSG_LINK_FAILED = "Failed to send verification link. Please try again later."
MSG_RESET_LINK_SENT = "If your email address exists in our system, a password reset link has been sent to it."
MSG_RESET_LINK_FAILED = "Could not send password reset link. Please try again."
MSG_RESET_OK = "Your password has been reset successfully."
MSG_RESET_FAILED = "Could not reset password. Please try again."
MSG_RESET_THROTTLED = "Too many password reset attempts. Please try again later."
MSG_USER_NOT_FOUND = "User not found."
MSG_EMAIL_TAKEN = "The email has already been taken."


@dataclass(frozen=True)
class WorkflowResult:
    message: str
    data: Any = None


def user_payload(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role_names": user.role_names,
    }


def token_payload(issued: IssuedToken) -> dict[str, Any]:
    return {
        "access_token": issued.plain_text,
        "token_type": issued.token_type,
        "expires_in": issued.expires_in,
    }


@contextmanager
def internal_errors(message: str, log_message: str, context: dict[str, Any]) -> Iterator[None]:
    """Let AuthAPIErrors through; log anything else and raise InternalError(message)."""
    try:
        yield
    except AuthAPIError:
        raise
    except Exception as e:
        logger.error(
            log_message,
            extra={**context, "exception": e.__class__.__name__},
            exc_info=True,
        )
        raise InternalError(message) from e


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        roles: RoleResolver,
        tokens: TokenIssuer,
        links: SignedLinkVerifier,
        resets: PasswordResetBroker,
        notifier: AuthNotifier,
        events: EventDispatcher,
    ) -> None:
        self.store = store
        self.roles = roles
        self.tokens = tokens
        self.links = links
        self.resets = resets
        self.notifier = notifier
        self.events = events

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        roles: Iterable[str],
        caller: User | None = None,
    ) -> WorkflowResult:
        """
        Create a user with the requested roles and send the verification mail.

        Creation, role assignment and the Registered event share one
        transaction; if the mail cannot be sent nothing is persisted.
        """
        email = normalize_email(email)
        context = user_context(email=email)
        logger.info("User registration attempt.", extra=context)

        if self.store.find_by_email(email) is not None:
            raise ValidationError.for_field("email", MSG_EMAIL_TAKEN)
        caller_roles = self.store.roles_of(caller) if caller is not None else ()
        role_ids = self.roles.check_registration_policy(roles, caller, caller_roles)

        try:
            with self.store.transaction():
                user = self.store.create(name, email, password)
                self.store.sync_roles(user, role_ids)
                await self.events.dispatch(Registered(user))
        except ConflictError:
            raise
        except Exception as e:
            logger.error(
                "User registration failed.",
                extra={**context, "exception": e.__class__.__name__},
                exc_info=True,
            )
            raise InternalError(MSG_REGISTRATION_FAILED) from e

        logger.info("User registration transaction committed.", extra=user_context(user))
        return WorkflowResult(MSG_REGISTERED)

    def login(self, email: str, password: str) -> WorkflowResult:
        email = normalize_email(email)
        logger.info("Login attempt.", extra=user_context(email=email))

        user = self.store.find_by_email(email)
        # Unknown email and wrong password are indistinguishable, timing included.
        if not verify_password_or_dummy(password, user.password_hash if user else None):
            logger.warning(
                "Failed login attempt due to invalid credentials.",
                extra=user_context(email=email),
            )
            raise InvalidCredentialsError()
        if not user.has_verified_email():
            logger.warning(
                "Failed login attempt due to unverified email.",
                extra=user_context(user),
            )
            raise EmailNotVerifiedError()

        context = user_context(user)
        with internal_errors(MSG_LOGIN_FAILED, "Login failed during token creation.", context):
            issued = self.tokens.issue(user)

        logger.info("User login successful.", extra=context)
        return WorkflowResult(MSG_LOGIN_OK, {**token_payload(issued), "user": user_payload(user)})

    def refresh(self, user: User, current: AccessToken | None) -> WorkflowResult:
        """Revoke the presented token, then issue a new one. The two steps are not atomic."""
        context = user_context(user)
        logger.info("Refresh token creation attempt.", extra=context)

        with internal_errors(
            MSG_REFRESH_FAILED,
            "Failed to revoke current access token during refresh.",
            context,
        ):
            self.tokens.revoke_current(current)
        with internal_errors(
            MSG_REFRESH_FAILED,
            "Refresh token creation failed during token creation.",
            context,
        ):
            issued = self.tokens.issue(user)

        logger.info("Refresh token created successfully.", extra=context)
        return WorkflowResult(MSG_REFRESHED, token_payload(issued))

    def logout(self, user: User, current: AccessToken | None) -> WorkflowResult:
        context = user_context(user)
        logger.info("Logout attempt.", extra=context)
        with internal_errors(MSG_LOGOUT_FAILED, "Logout failed while revoking the token.", context):
            self.tokens.revoke_current(current)
        logger.info("User logged out.", extra=context)
        return WorkflowResult(MSG_LOGGED_OUT)

    async def verify_email(
        self,
        user_id: int,
        fingerprint: str,
        expires: int | None,
        signature: str | None,
    ) -> WorkflowResult:
        self.links.verify(user_id, fingerprint, expires, signature)

        user = self.store.find_by_id(user_id)
        context = user_context(user)
        logger.info("Email verification attempt.", extra=context)

        if user.has_verified_email():
            logger.info("Email already verified.", extra=context)
            raise ConflictError(MSG_ALREADY_VERIFIED)
        if not self.links.fingerprint_matches(user.email, fingerprint):
            logger.warning("Invalid email verification hash provided.", extra=context)
            raise InvalidLinkError()

        with internal_errors(MSG_VERIFY_ERROR, "Unexpected error during email verification.", context):
            marked = self.store.mark_email_verified(user)
        if not marked:
            logger.error("Email verification failed: nothing was marked.", extra=context)
            raise InternalError(MSG_VERIFY_FAILED)

        await self._dispatch_after_commit(Verified(user), context)
        logger.info("Email verified successfully.", extra=context)
        return WorkflowResult(MSG_VERIFIED)

    async def resend_verification(self, email: str) -> WorkflowResult:
        email = normalize_email(email)
        logger.info("Email verification resend attempt.", extra=user_context(email=email))

        user = self.store.find_by_email(email)
        if user is None:
            logger.info("Resend email verification failed: user not found.", extra=user_context(email=email))
            raise NotFoundError(MSG_USER_NOT_FOUND)
        context = user_context(user)
        if user.has_verified_email():
            logger.info("Resend email verification skipped: already verified.", extra=context)
            raise ConflictError(MSG_ALREADY_VERIFIED)

        with internal_errors(MSG_LINK_FAILED, "Failed to resend email verification notification.", context):
            await self.notifier.send_verification_email(user)

        logger.info("Email verification notification resent.", extra=context)
        return WorkflowResult(MSG_LINK_SENT)

    async def forgot_password(self, email: str) -> WorkflowResult:
        email = normalize_email(email)
        context = user_context(email=email)
        logger.info("Forgot password attempt.", extra=context)

        with internal_errors(MSG_RESET_LINK_FAILED, "Password reset link could not be sent.", context):
            status = await self.resets.request_reset(email, self.notifier.send_password_reset_email)

        if status is ResetStatus.THROTTLED:
            logger.warning("Password reset request throttled.", extra=context)
            raise ThrottledError(MSG_RESET_THROTTLED)
        logger.info("Password reset link sent (or simulated).", extra=context)
        return WorkflowResult(MSG_RESET_LINK_SENT)

    async def reset_password(self, email: str, token: str, password: str) -> WorkflowResult:
        email = normalize_email(email)
        context = user_context(email=email)
        logger.info("Password reset attempt.", extra=context)

        reset_users: list[User] = []

        def on_reset(user: User, new_password: str) -> None:
            self.store.update_password_hash(user, new_password)
            reset_users.append(user)

        with internal_errors(MSG_RESET_FAILED, "Password reset could not be completed.", context):
            status = self.resets.reset(email, token, password, on_reset)

        if status is ResetStatus.THROTTLED:
            logger.warning("Password reset attempt throttled.", extra=context)
            raise ThrottledError(MSG_RESET_THROTTLED)
        if status is not ResetStatus.RESET_OK:
            logger.warning("Password reset failed: %s.", status.value, extra=context)
            raise InvalidResetTokenError()

        for user in reset_users:
            await self._dispatch_after_commit(PasswordReset(user), user_context(user))
        logger.info("Password reset successful.", extra=context)
        return WorkflowResult(MSG_RESET_OK)

    async def _dispatch_after_commit(self, event: Any, context: dict[str, Any]) -> None:
        """State is already committed; a failing listener is logged, not rolled back."""
        try:
            await self.events.dispatch(event)
        except Exception:
            logger.error(
                "Listener for %s failed.",
                type(event).__name__,
                extra=context,
                exc_info=True,
            )


def build_event_dispatcher(notifier: AuthNotifier) -> EventDispatcher:
    events = EventDispatcher()
    events.listen(Registered, lambda event: notifier.send_verification_email(event.user))
    events.listen(Registered, log_event)
    events.listen(Verified, log_event)
    events.listen(PasswordReset, log_event)
    return events


def build_auth_service(session: Session, mailer: Mailer, settings: Settings) -> AuthService:
    """Wire the orchestrator and its collaborators from settings."""
    store = CredentialStore(session)
    links = SignedLinkVerifier(
        key=settings.APP_KEY.get_secret_value(),
        base_url=f"{settings.APP_URL.rstrip('/')}{settings.API_V1_PREFIX}",
        ttl_minutes=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES,
    )
    notifier = AuthNotifier(
        mailer,
        links,
        frontend_url=settings.FRONTEND_URL,
        reset_expire_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
    return AuthService(
        store=store,
        roles=RoleResolver(session),
        tokens=TokenIssuer(session, settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        links=links,
        resets=PasswordResetBroker(
            session,
            store,
            expire_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
            throttle_seconds=settings.PASSWORD_RESET_THROTTLE_SECONDS,
            max_attempts=settings.PASSWORD_RESET_MAX_ATTEMPTS,
        ),
        notifier=notifier,
        events=build_event_dispatcher(notifier),
    )

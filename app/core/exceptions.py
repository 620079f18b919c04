"""
Error taxonomy for the authentication workflows.

Every expected failure is an AuthAPIError carrying the HTTP status and the
client-facing message; the exception handlers turn it into the response
envelope. Anything else is treated as an internal error.
"""

from typing import Any


class AuthAPIError(Exception):
    """Base class for errors that map directly onto an API response."""

    status_code: int = 400
    default_message: str = "Bad request."

    def __init__(
        self,
        message: str | None = None,
        errors: Any = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AuthAPIError):
    """Malformed or missing input, or input rejected by a business rule."""

    status_code = 422
    default_message = "Validation failed!"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors={field: [message]})


class AuthRequiredError(AuthAPIError):
    """No usable credential on the request."""

    status_code = 401
    default_message = "Unauthenticated."


class InvalidTokenError(AuthRequiredError):
    """Bearer token is malformed, expired, revoked or bound to a missing user."""

    default_message = "Invalid or expired token."


class InvalidCredentialsError(AuthAPIError):
    status_code = 401
    default_message = "Invalid credentials."


class ForbiddenError(AuthAPIError):
    """Credential present but not allowed to perform the action."""

    status_code = 403
    default_message = "You do not have permission to access this resource."


class EmailNotVerifiedError(ForbiddenError):
    default_message = "Please verify your email first."


class InvalidLinkError(ForbiddenError):
    default_message = "Invalid verification link."


class TamperedLinkError(InvalidLinkError):
    default_message = "Invalid signature."


class ExpiredLinkError(InvalidLinkError):
    default_message = "Verification link has expired."


class InvalidResetTokenError(ForbiddenError):
    default_message = "The password reset token is invalid or has expired."


class NotFoundError(AuthAPIError):
    status_code = 404
    default_message = "Resource not found."


class ConflictError(AuthAPIError):
    """Entity already in the requested state (already verified, already registered)."""

    status_code = 409
    default_message = "Conflict."


class ThrottledError(AuthAPIError):
    status_code = 429
    default_message = "Too many attempts. Please try again later."


class InternalError(AuthAPIError):
    """Unexpected collaborator failure; message is always generic."""

    status_code = 500
    default_message = "Something went wrong. Please try again later."


class MailDeliveryError(Exception):
    """Raised by a mailer when a message could not be handed to the transport."""

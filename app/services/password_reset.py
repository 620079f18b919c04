"""
Password reset broker.

Per email the state is NoRequest -> Requested(token, created_at) ->
Consumed | Expired. A second request inside the throttle window is refused
without replacing the token; repeated wrong tokens lock the request once
max_attempts is reached. Plain tokens are only ever handed to the notifier.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy.orm import Session

from app.core.security import generate_reset_token, hash_password, verify_password
from app.models import PasswordResetToken, User
from app.services.credential_store import CredentialStore, normalize_email
from app.services.tokens import as_utc

logger = logging.getLogger(__name__)


class ResetStatus(str, Enum):
    SENT = "sent"
    THROTTLED = "throttled"
    INVALID_TOKEN = "invalid_token"
    INVALID_USER = "invalid_user"
    RESET_OK = "reset_ok"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PasswordResetBroker:
    def __init__(
        self,
        session: Session,
        store: CredentialStore,
        expire_minutes: int = 60,
        throttle_seconds: int = 60,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self.store = store
        self.expires = timedelta(minutes=expire_minutes)
        self.throttle = timedelta(seconds=throttle_seconds)
        self.max_attempts = max_attempts
        self.clock = clock

    def _record_for(self, email: str) -> PasswordResetToken | None:
        return self.session.get(PasswordResetToken, email)

    def _recently_created(self, record: PasswordResetToken) -> bool:
        if self.throttle.total_seconds() <= 0:
            return False
        return as_utc(record.created_at) + self.throttle > self.clock()

    def _expired(self, record: PasswordResetToken) -> bool:
        return as_utc(record.created_at) + self.expires < self.clock()

    def create_token(self, user: User) -> str:
        """Replace any outstanding token for the user and return the new plain token."""
        existing = self._record_for(user.email)
        if existing is not None:
            self.session.delete(existing)
            self.session.flush()
        token = generate_reset_token()
        self.session.add(
            PasswordResetToken(
                email=user.email,
                token_hash=hash_password(token),
                failed_attempts=0,
                created_at=self.clock(),
            )
        )
        self.session.commit()
        return token

    async def request_reset(
        self,
        email: str,
        notify: Callable[[User, str], Awaitable[None]],
    ) -> ResetStatus:
        """
        Issue a token and hand it to notify. Unknown emails report SENT without
        creating anything so callers cannot tell which emails have accounts.
        """
        email = normalize_email(email)
        user = self.store.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email; nothing sent.")
            return ResetStatus.SENT

        record = self._record_for(email)
        if record is not None and self._recently_created(record):
            return ResetStatus.THROTTLED

        token = self.create_token(user)
        await notify(user, token)
        return ResetStatus.SENT

    def reset(
        self,
        email: str,
        token: str,
        new_password: str,
        on_reset: Callable[[User, str], None],
    ) -> ResetStatus:
        """Consume a valid token and call on_reset(user, new_password)."""
        email = normalize_email(email)
        user = self.store.find_by_email(email)
        if user is None:
            return ResetStatus.INVALID_USER

        record = self._record_for(email)
        if record is None or self._expired(record):
            return ResetStatus.INVALID_TOKEN
        if record.failed_attempts >= self.max_attempts:
            return ResetStatus.THROTTLED
        if not verify_password(token, record.token_hash):
            record.failed_attempts += 1
            self.session.commit()
            return ResetStatus.INVALID_TOKEN

        with self.store.transaction():
            on_reset(user, new_password)
            self.session.delete(record)
        return ResetStatus.RESET_OK


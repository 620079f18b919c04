"""
Bearer token issuance, resolution and revocation.

A token is a signed JWT whose jti is the id of a personal_access_tokens row.
The row stores a sha256 fingerprint of the token; deleting the row revokes it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.orm import Session

from app.core.exceptions import InvalidTokenError
from app.core.security import (
    constant_time_equals,
    create_access_token,
    decode_access_token,
    sha256_hex,
)
from app.models import AccessToken, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    plain_text: str
    expires_in: int  # seconds
    token_type: str = "Bearer"


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TokenIssuer:
    def __init__(self, session: Session, expire_minutes: int) -> None:
        self.session = session
        self.expires_delta = timedelta(minutes=expire_minutes)

    def issue(self, user: User, name: str | None = None) -> IssuedToken:
        """Persist a token row and return the signed bearer string bound to it."""
        row = AccessToken(
            user_id=user.id,
            name=name or user.email,
            expires_at=datetime.now(timezone.utc) + self.expires_delta,
        )
        self.session.add(row)
        self.session.flush()
        token = create_access_token(sub=user.id, jti=row.id, expires_delta=self.expires_delta)
        row.token_hash = sha256_hex(token)
        self.session.commit()
        return IssuedToken(
            plain_text=token,
            expires_in=int(self.expires_delta.total_seconds()),
        )

    def resolve(self, token: str) -> tuple[User, AccessToken]:
        """Return (user, token row) for a live token; raises InvalidTokenError otherwise."""
        try:
            payload = decode_access_token(token)
        except jwt.PyJWTError as e:
            raise InvalidTokenError() from e
        try:
            token_id = int(payload.get("jti"))
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError) as e:
            raise InvalidTokenError("Invalid token payload.") from e

        row = self.session.get(AccessToken, token_id)
        if row is None or row.user_id != user_id or not row.token_hash:
            raise InvalidTokenError()
        if not constant_time_equals(row.token_hash, sha256_hex(token)):
            raise InvalidTokenError()
        now = datetime.now(timezone.utc)
        expires_at = as_utc(row.expires_at)
        if expires_at is not None and expires_at <= now:
            raise InvalidTokenError()
        user = row.user
        if user is None:
            raise InvalidTokenError()

        row.last_used_at = now
        self.session.commit()
        return user, row

    def revoke_current(self, current: AccessToken | None) -> None:
        """Delete the token presented on the current request. None is a no-op."""
        if current is None:
            return
        context = {"user_id": current.user_id, "token_id": current.id}
        self.session.delete(current)
        self.session.commit()
        logger.info("Access token revoked.", extra=context)

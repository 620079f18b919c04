"""
Signed, time-boxed email verification links.

A link carries the user id, a fingerprint of the email address and an expiry
timestamp, protected by an HMAC-SHA256 signature over the three values.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from app.core.exceptions import ExpiredLinkError, TamperedLinkError
from app.core.security import constant_time_equals, email_fingerprint, hmac_sign


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SignedLink:
    id: int
    hash: str
    expires: int  # unix timestamp
    signature: str


class SignedLinkVerifier:
    def __init__(
        self,
        key: str,
        base_url: str,
        ttl_minutes: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._key = key
        self.base_url = base_url.rstrip("/")
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def _sign(self, user_id: int, fingerprint: str, expires: int) -> str:
        return hmac_sign(self._key, f"{user_id}|{fingerprint}|{expires}")

    def build_link(self, user_id: int, email: str, ttl: timedelta | None = None) -> SignedLink:
        fingerprint = email_fingerprint(email)
        expires = int((self.clock() + (ttl or self.ttl)).timestamp())
        return SignedLink(
            id=user_id,
            hash=fingerprint,
            expires=expires,
            signature=self._sign(user_id, fingerprint, expires),
        )

    def url_for(self, link: SignedLink) -> str:
        query = urlencode({"expires": link.expires, "signature": link.signature})
        return f"{self.base_url}/auth/verify-email/{link.id}/{link.hash}?{query}"

    def verify(
        self,
        user_id: int,
        fingerprint: str,
        expires: int | None,
        signature: str | None,
        now: datetime | None = None,
    ) -> None:
        """Raise TamperedLinkError or ExpiredLinkError; return None when the link is valid."""
        if expires is None or not signature:
            raise TamperedLinkError()
        expected = self._sign(user_id, fingerprint, expires)
        if not constant_time_equals(expected, signature):
            raise TamperedLinkError()
        current = now or self.clock()
        if current.timestamp() > expires:
            raise ExpiredLinkError()

    @staticmethod
    def fingerprint_matches(email: str, fingerprint: str) -> bool:
        return constant_time_equals(email_fingerprint(email), fingerprint)

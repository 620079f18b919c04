"""Password hashing, JWT signing and token fingerprints for authentication."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

# Min/max lengths for name and password validation.
NAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Compared against when the email is unknown so login timing does not reveal it.
_DUMMY_HASH = hash_password("authgate-timing-dummy")


def verify_password_or_dummy(plain_password: str, hashed: str | None) -> bool:
    """Like verify_password, but still spends a bcrypt check when there is no hash."""
    if hashed is None:
        verify_password(plain_password, _DUMMY_HASH)
        return False
    return verify_password(plain_password, hashed)


def create_access_token(sub: str | int, jti: str | int, expires_delta: timedelta) -> str:
    """Create a JWT access token bound to a stored token row (jti)."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "jti": str(jti),
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate JWT; return payload (sub, jti, exp, iat).
    Raises jwt.PyJWTError on invalid or expired token.
    """
    return jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
    )


def sha256_hex(value: str) -> str:
    """Fingerprint a bearer string for lookup; the plain value is never stored."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def email_fingerprint(email: str) -> str:
    """Deterministic one-way fingerprint of a normalized email address."""
    return hashlib.sha1(email.strip().lower().encode("utf-8")).hexdigest()


def hmac_sign(key: str, message: str) -> str:
    return hmac.new(key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def constant_time_equals(expected: str, provided: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def generate_reset_token() -> str:
    """Random password reset token (256 bits, hex)."""
    return secrets.token_hex(32)

"""ORM model for outstanding password reset tokens (one per email)."""

from sqlalchemy import Column, DateTime, Integer, String

from app.models.base import Base
from app.models.user import utcnow


class PasswordResetToken(Base):
    """Hashed single-use reset token keyed by email."""

    __tablename__ = "password_reset_tokens"

    email = Column(String(255), primary_key=True)
    token_hash = Column(String(255), nullable=False)
    failed_attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

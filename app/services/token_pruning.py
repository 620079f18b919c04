"""Token pruning: delete expired access tokens and stale password reset requests."""

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.models import AccessToken, PasswordResetToken

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def run_token_pruning(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> tuple[int, int]:
    """
    Delete access tokens past expires_at and password reset rows older than
    PASSWORD_RESET_EXPIRE_MINUTES.

    Returns (access_tokens_deleted, reset_tokens_deleted). Idempotent: safe to run repeatedly.
    """
    if not settings.TOKEN_PRUNE_ENABLED:
        logger.info("Token pruning is disabled (TOKEN_PRUNE_ENABLED=false); skipping.")
        return (0, 0)

    now = now or datetime.now(timezone.utc)
    tokens_deleted = (
        session.query(AccessToken)
        .filter(AccessToken.expires_at.is_not(None), AccessToken.expires_at < now)
        .delete(synchronize_session=False)
    )
    reset_cutoff = now - timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    resets_deleted = (
        session.query(PasswordResetToken)
        .filter(PasswordResetToken.created_at < reset_cutoff)
        .delete(synchronize_session=False)
    )
    session.commit()

    if tokens_deleted or resets_deleted:
        logger.info(
            "Token pruning run: access_tokens_deleted=%s, reset_tokens_deleted=%s",
            tokens_deleted,
            resets_deleted,
        )
    return (tokens_deleted, resets_deleted)

"""
CLI entrypoint for the token pruning job. Run from cron, e.g.:

  python -m app.prune_tokens

Or hourly: 0 * * * * cd /path/to/authgate && .venv/bin/python -m app.prune_tokens
"""

import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.logging import setup_logging
from app.services.token_pruning import run_token_pruning

logger = logging.getLogger(__name__)


def main() -> int:
    """Delete expired access tokens and stale password reset requests."""
    setup_logging()
    settings = get_settings()
    db = SessionLocal()
    try:
        tokens_deleted, resets_deleted = run_token_pruning(db, settings)
        logger.info(
            "Token pruning completed: access_tokens_deleted=%s reset_tokens_deleted=%s",
            tokens_deleted,
            resets_deleted,
        )
        return 0
    except Exception as e:
        logger.exception("Token pruning job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

"""Best-effort usage tracking for retrieved entries."""

import logging
from datetime import UTC, datetime

from knowledge_engine.db.backend import Database
from knowledge_engine.db.queries import increment_usage

logger = logging.getLogger(__name__)


class UsageTracker:
    """Records that entries were returned by a query.

    Tracking is non-critical: failures are logged and swallowed so they never
    affect the retrieval or maintenance call that triggered them.
    """

    def __init__(self, db: Database):
        """Initialize with a database connection."""
        self.db = db

    async def track(self, entry_ids: list[str], now: datetime | None = None) -> bool:
        """Increment usage_count and set last_used_at for each ID in one statement.

        Returns True if the update was applied.
        """
        if not entry_ids:
            return False
        if now is None:
            now = datetime.now(UTC)
        try:
            await increment_usage(self.db, list(dict.fromkeys(entry_ids)), now)
        except Exception:
            logger.warning("Usage tracking failed for %d entries", len(entry_ids), exc_info=True)
            return False
        return True

"""Background baseline verification and re-scoring of an account's recent posts.

Tasks run on a small thread pool. Each task opens its own database
connection; failures are logged and never reach the code that submitted the
task. Tasks only overwrite derived fields with values computed from stored
data, so a task racing on-demand scoring of the same post is harmless.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta

from pulse.config import EngineConfig
from pulse.db import get_account, get_connection, get_posts_by_account
from pulse.models import utcnow
from pulse.scoring.baseline import calculate_and_cache_baseline
from pulse.scoring.overperformance import OverperformanceScorer, needs_score_recalculation

logger = logging.getLogger(__name__)


def backfill_account(
    db_path: str, account_id: int, config: EngineConfig, max_post_age_days: int = 30,
) -> int:
    """Refresh the account baseline and fully re-score recent posts that need it.

    Returns the number of posts re-scored.
    """
    conn = get_connection(db_path)
    try:
        account = get_account(conn, account_id)
        if account is None:
            logger.warning("Backfill skipped: account %d not found", account_id)
            return 0

        now = utcnow()
        if not calculate_and_cache_baseline(conn, account, config, now):
            logger.info("Backfill for %s: baseline unavailable, nothing to score",
                        account.display_name)
            return 0

        scorer = OverperformanceScorer(conn, config)
        since = now - timedelta(days=max_post_age_days)
        rescored = 0
        for post in get_posts_by_account(conn, account_id, since=since):
            if needs_score_recalculation(post, now, config):
                scorer.calculate_and_cache_overperformance_score(post, account, now)
                rescored += 1

        logger.info("Backfill for %s re-scored %d posts", account.display_name, rescored)
        return rescored
    finally:
        conn.close()


class BackfillQueue:
    """Fire-and-forget backfill tasks on a worker pool."""

    def __init__(
        self,
        db_path: str,
        config: EngineConfig,
        max_workers: int = 2,
        max_post_age_days: int = 30,
    ):
        self.db_path = db_path
        self.config = config
        self.max_post_age_days = max_post_age_days
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="backfill")

    def _run(self, account_id: int) -> int | None:
        try:
            return backfill_account(
                self.db_path, account_id, self.config, self.max_post_age_days,
            )
        except Exception:
            logger.exception("Background backfill failed for account %d", account_id)
            return None

    def submit(self, account_id: int) -> Future:
        """Queue a backfill. The future resolves to the re-scored count, or None on failure."""
        return self._executor.submit(self._run, account_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> BackfillQueue:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown(wait=True)

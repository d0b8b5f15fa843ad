"""Per-post overperformance scores and when to recompute them.

A post's score is its latest engagement as a percentage of the account
baseline. Scores are cached on the post together with the engagement they
were computed from, and move through three states:

* ``not_calculated``: nothing cached yet.
* ``fast_calculated``: scored against the account's cached baseline as is.
* ``fully_calculated``: scored after the baseline was verified fresh.

When no usable baseline exists nothing is written and the post stays
``not_calculated``, so a cached 0.0 always means zero engagement.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timedelta

from pulse.config import EngineConfig
from pulse.db import get_account, update_post_score
from pulse.models import Post, ScoreStatus, SocialAccount, utcnow
from pulse.scoring.baseline import calculate_and_cache_baseline

logger = logging.getLogger(__name__)


def compute_score(interactions: int, baseline: float | None) -> float:
    """Engagement as a percentage of baseline, 0.0 when there is no baseline."""
    if not baseline:
        return 0.0
    return round(interactions / baseline * 100, 2)


def is_score_fresh(post: Post, now: datetime, config: EngineConfig) -> bool:
    if post.score_calculated_at is None:
        return False
    return post.score_calculated_at > now - timedelta(hours=config.freshness_window_hours)


def needs_score_recalculation(post: Post, now: datetime, config: EngineConfig) -> bool:
    """Whether a post still needs a full, baseline-verified score.

    Only ``fully_calculated`` scores can be current; they go stale with age or
    when new metrics arrive.
    """
    status = post.score_calculation_status
    if status in (ScoreStatus.NOT_CALCULATED, ScoreStatus.FAST_CALCULATED):
        return True
    elif status == ScoreStatus.FULLY_CALCULATED:
        return not is_score_fresh(post, now, config) or post.metrics_changed()
    raise ValueError(f"Unknown score status: {status!r}")


class OverperformanceScorer:
    """Computes and caches overperformance scores against a shared store."""

    def __init__(self, conn: sqlite3.Connection, config: EngineConfig):
        self.conn = conn
        self.config = config

    def _account_for(self, post: Post, account: SocialAccount | None) -> SocialAccount:
        if account is not None:
            return account
        found = get_account(self.conn, post.social_account_id)
        if found is None:
            raise LookupError(f"Social account {post.social_account_id} not found")
        return found

    def _store(
        self, post: Post, score: float, status: ScoreStatus, interactions: int, now: datetime,
    ) -> None:
        update_post_score(self.conn, post.id, score, now, status, interactions)
        post.overperformance_score_cache = score
        post.score_calculated_at = now
        post.score_calculation_status = status
        post.last_calculated_interactions = interactions

    def calculate_fast_overperformance_score(
        self, post: Post, account: SocialAccount | None = None, now: datetime | None = None,
    ) -> float:
        """Score against the cached account baseline without recomputing it."""
        now = now or utcnow()
        account = self._account_for(post, account)
        baseline = account.usable_baseline(self.config.min_sample_size)
        if baseline is None:
            logger.debug("No cached baseline for %s, post %s left unscored",
                         account.display_name, post.id)
            return 0.0

        interactions = post.latest_total_interactions
        score = compute_score(interactions, baseline)
        self._store(post, score, ScoreStatus.FAST_CALCULATED, interactions, now)
        return score

    def calculate_and_cache_overperformance_score(
        self, post: Post, account: SocialAccount | None = None, now: datetime | None = None,
    ) -> float:
        """Score against a verified baseline, refreshing the baseline first if it is stale."""
        now = now or utcnow()
        account = self._account_for(post, account)

        baseline = account.usable_baseline(self.config.min_sample_size)
        if baseline is None or account.needs_baseline_recalculation(
            now, self.config.freshness_window_hours,
        ):
            baseline = calculate_and_cache_baseline(self.conn, account, self.config, now) or None

        if baseline is None:
            logger.info("Baseline unavailable for %s, post %s left unscored",
                        account.display_name, post.id)
            return 0.0

        interactions = post.latest_total_interactions
        score = compute_score(interactions, baseline)
        self._store(post, score, ScoreStatus.FULLY_CALCULATED, interactions, now)
        return score

    def overperformance_score(
        self, post: Post, account: SocialAccount | None = None, now: datetime | None = None,
    ) -> float:
        """Cached score when still valid, otherwise a full recalculation."""
        now = now or utcnow()
        if post.overperformance_score_cache is not None and not needs_score_recalculation(
            post, now, self.config,
        ):
            return post.overperformance_score_cache
        return self.calculate_and_cache_overperformance_score(post, account, now)

    def score_posts_for_listing(
        self,
        posts: Iterable[Post],
        accounts: dict[int, SocialAccount] | None = None,
        now: datetime | None = None,
    ) -> int:
        """Fast-score unscored posts so a listing can be sorted by score.

        Accounts without a cached baseline get one computed first. Returns the
        number of posts scored.
        """
        now = now or utcnow()
        accounts = dict(accounts or {})

        by_account: dict[int, list[Post]] = {}
        for post in posts:
            if post.overperformance_score_cache is None:
                by_account.setdefault(post.social_account_id, []).append(post)

        scored = 0
        for account_id, account_posts in by_account.items():
            account = accounts.get(account_id) or self._account_for(account_posts[0], None)
            if account.usable_baseline(self.config.min_sample_size) is None:
                calculate_and_cache_baseline(self.conn, account, self.config, now)
            if account.usable_baseline(self.config.min_sample_size) is None:
                continue
            for post in account_posts:
                self.calculate_fast_overperformance_score(post, account, now)
                scored += 1

        if scored:
            logger.info("Fast-scored %d posts for listing", scored)
        return scored

"""Robust per-account engagement baseline (trimmed mean)."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime

import numpy as np

from pulse.config import EngineConfig
from pulse.db import get_baseline_posts, update_account_baseline
from pulse.models import Post, SocialAccount, utcnow

logger = logging.getLogger(__name__)


def trimmed_mean(
    values: Sequence[float], trim_each_side: int, min_sample_size: int,
) -> tuple[float, int]:
    """Mean after dropping the lowest and highest values.

    Returns ``(0.0, 0)`` when fewer than ``min_sample_size`` values are given,
    otherwise ``(mean, number of values averaged)``. Up to ``trim_each_side``
    values go from each end, but at least one value always remains, so a
    small sample still sheds its outliers.
    """
    if not values or len(values) < min_sample_size:
        return 0.0, 0

    ordered = np.sort(np.asarray(values, dtype=float))
    trim = min(trim_each_side, (len(ordered) - 1) // 2)
    if trim > 0:
        ordered = ordered[trim:-trim]
    return float(ordered.mean()), int(ordered.size)


def collect_interactions(
    conn: sqlite3.Connection,
    account: SocialAccount,
    reference_time: datetime,
    config: EngineConfig,
) -> list[int]:
    """Latest engagement of the account's recent comparable posts before ``reference_time``."""
    posts = get_baseline_posts(conn, account.id, reference_time, config.baseline_window)
    return [p.latest_total_interactions for p in posts]


def compute_baseline(
    conn: sqlite3.Connection,
    account: SocialAccount,
    reference_time: datetime,
    config: EngineConfig,
) -> tuple[float, int]:
    """Trimmed-mean engagement before ``reference_time`` as ``(average, values averaged)``."""
    interactions = collect_interactions(conn, account, reference_time, config)
    average, sample_size = trimmed_mean(
        interactions, config.trim_each_side, config.min_sample_size,
    )
    if not sample_size:
        logger.debug(
            "Not enough posts for %s baseline before %s (%d < %d)",
            account.display_name, reference_time.isoformat(),
            len(interactions), config.min_sample_size,
        )
    return average, sample_size


def baseline_for_post(
    conn: sqlite3.Connection, post: Post, account: SocialAccount, config: EngineConfig,
) -> tuple[float, int]:
    """Baseline as it stood when ``post`` was published."""
    return compute_baseline(conn, account, post.posted_at, config)


def calculate_and_cache_baseline(
    conn: sqlite3.Connection,
    account: SocialAccount,
    config: EngineConfig,
    now: datetime | None = None,
) -> float:
    """Recompute the account baseline and cache it. Returns 0.0 when data is insufficient.

    The cached sample size is the number of posts the baseline was drawn
    from, which is what the trust check on the account compares against.
    """
    now = now or utcnow()
    interactions = collect_interactions(conn, account, now, config)
    average, averaged = trimmed_mean(
        interactions, config.trim_each_side, config.min_sample_size,
    )
    if not averaged:
        logger.info(
            "Baseline for %s unavailable: %d posts (need %d)",
            account.display_name, len(interactions), config.min_sample_size,
        )
        return 0.0

    average = round(average, 2)
    update_account_baseline(conn, account.id, average, now, len(interactions))
    account.baseline_interactions_average = average
    account.baseline_calculated_at = now
    account.baseline_sample_size = len(interactions)
    logger.info(
        "Baseline for %s: %.2f interactions (%d of %d posts after trimming)",
        account.display_name, average, averaged, len(interactions),
    )
    return average

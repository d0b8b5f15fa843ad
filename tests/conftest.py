"""Shared test fixtures."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta

import pytest

from pulse.config import get_engine_config, load_config
from pulse.db import get_connection, init_db, insert_account, insert_article, insert_post
from pulse.models import Article, Post, PostMetric, PostType, SocialAccount

NOW = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing."""
    config_text = """
engine:
  similarity_threshold: 0.2
  max_candidate_age_months: 3
  decay_constant: 0.3
  default_score: 100.0
  baseline_window: 100
  trim_each_side: 10
  min_sample_size: 20
  freshness_window_hours: 1

linker:
  article_domain: "taz.de"

backfill:
  max_workers: 2
  max_post_age_days: 30

database:
  path: "DB_PATH_PLACEHOLDER"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("DB_PATH_PLACEHOLDER", db_path))
    return load_config(str(cfg_path))


@pytest.fixture
def engine_config(sample_config):
    return get_engine_config(sample_config)


@pytest.fixture
def db_path(sample_config):
    path = sample_config["database"]["path"]
    init_db(path)
    return path


@pytest.fixture
def db_conn(db_path):
    """Initialized test database connection."""
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def make_account(db_conn):
    """Insert a social account and return it with its ID set."""

    def _make(handle: str = "taz.de", **kwargs) -> SocialAccount:
        account = SocialAccount(platform="bluesky", handle=handle, **kwargs)
        account.id = insert_account(db_conn, account)
        return account

    return _make


@pytest.fixture
def make_post(db_conn):
    """Insert a post with one metric snapshot holding ``interactions`` likes.

    ``interactions=None`` creates a post without any snapshot. Untracked posts
    get a platform URL that does not carry the account handle.
    """
    counter = itertools.count(1)

    def _make(
        account: SocialAccount,
        posted_at: datetime,
        interactions: int | None = 0,
        tracked: bool = True,
        **kwargs,
    ) -> Post:
        n = next(counter)
        owner = account.handle if tracked else "someone.else"
        metrics = []
        if interactions is not None:
            metrics.append(PostMetric(recorded_at=posted_at + timedelta(hours=1), likes=interactions))
        kwargs.setdefault("post_type", PostType.LINK)
        post = Post(
            social_account_id=account.id,
            platform="bluesky",
            platform_post_id=f"post-{n}",
            content=f"Post number {n}",
            posted_at=posted_at,
            platform_url=f"https://bsky.app/profile/{owner}/post/{n}",
            metrics=metrics,
            **kwargs,
        )
        post.id = insert_post(db_conn, post)
        return post

    return _make


@pytest.fixture
def make_article(db_conn):
    """Insert an article and return it with its ID set."""
    counter = itertools.count(6100000)

    def _make(title: str, published_at: datetime, lead: str | None = None, **kwargs) -> Article:
        kwargs.setdefault("msid", str(next(counter)))
        article = Article(title=title, published_at=published_at, lead=lead, **kwargs)
        article.id = insert_article(db_conn, article)
        return article

    return _make


@pytest.fixture
def seed_history(make_post):
    """Insert tracked link posts with the given interaction counts, one hour apart before ``before``."""

    def _seed(account: SocialAccount, values: list[int], before: datetime = NOW) -> list[Post]:
        return [
            make_post(account, before - timedelta(hours=i + 1), interactions=value)
            for i, value in enumerate(values)
        ]

    return _seed

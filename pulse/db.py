"""SQLite database schema, migrations, and query helpers."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from pulse.models import Article, Post, PostMetric, PostType, ScoreStatus, SocialAccount

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS social_accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    platform TEXT NOT NULL,
    handle TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1,
    baseline_interactions_average REAL,
    baseline_calculated_at TEXT,
    baseline_sample_size INTEGER,
    UNIQUE (platform, handle)
);

CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    msid TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    lead TEXT,
    published_at TEXT NOT NULL,
    predicted_performance_score REAL,
    prediction_metadata TEXT
);

CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    social_account_id INTEGER NOT NULL,
    article_id INTEGER,
    platform TEXT NOT NULL,
    platform_post_id TEXT NOT NULL,
    content TEXT NOT NULL,
    post_type TEXT NOT NULL DEFAULT 'link',
    posted_at TEXT NOT NULL,
    external_url TEXT,
    platform_url TEXT,
    overperformance_score_cache REAL,
    score_calculated_at TEXT,
    score_calculation_status TEXT NOT NULL DEFAULT 'not_calculated',
    last_calculated_interactions INTEGER,
    UNIQUE (platform, platform_post_id),
    FOREIGN KEY (social_account_id) REFERENCES social_accounts(id),
    FOREIGN KEY (article_id) REFERENCES articles(id)
);

CREATE TABLE IF NOT EXISTS post_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id INTEGER NOT NULL,
    likes INTEGER NOT NULL DEFAULT 0,
    replies INTEGER NOT NULL DEFAULT 0,
    reposts INTEGER NOT NULL DEFAULT 0,
    quotes INTEGER NOT NULL DEFAULT 0,
    recorded_at TEXT NOT NULL,
    FOREIGN KEY (post_id) REFERENCES posts(id)
);

CREATE INDEX IF NOT EXISTS idx_articles_published_at ON articles(published_at);
CREATE INDEX IF NOT EXISTS idx_posts_account_posted_at ON posts(social_account_id, posted_at);
CREATE INDEX IF NOT EXISTS idx_posts_article_id ON posts(article_id);
CREATE INDEX IF NOT EXISTS idx_post_metrics_post_recorded ON post_metrics(post_id, recorded_at);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


# --- SocialAccount helpers ---


def insert_account(conn: sqlite3.Connection, account: SocialAccount) -> int:
    """Insert a social account, returning its ID."""
    cur = conn.execute(
        """INSERT INTO social_accounts
           (platform, handle, active, baseline_interactions_average,
            baseline_calculated_at, baseline_sample_size)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            account.platform,
            account.handle,
            int(account.active),
            account.baseline_interactions_average,
            _dt_str(account.baseline_calculated_at),
            account.baseline_sample_size,
        ),
    )
    conn.commit()
    return cur.lastrowid


def get_account(conn: sqlite3.Connection, account_id: int) -> SocialAccount | None:
    row = conn.execute("SELECT * FROM social_accounts WHERE id = ?", (account_id,)).fetchone()
    return _row_to_account(row) if row else None


def get_accounts(conn: sqlite3.Connection, active_only: bool = True) -> list[SocialAccount]:
    """Fetch social accounts, active ones only by default."""
    sql = "SELECT * FROM social_accounts"
    if active_only:
        sql += " WHERE active = 1"
    rows = conn.execute(sql + " ORDER BY id").fetchall()
    return [_row_to_account(row) for row in rows]


def update_account_baseline(
    conn: sqlite3.Connection,
    account_id: int,
    average: float,
    calculated_at: datetime,
    sample_size: int,
) -> None:
    """Cache a freshly computed baseline on the account."""
    conn.execute(
        """UPDATE social_accounts SET
           baseline_interactions_average = ?, baseline_calculated_at = ?,
           baseline_sample_size = ?
           WHERE id = ?""",
        (average, _dt_str(calculated_at), sample_size, account_id),
    )
    conn.commit()


def _row_to_account(row: sqlite3.Row) -> SocialAccount:
    return SocialAccount(
        id=row["id"],
        platform=row["platform"],
        handle=row["handle"],
        active=bool(row["active"]),
        baseline_interactions_average=row["baseline_interactions_average"],
        baseline_calculated_at=_parse_dt(row["baseline_calculated_at"]),
        baseline_sample_size=row["baseline_sample_size"],
    )


# --- Post helpers ---


def insert_post(conn: sqlite3.Connection, post: Post) -> int:
    """Insert a post and its metric snapshots, returning the post ID."""
    cur = conn.execute(
        """INSERT INTO posts
           (social_account_id, article_id, platform, platform_post_id, content,
            post_type, posted_at, external_url, platform_url,
            overperformance_score_cache, score_calculated_at,
            score_calculation_status, last_calculated_interactions)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            post.social_account_id,
            post.article_id,
            post.platform,
            post.platform_post_id,
            post.content,
            post.post_type.value,
            _dt_str(post.posted_at),
            post.external_url,
            post.platform_url,
            post.overperformance_score_cache,
            _dt_str(post.score_calculated_at),
            post.score_calculation_status.value,
            post.last_calculated_interactions,
        ),
    )
    post_id = cur.lastrowid
    for metric in post.metrics:
        _insert_metric_row(conn, post_id, metric)
    conn.commit()
    return post_id


def insert_metric(conn: sqlite3.Connection, post_id: int, metric: PostMetric) -> int:
    """Append an engagement snapshot to a post."""
    metric_id = _insert_metric_row(conn, post_id, metric)
    conn.commit()
    return metric_id


def _insert_metric_row(conn: sqlite3.Connection, post_id: int, metric: PostMetric) -> int:
    cur = conn.execute(
        """INSERT INTO post_metrics (post_id, likes, replies, reposts, quotes, recorded_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            post_id,
            metric.likes or 0,
            metric.replies or 0,
            metric.reposts or 0,
            metric.quotes or 0,
            _dt_str(metric.recorded_at),
        ),
    )
    return cur.lastrowid


def get_post(conn: sqlite3.Connection, post_id: int) -> Post | None:
    row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
    if row is None:
        return None
    return _with_metrics(conn, [_row_to_post(row)])[0]


def get_posts_by_account(
    conn: sqlite3.Connection, account_id: int, since: datetime | None = None,
) -> list[Post]:
    """Fetch an account's posts, newest first, optionally only those posted after ``since``."""
    sql = "SELECT * FROM posts WHERE social_account_id = ?"
    params: list = [account_id]
    if since is not None:
        sql += " AND posted_at > ?"
        params.append(_dt_str(since))
    rows = conn.execute(sql + " ORDER BY posted_at DESC", params).fetchall()
    return _with_metrics(conn, [_row_to_post(row) for row in rows])


def get_baseline_posts(
    conn: sqlite3.Connection, account_id: int, before: datetime, limit: int,
) -> list[Post]:
    """Fetch the most recent comparable, tracked posts of an account before a time.

    Plain text posts are excluded, and only posts whose platform URL carries
    the account handle count as the account's own.
    """
    rows = conn.execute(
        """SELECT p.* FROM posts p
           JOIN social_accounts s ON p.social_account_id = s.id
           WHERE p.social_account_id = ?
             AND p.posted_at < ?
             AND p.post_type != ?
             AND p.platform_url LIKE '%' || s.handle || '%'
           ORDER BY p.posted_at DESC
           LIMIT ?""",
        (account_id, _dt_str(before), PostType.TEXT.value, limit),
    ).fetchall()
    return _with_metrics(conn, [_row_to_post(row) for row in rows])


def get_article_post_scores(conn: sqlite3.Connection, article_id: int) -> list[float]:
    """Cached overperformance scores of an article's posts (unscored posts skipped)."""
    rows = conn.execute(
        """SELECT overperformance_score_cache FROM posts
           WHERE article_id = ? AND overperformance_score_cache IS NOT NULL
           ORDER BY id""",
        (article_id,),
    ).fetchall()
    return [row["overperformance_score_cache"] for row in rows]


def get_unlinked_posts_with_links(conn: sqlite3.Connection) -> list[Post]:
    rows = conn.execute(
        """SELECT * FROM posts
           WHERE article_id IS NULL AND external_url IS NOT NULL
           ORDER BY id"""
    ).fetchall()
    return [_row_to_post(row) for row in rows]


def update_post_article(conn: sqlite3.Connection, post_id: int, article_id: int) -> None:
    """Link a post to an article."""
    conn.execute("UPDATE posts SET article_id = ? WHERE id = ?", (article_id, post_id))
    conn.commit()


def update_post_score(
    conn: sqlite3.Connection,
    post_id: int,
    score: float,
    calculated_at: datetime,
    status: ScoreStatus,
    interactions: int,
) -> None:
    """Cache a computed overperformance score and the inputs it was based on."""
    conn.execute(
        """UPDATE posts SET
           overperformance_score_cache = ?, score_calculated_at = ?,
           score_calculation_status = ?, last_calculated_interactions = ?
           WHERE id = ?""",
        (score, _dt_str(calculated_at), status.value, interactions, post_id),
    )
    conn.commit()


def _with_metrics(conn: sqlite3.Connection, posts: list[Post]) -> list[Post]:
    """Attach metric snapshots (oldest first) to posts in one query."""
    ids = [p.id for p in posts if p.id is not None]
    if not ids:
        return posts
    placeholders = ", ".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM post_metrics WHERE post_id IN ({placeholders})"
        " ORDER BY recorded_at, id",
        ids,
    ).fetchall()
    by_post: dict[int, list[PostMetric]] = {}
    for row in rows:
        by_post.setdefault(row["post_id"], []).append(_row_to_metric(row))
    for post in posts:
        post.metrics = by_post.get(post.id, [])
    return posts


def _row_to_metric(row: sqlite3.Row) -> PostMetric:
    return PostMetric(
        id=row["id"],
        post_id=row["post_id"],
        likes=row["likes"],
        replies=row["replies"],
        reposts=row["reposts"],
        quotes=row["quotes"],
        recorded_at=_parse_dt(row["recorded_at"]),
    )


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        social_account_id=row["social_account_id"],
        article_id=row["article_id"],
        platform=row["platform"],
        platform_post_id=row["platform_post_id"],
        content=row["content"],
        post_type=PostType(row["post_type"]),
        posted_at=_parse_dt(row["posted_at"]),
        external_url=row["external_url"],
        platform_url=row["platform_url"],
        overperformance_score_cache=row["overperformance_score_cache"],
        score_calculated_at=_parse_dt(row["score_calculated_at"]),
        score_calculation_status=ScoreStatus(row["score_calculation_status"]),
        last_calculated_interactions=row["last_calculated_interactions"],
    )


# --- Article helpers ---


def insert_article(conn: sqlite3.Connection, article: Article) -> int:
    """Insert an article, returning its ID. Skips duplicates by msid."""
    try:
        cur = conn.execute(
            """INSERT INTO articles
               (msid, title, lead, published_at, predicted_performance_score,
                prediction_metadata)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                article.msid,
                article.title,
                article.lead,
                _dt_str(article.published_at),
                article.predicted_performance_score,
                json.dumps(article.prediction_metadata) if article.prediction_metadata else None,
            ),
        )
        conn.commit()
        return cur.lastrowid
    except sqlite3.IntegrityError:
        # Duplicate msid, return existing
        row = conn.execute("SELECT id FROM articles WHERE msid = ?", (article.msid,)).fetchone()
        return row["id"] if row else -1


def get_article(conn: sqlite3.Connection, article_id: int) -> Article | None:
    row = conn.execute("SELECT * FROM articles WHERE id = ?", (article_id,)).fetchone()
    return _row_to_article(row) if row else None


def get_article_by_msid(conn: sqlite3.Connection, msid: str) -> Article | None:
    row = conn.execute("SELECT * FROM articles WHERE msid = ?", (msid,)).fetchone()
    return _row_to_article(row) if row else None


def get_articles_published_between(
    conn: sqlite3.Connection, start: datetime, end: datetime,
) -> list[Article]:
    """Fetch articles published in [start, end], oldest first."""
    rows = conn.execute(
        """SELECT * FROM articles WHERE published_at >= ? AND published_at <= ?
           ORDER BY published_at, id""",
        (_dt_str(start), _dt_str(end)),
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def get_candidate_articles(
    conn: sqlite3.Connection,
    after: datetime,
    before: datetime,
    exclude_id: int | None = None,
) -> list[Article]:
    """Articles published strictly between two times with a post from a tracked account."""
    rows = conn.execute(
        """SELECT DISTINCT a.* FROM articles a
           JOIN posts p ON p.article_id = a.id
           JOIN social_accounts s ON p.social_account_id = s.id
           WHERE a.published_at > ?
             AND a.published_at < ?
             AND (? IS NULL OR a.id != ?)
             AND p.platform_url LIKE '%' || s.handle || '%'
           ORDER BY a.published_at, a.id""",
        (_dt_str(after), _dt_str(before), exclude_id, exclude_id),
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def get_articles_needing_prediction(conn: sqlite3.Connection) -> list[Article]:
    rows = conn.execute(
        """SELECT * FROM articles
           WHERE predicted_performance_score IS NULL
              OR prediction_metadata IS NULL
              OR json_extract(prediction_metadata, '$.calculated_at') IS NULL
           ORDER BY published_at, id"""
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def get_predicted_articles(conn: sqlite3.Connection) -> list[Article]:
    """Articles with a stored prediction and at least one scored post."""
    rows = conn.execute(
        """SELECT DISTINCT a.* FROM articles a
           JOIN posts p ON p.article_id = a.id
           WHERE a.predicted_performance_score IS NOT NULL
             AND p.overperformance_score_cache IS NOT NULL
           ORDER BY a.published_at, a.id"""
    ).fetchall()
    return [_row_to_article(row) for row in rows]


def update_article_prediction(
    conn: sqlite3.Connection, article_id: int, score: float, metadata: dict,
) -> None:
    """Store a prediction and its audit metadata on the article."""
    conn.execute(
        """UPDATE articles SET predicted_performance_score = ?, prediction_metadata = ?
           WHERE id = ?""",
        (score, json.dumps(metadata), article_id),
    )
    conn.commit()


def _row_to_article(row: sqlite3.Row) -> Article:
    metadata = row["prediction_metadata"]
    return Article(
        id=row["id"],
        msid=row["msid"],
        title=row["title"],
        lead=row["lead"],
        published_at=_parse_dt(row["published_at"]),
        predicted_performance_score=row["predicted_performance_score"],
        prediction_metadata=json.loads(metadata) if metadata else None,
    )


# --- Stats ---


def get_stats(conn: sqlite3.Connection) -> dict:
    """Counts of records and derived values for the stats command."""
    return dict(
        conn.execute(
            """SELECT
               (SELECT COUNT(*) FROM social_accounts) AS accounts,
               (SELECT COUNT(*) FROM posts) AS posts,
               (SELECT COUNT(*) FROM posts WHERE overperformance_score_cache IS NOT NULL)
                   AS scored_posts,
               (SELECT COUNT(*) FROM post_metrics) AS metrics,
               (SELECT COUNT(*) FROM articles) AS articles,
               (SELECT COUNT(*) FROM articles WHERE predicted_performance_score IS NOT NULL)
                   AS predicted_articles"""
        ).fetchone()
    )

"""Core data models for articles, posts, metrics and accounts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

_MSID_RE = re.compile(r"!(\d+)")


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def extract_msid_from_url(url: str | None) -> str | None:
    """Extract the article msid from any article URL form.

    Handles ``https://taz.de/Some-Title/!6144278/``, ``https://taz.de/!6144278``
    and the bare ``!6144278``.
    """
    if not url or not url.strip():
        return None
    match = _MSID_RE.search(url)
    return match.group(1) if match else None


class ScoreStatus(str, Enum):
    """How a post's cached overperformance score was produced."""

    NOT_CALCULATED = "not_calculated"
    FAST_CALCULATED = "fast_calculated"
    FULLY_CALCULATED = "fully_calculated"


class PostType(str, Enum):
    LINK = "link"
    IMAGE = "image"
    TEXT = "text"
    VIDEO = "video"


@dataclass(frozen=True)
class PostMetric:
    """An immutable engagement snapshot for one post."""

    recorded_at: datetime
    likes: int = 0
    replies: int = 0
    reposts: int = 0
    quotes: int = 0
    post_id: int | None = None
    id: int | None = None

    @property
    def total_interactions(self) -> int:
        return (self.likes or 0) + (self.replies or 0) + (self.reposts or 0) + (self.quotes or 0)


@dataclass
class SocialAccount:
    """A tracked social media account with its cached baseline.

    ``baseline_sample_size`` counts the posts the cached baseline was drawn
    from, before trimming. The trust check in ``usable_baseline`` compares
    that count against the minimum sample, while ``compute_baseline`` reports
    how many values survived trimming.
    """

    platform: str
    handle: str
    active: bool = True
    baseline_interactions_average: float | None = None
    baseline_calculated_at: datetime | None = None
    baseline_sample_size: int | None = None
    id: int | None = None

    def usable_baseline(self, min_sample_size: int) -> float | None:
        """Cached baseline, or None when it is missing or built on too few posts."""
        if not self.baseline_interactions_average:
            return None
        if (self.baseline_sample_size or 0) < min_sample_size:
            return None
        return self.baseline_interactions_average

    def needs_baseline_recalculation(self, now: datetime, window_hours: float) -> bool:
        if self.baseline_calculated_at is None:
            return True
        return self.baseline_calculated_at < now - timedelta(hours=window_hours)

    @property
    def display_name(self) -> str:
        return f"@{self.handle}"


@dataclass
class Post:
    """A social media post, optionally linked to an article."""

    social_account_id: int
    platform: str
    platform_post_id: str
    content: str
    posted_at: datetime
    post_type: PostType = PostType.LINK
    article_id: int | None = None
    external_url: str | None = None
    platform_url: str | None = None
    overperformance_score_cache: float | None = None
    score_calculated_at: datetime | None = None
    score_calculation_status: ScoreStatus = ScoreStatus.NOT_CALCULATED
    last_calculated_interactions: int | None = None
    metrics: list[PostMetric] = field(default_factory=list)
    id: int | None = None

    @property
    def latest_metrics(self) -> PostMetric | None:
        if not self.metrics:
            return None
        return max(self.metrics, key=lambda m: m.recorded_at)

    @property
    def latest_total_interactions(self) -> int:
        latest = self.latest_metrics
        return latest.total_interactions if latest else 0

    def metrics_changed(self) -> bool:
        if self.last_calculated_interactions is None:
            return True
        return self.latest_total_interactions != self.last_calculated_interactions


@dataclass
class Article:
    """A published news article."""

    msid: str
    title: str
    published_at: datetime
    lead: str | None = None
    predicted_performance_score: float | None = None
    prediction_metadata: dict[str, Any] | None = None
    id: int | None = None

    def needs_prediction_recalculation(self) -> bool:
        return (
            self.predicted_performance_score is None
            or not self.prediction_metadata
            or self.prediction_metadata.get("calculated_at") is None
        )

    def is_default_prediction(self, default_score: float = 100.0) -> bool:
        """True when the stored score only says "no similar articles were found"."""
        return self.predicted_performance_score == default_score

    def truncated_title(self, length: int = 100) -> str:
        return f"{self.title[:length]}..." if len(self.title) > length else self.title


@dataclass
class SimilarArticle:
    """A candidate article ranked by similarity to a target."""

    article: Article
    similarity: float
    recency_weight: float = 1.0
    avg_performance: float | None = None

    def to_detail(self) -> dict[str, Any]:
        return {
            "id": self.article.id,
            "title": self.article.title,
            "similarity": round(self.similarity, 3),
            "recency_weight": round(self.recency_weight, 3),
            "avg_performance": round(self.avg_performance or 0.0, 2),
        }


@dataclass
class Prediction:
    """Predicted performance of an article and how it was derived."""

    score: float
    method: str  # similarity, default
    similar: list[SimilarArticle] = field(default_factory=list)

    @property
    def similar_articles_used(self) -> list[int | None]:
        return [s.article.id for s in self.similar]

    @property
    def count(self) -> int:
        return len(self.similar)

    @property
    def details(self) -> list[dict[str, Any]]:
        return [s.to_detail() for s in self.similar]

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "similar_articles_used": self.similar_articles_used,
            "count": self.count,
            "method": self.method,
            "details": self.details,
        }

    def to_metadata(self, calculated_at: datetime) -> dict[str, Any]:
        return {
            "similar_articles": self.similar_articles_used,
            "count": self.count,
            "calculated_at": calculated_at.isoformat(),
            "method": self.method,
            "details": self.details,
        }

"""Tests for data model behaviour."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from pulse.models import (
    Article,
    Post,
    PostMetric,
    Prediction,
    SimilarArticle,
    SocialAccount,
    extract_msid_from_url,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _post(**kwargs) -> Post:
    defaults = dict(
        social_account_id=1,
        platform="bluesky",
        platform_post_id="abc",
        content="Hello",
        posted_at=NOW,
    )
    defaults.update(kwargs)
    return Post(**defaults)


def test_total_interactions_sums_all_counts():
    """Total interactions is the sum of likes, replies, reposts and quotes."""
    metric = PostMetric(recorded_at=NOW, likes=10, replies=2, reposts=3, quotes=1)
    assert metric.total_interactions == 16


def test_latest_metrics_uses_most_recent_snapshot():
    """The newest snapshot by recorded_at is current, whatever the list order."""
    post = _post(metrics=[
        PostMetric(recorded_at=NOW + timedelta(hours=2), likes=50),
        PostMetric(recorded_at=NOW + timedelta(hours=1), likes=10),
    ])
    assert post.latest_total_interactions == 50


def test_latest_total_interactions_without_metrics():
    """A post without snapshots has zero interactions."""
    assert _post().latest_total_interactions == 0


def test_metrics_changed():
    """Metrics count as changed until the scored engagement matches the latest."""
    post = _post(metrics=[PostMetric(recorded_at=NOW, likes=5)])
    assert post.metrics_changed()
    post.last_calculated_interactions = 5
    assert not post.metrics_changed()


@pytest.mark.parametrize("url,expected", [
    ("https://taz.de/Trump-beim-Weltwirtschaftsforum/!6144278/", "6144278"),
    ("https://taz.de/!6144278", "6144278"),
    ("https://taz.de/!6144278/", "6144278"),
    ("!6144278", "6144278"),
    ("https://taz.de/some-page/", None),
    ("", None),
    (None, None),
])
def test_extract_msid_from_url(url, expected):
    """The msid is the digit run after '!' in any article URL form."""
    assert extract_msid_from_url(url) == expected


def test_usable_baseline_requires_minimum_sample():
    """A cached baseline from fewer posts than the minimum is not usable."""
    account = SocialAccount(
        platform="bluesky", handle="taz.de",
        baseline_interactions_average=80.0, baseline_sample_size=19,
    )
    assert account.usable_baseline(20) is None
    account.baseline_sample_size = 20
    assert account.usable_baseline(20) == 80.0


def test_needs_baseline_recalculation():
    """A baseline is stale when missing or older than the freshness window."""
    account = SocialAccount(platform="bluesky", handle="taz.de")
    assert account.needs_baseline_recalculation(NOW, 1)
    account.baseline_calculated_at = NOW - timedelta(minutes=30)
    assert not account.needs_baseline_recalculation(NOW, 1)
    account.baseline_calculated_at = NOW - timedelta(hours=2)
    assert account.needs_baseline_recalculation(NOW, 1)


def test_article_prediction_state():
    """Predictions need a score and a calculated_at stamp; 100.0 marks the default."""
    article = Article(msid="1", title="Title", published_at=NOW)
    assert article.needs_prediction_recalculation()

    article.predicted_performance_score = 100.0
    article.prediction_metadata = {"method": "default", "calculated_at": NOW.isoformat()}
    assert not article.needs_prediction_recalculation()
    assert article.is_default_prediction()

    article.predicted_performance_score = 123.45
    assert not article.is_default_prediction()


def test_truncated_title():
    """Long titles are cut and marked with an ellipsis."""
    article = Article(msid="1", title="Mietendeckel", published_at=NOW)
    assert article.truncated_title(4) == "Miet..."
    assert article.truncated_title(50) == "Mietendeckel"


def test_prediction_to_dict():
    """Prediction details round similarity and recency to 3 dp, performance to 2 dp."""
    candidate = Article(msid="2", title="Earlier", published_at=NOW, id=7)
    prediction = Prediction(
        score=150.0,
        method="similarity",
        similar=[SimilarArticle(candidate, similarity=0.56789, recency_weight=0.74081,
                                avg_performance=150.004)],
    )
    result = prediction.to_dict()
    assert result["score"] == 150.0
    assert result["similar_articles_used"] == [7]
    assert result["count"] == 1
    assert result["method"] == "similarity"
    assert result["details"] == [{
        "id": 7,
        "title": "Earlier",
        "similarity": 0.568,
        "recency_weight": 0.741,
        "avg_performance": 150.0,
    }]

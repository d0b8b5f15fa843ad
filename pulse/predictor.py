"""Predict an article's social performance from similar, earlier articles.

The prediction is a weighted average of how similar past articles performed:

    score = sum(perf * similarity * recency) / sum(similarity * recency)

where ``perf`` is the mean overperformance score of an article's posts and
``recency = exp(-decay * months_old)``. Only articles published in the few
months before the target count, so a prediction uses only what was known at
publication time and can be backtested.
"""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from pulse.config import EngineConfig
from pulse.db import (
    get_article_post_scores,
    get_articles_needing_prediction,
    get_candidate_articles,
    update_article_prediction,
)
from pulse.models import Article, Prediction, SimilarArticle, utcnow
from pulse.similarity.calculator import find_similar

logger = logging.getLogger(__name__)

# Mean Gregorian month
MONTH = timedelta(days=30.436875)


def recency_weight(
    published_at: datetime, reference_time: datetime, decay_constant: float,
) -> float:
    """exp(-decay * months between publication and reference time); 1.0 for no age."""
    months_old = max(0.0, (reference_time - published_at) / MONTH)
    return math.exp(-decay_constant * months_old)


def weighted_prediction(similar: list[SimilarArticle], default_score: float) -> float:
    weighted_sum = 0.0
    weight_sum = 0.0
    for item in similar:
        combined = item.similarity * item.recency_weight
        weighted_sum += (item.avg_performance or 0.0) * combined
        weight_sum += combined

    if weight_sum == 0:
        return default_score
    return weighted_sum / weight_sum


class PerformancePredictor:
    """Similarity-based performance prediction for articles."""

    def __init__(self, conn: sqlite3.Connection, config: EngineConfig):
        self.conn = conn
        self.config = config

    def candidates(self, article: Article) -> list[Article]:
        """Earlier articles in the lookback window that were posted by a tracked account."""
        cutoff = article.published_at - relativedelta(months=self.config.max_candidate_age_months)
        return get_candidate_articles(self.conn, cutoff, article.published_at, article.id)

    def article_performance(self, article: Article) -> float | None:
        """Mean cached overperformance across the article's posts, None if none are scored."""
        scores = get_article_post_scores(self.conn, article.id)
        if not scores:
            return None
        return sum(scores) / len(scores)

    def default_prediction(self) -> Prediction:
        return Prediction(score=self.config.default_score, method="default")

    def predict(self, article: Article, reference_time: datetime | None = None) -> Prediction:
        """Predict without storing anything.

        Recency is measured from ``reference_time``, the target's publication
        time by default.
        """
        reference_time = reference_time or article.published_at

        candidates = self.candidates(article)
        if not candidates:
            logger.info("No candidate articles for %s, using default", article.msid)
            return self.default_prediction()

        similar = find_similar(
            article, candidates,
            min_similarity=self.config.similarity_threshold,
            method=self.config.rarity_method,
        )

        used = []
        for item in similar:
            performance = self.article_performance(item.article)
            if performance is None:
                continue
            item.avg_performance = performance
            item.recency_weight = recency_weight(
                item.article.published_at, reference_time, self.config.decay_constant,
            )
            used.append(item)

        if not used:
            logger.info(
                "No scored similar articles for %s (%d candidates), using default",
                article.msid, len(candidates),
            )
            return self.default_prediction()

        score = weighted_prediction(used, self.config.default_score)
        logger.info(
            "Predicted %.2f for %s from %d similar articles",
            score, article.msid, len(used),
        )
        return Prediction(score=round(score, 2), method="similarity", similar=used)

    def calculate_prediction(self, article: Article, now: datetime | None = None) -> Prediction:
        """Predict and store the score and audit metadata on the article."""
        prediction = self.predict(article)
        metadata = prediction.to_metadata(now or utcnow())
        update_article_prediction(self.conn, article.id, prediction.score, metadata)
        article.predicted_performance_score = prediction.score
        article.prediction_metadata = metadata
        return prediction


def predict_for_article(
    conn: sqlite3.Connection, article: Article, config: EngineConfig,
) -> Prediction:
    """Predict and store the performance of one article."""
    return PerformancePredictor(conn, config).calculate_prediction(article)


def predict_missing(conn: sqlite3.Connection, config: EngineConfig) -> int:
    """Predict every article that has no usable prediction yet. Returns the count."""
    predictor = PerformancePredictor(conn, config)
    articles = get_articles_needing_prediction(conn)
    for article in articles:
        predictor.calculate_prediction(article)
    logger.info("Calculated %d predictions", len(articles))
    return len(articles)

"""Compare stored predictions with the performance articles actually achieved."""

from __future__ import annotations

import logging
import math
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from pulse.db import get_article_post_scores, get_predicted_articles

logger = logging.getLogger(__name__)


@dataclass
class DataPoint:
    """Predicted vs. actual score for one article."""

    article_id: int
    title: str
    predicted: float
    actual: float
    posts_count: int
    threshold: float = 100.0

    @property
    def predicted_above(self) -> bool:
        return self.predicted > self.threshold

    @property
    def actual_above(self) -> bool:
        return self.actual > self.threshold


@dataclass
class AccuracyReport:
    """Error statistics and an above/below-threshold confusion matrix."""

    data_points: list[DataPoint] = field(default_factory=list)
    mae: float = 0.0
    rmse: float = 0.0
    correlation: float = 0.0
    avg_predicted: float = 0.0
    avg_actual: float = 0.0
    true_positives: int = 0
    true_negatives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0

    @property
    def total_articles(self) -> int:
        return len(self.data_points)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson's r, or 0.0 when it is undefined (no points or no variance)."""
    n = len(x)
    if n == 0:
        return 0.0
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    numerator = n * np.dot(xs, ys) - xs.sum() * ys.sum()
    spread = (n * np.dot(xs, xs) - xs.sum() ** 2) * (n * np.dot(ys, ys) - ys.sum() ** 2)
    if spread <= 0:
        return 0.0
    return float(numerator / math.sqrt(spread))


def _percent(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 1)


def build_report(points: list[DataPoint]) -> AccuracyReport:
    report = AccuracyReport(data_points=points)
    if not points:
        return report

    predicted = np.array([p.predicted for p in points])
    actual = np.array([p.actual for p in points])
    errors = predicted - actual

    report.mae = float(np.abs(errors).mean())
    report.rmse = float(np.sqrt((errors ** 2).mean()))
    report.correlation = pearson_correlation(predicted, actual)
    report.avg_predicted = float(predicted.mean())
    report.avg_actual = float(actual.mean())

    report.true_positives = sum(1 for p in points if p.predicted_above and p.actual_above)
    report.true_negatives = sum(1 for p in points if not p.predicted_above and not p.actual_above)
    report.false_positives = sum(1 for p in points if p.predicted_above and not p.actual_above)
    report.false_negatives = sum(1 for p in points if not p.predicted_above and p.actual_above)

    tp, fp, fn = report.true_positives, report.false_positives, report.false_negatives
    report.accuracy = _percent(tp + report.true_negatives, len(points))
    report.precision = _percent(tp, tp + fp)
    report.recall = _percent(tp, tp + fn)
    if report.precision + report.recall > 0:
        report.f1_score = round(
            2 * report.precision * report.recall / (report.precision + report.recall), 1,
        )
    return report


def analyze_predictions(
    conn: sqlite3.Connection,
    default_score: float = 100.0,
    max_score: float = 250.0,
    threshold: float = 100.0,
) -> AccuracyReport:
    """Evaluate real (non-default) predictions against each article's best post.

    Points where either value exceeds ``max_score`` are left out so a single
    viral post does not dominate the error statistics.
    """
    points = []
    for article in get_predicted_articles(conn):
        if article.is_default_prediction(default_score):
            continue
        scores = get_article_post_scores(conn, article.id)
        if not scores:
            continue
        predicted = float(article.predicted_performance_score)
        actual = float(max(scores))
        if predicted > max_score or actual > max_score:
            continue
        points.append(DataPoint(
            article_id=article.id,
            title=article.truncated_title(60),
            predicted=predicted,
            actual=actual,
            posts_count=len(scores),
            threshold=threshold,
        ))

    report = build_report(points)
    logger.info(
        "Prediction accuracy over %d articles: MAE %.2f, RMSE %.2f, r=%.3f",
        report.total_articles, report.mae, report.rmse, report.correlation,
    )
    return report

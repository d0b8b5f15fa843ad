"""CLI entrypoint: python -m pulse {init-db|predict|score|baselines|backfill|link|accuracy|stats}."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

from pulse.config import (
    get_accuracy_config,
    get_backfill_config,
    get_db_path,
    get_engine_config,
    get_linker_config,
    load_config,
)
from pulse.db import get_accounts, get_connection, get_posts_by_account, get_stats, init_db


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    db_path = get_db_path(config)
    log_dir = Path(db_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "pulse.log"

    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)


def cmd_init_db(config: dict) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


def cmd_predict(config: dict) -> None:
    """Predict performance for every article without a prediction."""
    from pulse.predictor import predict_missing

    conn = get_connection(get_db_path(config))
    try:
        count = predict_missing(conn, get_engine_config(config))
    finally:
        conn.close()
    print(f"Predicted {count} articles")


def cmd_baselines(config: dict) -> None:
    """Recompute and cache the baseline of every active account."""
    from pulse.scoring.baseline import calculate_and_cache_baseline

    engine = get_engine_config(config)
    conn = get_connection(get_db_path(config))
    try:
        for account in get_accounts(conn):
            average = calculate_and_cache_baseline(conn, account, engine)
            label = f"{average:.2f}" if average else "unavailable"
            print(f"  {account.display_name}: {label}")
    finally:
        conn.close()


def cmd_score(config: dict) -> None:
    """Fully re-score posts whose cached score is missing or stale."""
    from pulse.models import utcnow
    from pulse.scoring.overperformance import OverperformanceScorer, needs_score_recalculation

    engine = get_engine_config(config)
    conn = get_connection(get_db_path(config))
    now = utcnow()
    total = 0
    try:
        scorer = OverperformanceScorer(conn, engine)
        for account in get_accounts(conn):
            for post in get_posts_by_account(conn, account.id):
                if needs_score_recalculation(post, now, engine):
                    scorer.calculate_and_cache_overperformance_score(post, account, now)
                    total += 1
    finally:
        conn.close()
    print(f"Re-scored {total} posts")


def cmd_backfill(config: dict) -> None:
    """Run background backfill for all active accounts and wait for it."""
    from pulse.backfill import BackfillQueue

    db_path = get_db_path(config)
    backfill_cfg = get_backfill_config(config)
    conn = get_connection(db_path)
    try:
        accounts = get_accounts(conn)
    finally:
        conn.close()

    with BackfillQueue(
        db_path,
        get_engine_config(config),
        max_workers=backfill_cfg["max_workers"],
        max_post_age_days=backfill_cfg["max_post_age_days"],
    ) as queue:
        futures = {a.display_name: queue.submit(a.id) for a in accounts}
        for name, future in futures.items():
            result = future.result()
            print(f"  {name}: {'failed' if result is None else f'{result} posts re-scored'}")


def cmd_link(config: dict) -> None:
    """Link unlinked posts to imported articles."""
    from pulse.linker import PostArticleLinker

    conn = get_connection(get_db_path(config))
    try:
        linker = PostArticleLinker(conn, **get_linker_config(config))
        stats = linker.link_all_unlinked_posts()
    finally:
        conn.close()
    for key, value in stats.items():
        print(f"  {key}: {value}")


def cmd_accuracy(config: dict) -> None:
    """Show how well stored predictions matched actual performance."""
    from pulse.accuracy import analyze_predictions

    engine = get_engine_config(config)
    conn = get_connection(get_db_path(config))
    try:
        report = analyze_predictions(
            conn, default_score=engine.default_score, **get_accuracy_config(config),
        )
    finally:
        conn.close()

    if not report.total_articles:
        print("No articles with predictions and scored posts yet.")
        return

    print(f"Articles:     {report.total_articles}")
    print(f"MAE:          {report.mae:.2f}")
    print(f"RMSE:         {report.rmse:.2f}")
    print(f"Correlation:  {report.correlation:.3f}")
    print(f"Avg predicted {report.avg_predicted:.2f} / actual {report.avg_actual:.2f}")
    print(
        f"TP {report.true_positives}  TN {report.true_negatives}  "
        f"FP {report.false_positives}  FN {report.false_negatives}"
    )
    print(
        f"Accuracy {report.accuracy}%  Precision {report.precision}%  "
        f"Recall {report.recall}%  F1 {report.f1_score}"
    )


def cmd_stats(config: dict) -> None:
    """Show record counts."""
    conn = get_connection(get_db_path(config))
    try:
        stats = get_stats(conn)
    finally:
        conn.close()

    for key, value in stats.items():
        print(f"{key:<20} {value:>8}")


COMMANDS = {
    "init-db": cmd_init_db,
    "predict": cmd_predict,
    "score": cmd_score,
    "baselines": cmd_baselines,
    "backfill": cmd_backfill,
    "link": cmd_link,
    "accuracy": cmd_accuracy,
    "stats": cmd_stats,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        available = ", ".join(COMMANDS)
        print(f"Usage: python -m pulse {{{available}}}")
        sys.exit(1)

    command = sys.argv[1]
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    COMMANDS[command](config)


if __name__ == "__main__":
    main()

"""Tests for the command-line entrypoint."""

from __future__ import annotations

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from pulse.__main__ import cmd_accuracy, cmd_init_db, cmd_predict, cmd_stats, main
from pulse.db import get_article

NOW = datetime(2026, 3, 1, 12, 0, 0)


def test_usage_without_command(capsys):
    """Running without a command prints usage and exits 1."""
    with patch("sys.argv", ["pulse"]), pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1
    assert "Usage: python -m pulse" in capsys.readouterr().out


def test_unknown_command(capsys):
    """Unknown commands print the available ones."""
    with patch("sys.argv", ["pulse", "crawl"]), pytest.raises(SystemExit):
        main()
    assert "init-db" in capsys.readouterr().out


def test_init_db(sample_config, capsys):
    """init-db reports the database location."""
    cmd_init_db(sample_config)
    assert "Database initialized" in capsys.readouterr().out


def test_predict_and_stats(sample_config, db_conn, make_article, capsys):
    """predict stores default predictions and stats reports them."""
    article = make_article("Mietendeckel Berlin", NOW - timedelta(days=1))

    cmd_predict(sample_config)
    cmd_stats(sample_config)

    out = capsys.readouterr().out
    assert "Predicted 1 articles" in out
    assert "predicted_articles" in out
    assert get_article(db_conn, article.id).predicted_performance_score == 100.0


def test_accuracy_without_data(sample_config, db_path, capsys):
    """accuracy explains when there is nothing to compare."""
    cmd_accuracy(sample_config)
    assert "No articles with predictions" in capsys.readouterr().out

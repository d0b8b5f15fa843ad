"""Tests for config loading and env var resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from pulse.config import (
    EngineConfig,
    get_accuracy_config,
    get_backfill_config,
    get_db_path,
    get_engine_config,
    get_linker_config,
    load_config,
)

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"


def test_load_config(sample_config):
    """Config loads and has expected structure."""
    assert "engine" in sample_config
    assert "database" in sample_config


def test_env_var_resolution(tmp_path, monkeypatch):
    """Environment variables in ${VAR} format are resolved."""
    monkeypatch.setenv("TEST_DB_DIR", "/var/lib/pulse")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
database:
  path: "${TEST_DB_DIR}/pulse.db"
""")
    config = load_config(str(cfg_path))
    assert config["database"]["path"] == "/var/lib/pulse/pulse.db"


def test_env_var_default_used_when_unset(tmp_path, monkeypatch):
    """${VAR:-default} falls back to the default when VAR is unset or empty."""
    monkeypatch.delenv("TEST_DB_PATH", raising=False)
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
database:
  path: "${TEST_DB_PATH:-data/fallback.db}"
""")
    assert load_config(str(cfg_path))["database"]["path"] == "data/fallback.db"

    monkeypatch.setenv("TEST_DB_PATH", "")
    assert load_config(str(cfg_path))["database"]["path"] == "data/fallback.db"


def test_env_var_overrides_default(tmp_path, monkeypatch):
    """A set variable wins over the inline default."""
    monkeypatch.setenv("TEST_DB_PATH", "/srv/pulse.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text('path: "${TEST_DB_PATH:-data/fallback.db}"\n')
    assert load_config(str(cfg_path))["path"] == "/srv/pulse.db"


def test_env_var_in_list(tmp_path, monkeypatch):
    """Variables inside lists are resolved too."""
    monkeypatch.setenv("TEST_HANDLE", "taz.de")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text('handles: ["${TEST_HANDLE}", "other"]\n')
    assert load_config(str(cfg_path))["handles"] == ["taz.de", "other"]


def test_repo_config_defaults(monkeypatch):
    """The shipped config.yaml yields the standard policy and default db path."""
    monkeypatch.delenv("PULSE_DB_PATH", raising=False)
    config = load_config(str(REPO_CONFIG))
    assert get_engine_config(config) == EngineConfig()
    assert get_db_path(config) == "data/pulse.db"


def test_repo_config_db_path_from_env(monkeypatch):
    """PULSE_DB_PATH relocates the database."""
    monkeypatch.setenv("PULSE_DB_PATH", "/tmp/elsewhere.db")
    assert get_db_path(load_config(str(REPO_CONFIG))) == "/tmp/elsewhere.db"


def test_missing_config_file(tmp_path):
    """A missing config file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_engine_config_defaults():
    """An empty engine section yields the standard policy."""
    cfg = get_engine_config({})
    assert cfg == EngineConfig()
    assert cfg.similarity_threshold == 0.2
    assert cfg.max_candidate_age_months == 3
    assert cfg.decay_constant == 0.3
    assert cfg.default_score == 100.0
    assert cfg.baseline_window == 100
    assert cfg.trim_each_side == 10
    assert cfg.min_sample_size == 20
    assert cfg.freshness_window_hours == 1
    assert cfg.rarity_method == "document_frequency"


def test_engine_config_from_yaml(sample_config):
    """The engine section of the YAML maps onto EngineConfig."""
    cfg = get_engine_config(sample_config)
    assert cfg.similarity_threshold == 0.2
    assert cfg.min_sample_size == 20


def test_engine_config_is_immutable():
    """EngineConfig cannot be changed after construction."""
    cfg = EngineConfig()
    with pytest.raises(AttributeError):
        cfg.decay_constant = 0.5  # type: ignore[misc]


def test_engine_config_rejects_unknown_keys():
    """Misspelled engine keys are reported by name."""
    with pytest.raises(ValueError, match="similarity_treshold"):
        get_engine_config({"engine": {"similarity_treshold": 0.3}})


@pytest.mark.parametrize("overrides", [
    {"similarity_threshold": 1.5},
    {"decay_constant": -0.1},
    {"min_sample_size": 0},
    {"trim_each_side": -1},
    {"freshness_window_hours": 0},
])
def test_engine_config_rejects_invalid_values(overrides):
    """Out-of-range policy values raise ValueError."""
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_get_db_path(sample_config):
    """DB path is extracted from config."""
    assert get_db_path(sample_config).endswith("test.db")
    assert get_db_path({}) == "data/pulse.db"


def test_section_defaults():
    """Missing sections fall back to their defaults."""
    assert get_linker_config({}) == {"article_domain": "taz.de"}
    assert get_backfill_config({}) == {"max_workers": 2, "max_post_age_days": 30}
    assert get_accuracy_config({}) == {"max_score": 250.0, "threshold": 100.0}

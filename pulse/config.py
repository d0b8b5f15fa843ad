"""Load and validate configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


_ENV_VAR_RE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def _env_value(match: re.Match) -> str:
    name, default = match.group(1), match.group(2)
    value = os.environ.get(name, "")
    if not value and default is not None:
        return default
    return value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} and ${ENV_VAR:-default} patterns in config values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(_env_value, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


@dataclass(frozen=True)
class EngineConfig:
    """Scoring and prediction policy, fixed for the lifetime of an engine."""

    similarity_threshold: float = 0.2
    max_candidate_age_months: int = 3
    decay_constant: float = 0.3
    default_score: float = 100.0
    baseline_window: int = 100
    trim_each_side: int = 10
    min_sample_size: int = 20
    freshness_window_hours: float = 1.0
    rarity_method: str = "document_frequency"

    def __post_init__(self):
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be in [0, 1], got {self.similarity_threshold}")
        if self.decay_constant < 0:
            raise ValueError(f"decay_constant must be >= 0, got {self.decay_constant}")
        for name in ("max_candidate_age_months", "baseline_window", "min_sample_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.trim_each_side < 0:
            raise ValueError(f"trim_each_side must be >= 0, got {self.trim_each_side}")
        if self.freshness_window_hours <= 0:
            raise ValueError(
                f"freshness_window_hours must be positive, got {self.freshness_window_hours}"
            )


def get_engine_config(config: dict) -> EngineConfig:
    """Build the immutable engine policy from the ``engine`` config section."""
    section = config.get("engine", {}) or {}
    known = {f.name for f in fields(EngineConfig)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown engine config keys: {', '.join(sorted(unknown))}")
    return EngineConfig(**section)


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/pulse.db")


def get_linker_config(config: dict) -> dict:
    """Get post-to-article linking settings."""
    cfg = config.get("linker", {})
    return {
        "article_domain": cfg.get("article_domain", "taz.de"),
    }


def get_backfill_config(config: dict) -> dict:
    """Get background backfill settings."""
    cfg = config.get("backfill", {})
    return {
        "max_workers": cfg.get("max_workers", 2),
        "max_post_age_days": cfg.get("max_post_age_days", 30),
    }


def get_accuracy_config(config: dict) -> dict:
    """Get prediction accuracy analysis settings."""
    cfg = config.get("accuracy", {})
    return {
        "max_score": cfg.get("max_score", 250.0),
        "threshold": cfg.get("threshold", 100.0),
    }

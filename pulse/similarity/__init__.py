"""Term rarity estimator registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pulse.similarity.base import BaseRarityEstimator

ESTIMATORS: dict[str, type[BaseRarityEstimator]] = {}


def register_estimator(name: str):
    """Decorator to register a term rarity estimator."""

    def decorator(cls):
        ESTIMATORS[name] = cls
        return cls

    return decorator


def get_estimator(name: str) -> BaseRarityEstimator:
    """Instantiate a registered estimator by name."""
    if name not in ESTIMATORS:
        available = ", ".join(sorted(ESTIMATORS))
        raise ValueError(f"Unknown rarity method '{name}' (available: {available})")
    return ESTIMATORS[name]()


from pulse.similarity.rarity import (  # noqa: E402, F401
    DocumentFrequencyEstimator,
    TokenFrequencyEstimator,
)

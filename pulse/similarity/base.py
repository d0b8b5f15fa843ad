"""Abstract base class for term rarity estimators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

# Weight for tokens that never occur in the candidate corpus
UNSEEN_WEIGHT = 1.0


class BaseRarityEstimator(ABC):
    """Maps each token of a candidate corpus to a rarity weight."""

    @abstractmethod
    def weights(self, documents: Sequence[Sequence[str]]) -> dict[str, float]:
        """Return token -> weight, rarer tokens weighted strictly higher."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Estimator name."""
        ...

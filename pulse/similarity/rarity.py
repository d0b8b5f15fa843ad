"""Term rarity (IDF-style) weights over a candidate corpus."""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Sequence

from pulse.similarity import register_estimator
from pulse.similarity.base import BaseRarityEstimator

logger = logging.getLogger(__name__)


@register_estimator("document_frequency")
class DocumentFrequencyEstimator(BaseRarityEstimator):
    """rarity = ln(total documents / documents containing the token)."""

    @property
    def name(self) -> str:
        return "document_frequency"

    def weights(self, documents: Sequence[Sequence[str]]) -> dict[str, float]:
        if not documents:
            return {}

        docfreq: Counter[str] = Counter()
        for tokens in documents:
            docfreq.update(set(tokens))

        total = float(len(documents))
        return {token: math.log(total / freq) for token, freq in docfreq.items()}


@register_estimator("token_frequency")
class TokenFrequencyEstimator(BaseRarityEstimator):
    """rarity = ln(count of the most common token / count of this token)."""

    @property
    def name(self) -> str:
        return "token_frequency"

    def weights(self, documents: Sequence[Sequence[str]]) -> dict[str, float]:
        counts: Counter[str] = Counter()
        for tokens in documents:
            counts.update(tokens)
        if not counts:
            return {}

        max_count = max(counts.values())
        return {token: math.log(max_count / count) for token, count in counts.items()}

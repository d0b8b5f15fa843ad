"""IDF-weighted cosine similarity between articles."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

import numpy as np

from pulse.models import Article, SimilarArticle
from pulse.similarity import get_estimator
from pulse.similarity.base import UNSEEN_WEIGHT
from pulse.similarity.preprocess import preprocess

logger = logging.getLogger(__name__)

DEFAULT_RARITY_METHOD = "document_frequency"


class TokenCache:
    """Preprocessed tokens per article, so a batch tokenizes each article once."""

    def __init__(self):
        self._tokens: dict[object, list[str]] = {}

    @staticmethod
    def _key(article: Article) -> object:
        return ("id", article.id) if article.id is not None else ("obj", id(article))

    def tokens(self, article: Article) -> list[str]:
        key = self._key(article)
        if key not in self._tokens:
            self._tokens[key] = preprocess(article)
        return self._tokens[key]


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Compute cosine similarity between two vectors."""
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def term_frequency(tokens: Sequence[str], vocabulary: Sequence[str]) -> np.ndarray:
    """Relative frequency of each vocabulary term in ``tokens``."""
    if not tokens:
        return np.zeros(len(vocabulary))
    counts = Counter(tokens)
    total = float(len(tokens))
    return np.array([counts.get(term, 0) / total for term in vocabulary])


def weighted_cosine_similarity(
    tokens_a: Sequence[str], tokens_b: Sequence[str], rarity: dict[str, float],
) -> float:
    """Cosine of the rarity-weighted term frequency vectors, in [0, 1]."""
    if not tokens_a or not tokens_b:
        return 0.0

    # Sorted so the result does not depend on argument order
    vocabulary = sorted(set(tokens_a) | set(tokens_b))
    weights = np.array([rarity.get(term, UNSEEN_WEIGHT) for term in vocabulary])

    vec_a = term_frequency(tokens_a, vocabulary) * weights
    vec_b = term_frequency(tokens_b, vocabulary) * weights
    return min(1.0, max(0.0, cosine_similarity(vec_a, vec_b)))


def term_rarity(
    candidates: Sequence[Article],
    method: str = DEFAULT_RARITY_METHOD,
    cache: TokenCache | None = None,
) -> dict[str, float]:
    """Rarity weight of every token across the candidate set."""
    if not candidates:
        return {}
    cache = cache or TokenCache()
    return get_estimator(method).weights([cache.tokens(c) for c in candidates])


def similarity(
    article_a: Article,
    article_b: Article,
    candidates: Sequence[Article],
    method: str = DEFAULT_RARITY_METHOD,
) -> float:
    """Similarity of two articles, with term rarity measured over ``candidates``."""
    cache = TokenCache()
    tokens_a = cache.tokens(article_a)
    tokens_b = cache.tokens(article_b)
    if not tokens_a or not tokens_b:
        return 0.0
    rarity = term_rarity(candidates, method, cache)
    return weighted_cosine_similarity(tokens_a, tokens_b, rarity)


def _is_same(a: Article, b: Article) -> bool:
    if a.id is not None and b.id is not None:
        return a.id == b.id
    return a is b


def find_similar(
    target: Article,
    candidates: Sequence[Article],
    min_similarity: float = 0.2,
    method: str = DEFAULT_RARITY_METHOD,
) -> list[SimilarArticle]:
    """Rank candidates by similarity to ``target``, most similar first.

    Term rarity is computed once for the whole batch. Ties keep candidate order.
    """
    cache = TokenCache()
    target_tokens = cache.tokens(target)
    if not target_tokens or not candidates:
        return []

    rarity = term_rarity(candidates, method, cache)

    results = []
    for candidate in candidates:
        if _is_same(candidate, target):
            continue
        score = weighted_cosine_similarity(target_tokens, cache.tokens(candidate), rarity)
        if score >= min_similarity:
            results.append(SimilarArticle(article=candidate, similarity=score))

    results.sort(key=lambda r: -r.similarity)
    logger.debug(
        "Found %d/%d similar articles for %s (threshold=%.2f)",
        len(results), len(candidates), target.msid, min_similarity,
    )
    return results

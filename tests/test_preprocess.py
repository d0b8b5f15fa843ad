"""Tests for article text preprocessing."""

from __future__ import annotations

from datetime import datetime

from pulse.models import Article
from pulse.similarity.preprocess import combine_text, preprocess, remove_stopwords, tokenize


def _article(title: str, lead: str | None = None) -> Article:
    return Article(msid="1", title=title, lead=lead, published_at=datetime(2026, 1, 1))


def test_keeps_capitalized_words_lowercased():
    """Capitalized words are kept and lowercased; stopwords go."""
    tokens = preprocess(_article("Der Bundestag debattiert über Klimaschutz"))
    assert tokens == ["bundestag", "klimaschutz"]


def test_title_and_lead_combined():
    """Title and lead are joined and tokenized together."""
    article = _article("Senat beschließt Haushalt", "Berlin spart bei Schulen")
    assert combine_text(article) == "Senat beschließt Haushalt Berlin spart bei Schulen"
    assert preprocess(article) == ["senat", "haushalt", "berlin", "schulen"]


def test_missing_lead_is_allowed():
    """A missing or blank lead leaves just the title."""
    assert combine_text(_article("Nur Titel", None)) == "Nur Titel"
    assert combine_text(_article("Nur Titel", "   ")) == "Nur Titel"


def test_duplicates_are_kept():
    """Repeated tokens are kept for term frequency."""
    assert preprocess(_article("Berlin Berlin Hamburg")) == ["berlin", "berlin", "hamburg"]


def test_short_words_dropped():
    """Words shorter than three letters are ignored."""
    assert tokenize("Am EU Ende") == ["ende"]


def test_umlauts_are_kept():
    """Words starting with or containing umlauts are tokens."""
    assert tokenize("Bürger wählen Österreich") == ["bürger", "österreich"]


def test_journalism_terms_removed():
    """Generic newsroom vocabulary is dropped."""
    tokens = preprocess(_article("Analyse: Kommentar zur Debatte um Mieten"))
    assert tokens == ["mieten"]


def test_stopwords_case_insensitive():
    """Stopwords match regardless of case."""
    assert remove_stopwords(["Und", "senat", "DIE"]) == ["senat"]


def test_empty_input_yields_no_tokens():
    """Empty text or text without capitals gives no tokens."""
    assert tokenize("") == []
    assert tokenize("   ") == []
    assert preprocess(_article("nur kleine wörter hier")) == []

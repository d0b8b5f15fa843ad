"""Turn article title and lead into a token sequence for similarity scoring.

Only capitalized words of at least three letters are kept. In German this
picks out nouns and proper names, which carry most of the topical signal.
Function words and generic newsroom vocabulary are dropped.
"""

from __future__ import annotations

import re

from pulse.models import Article

_CAPITALIZED_WORD_RE = re.compile(r"\b[A-ZÄÖÜ][a-zA-ZäöüÄÖÜß]{2,}\b")

GERMAN_STOPWORDS = frozenset("""
aber alle allem allen aller alles als also am an ander andere anderem anderen
anderer anderes anderm andern anderr anders auch auf aus bei bin bis bist da
damit dann der den des dem die das daß dass derselbe derselben denselben desselben
demselben dieselbe dieselben dasselbe dazu dein deine deinem deinen deiner
deines denn derer dessen dich dies diese diesem diesen dieser dieses dir
doch dort durch ein eine einem einen einer eines einig einige einigem einigen
einiger einiges einmal er ihn ihm es etwas euer eure eurem euren eurer eures
für gegen gewesen hab habe haben hat hatte hatten hier hin hinter ich mich mir
ihr ihre ihrem ihren ihrer ihres euch im in indem ins ist jede jedem jeden
jeder jedes jene jenem jenen jener jenes jetzt kann kein keine keinem keinen
keiner keines können könnte machen man manche manchem manchen mancher manches
mein meine meinem meinen meiner meines mit muss musste nach nicht nichts noch
nun nur ob oder ohne sehr sein seine seinem seinen seiner seines selbst sich
sie sind so solche solchem solchen solcher solches soll sollte sondern sonst
über um und uns unse unsem unsen unser unses unter viel vom von vor während
war waren warst was weg weil weiter welche welchem welchen welcher welches
wenn wer werde werden wie wieder will wir wird wirst wo wollen wollte würde
würden zu zum zur zwar zwischen
""".split())

# Newsroom vocabulary that shows up across every beat
JOURNALISM_STOPWORDS = frozenset("""
debatte analyse kommentar interview bericht erklärung stellungnahme meinung
kolumne essay reportage nachrichten nachricht update liveticker ticker
überblick hintergrund porträt gastbeitrag leserbrief zusammenfassung
debate analysis statement comment commentary opinion report news
""".split())

STOPWORDS = GERMAN_STOPWORDS | JOURNALISM_STOPWORDS


def combine_text(article: Article) -> str:
    """Join title and lead, skipping blank parts."""
    parts = [p for p in (article.title, article.lead) if p and p.strip()]
    return " ".join(parts)


def tokenize(text: str) -> list[str]:
    if not text or not text.strip():
        return []
    return [word.lower() for word in _CAPITALIZED_WORD_RE.findall(text)]


def remove_stopwords(tokens: list[str]) -> list[str]:
    return [t for t in tokens if t.lower() not in STOPWORDS]


def preprocess(article: Article) -> list[str]:
    """Tokens of an article in order, duplicates kept."""
    return remove_stopwords(tokenize(combine_text(article)))

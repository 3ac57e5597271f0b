from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

_STOPWORDS = frozenset(
    """
    a about above after again all also am an and any are as at be because been
    before being below between both but by can could did do does doing down
    during each few for from further had has have having he her here hers him
    his how i if in into is it its itself just me more most my no nor not now
    of off on once only or other our ours out over own same she should so some
    such than that the their theirs them then there these they this those
    through to too under until up very was we were what when where which while
    who whom why will with would you your yours please tell show give want need
    make get let like
    """.split()
)

_POSITIVE = frozenset(
    "good great excellent awesome love like happy glad nice thanks thank helpful "
    "amazing wonderful fantastic perfect better best easy fast reliable".split()
)
_NEGATIVE = frozenset(
    "bad terrible awful hate broken slow fail failed failing failure error wrong "
    "worse worst crash crashed issue problem bug stuck angry frustrated annoying".split()
)

_MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
)
_DATE_PATTERN = re.compile(
    rf"\b(?:\d{{4}}-\d{{2}}-\d{{2}}|(?:{_MONTHS})\s+\d{{1,2}}(?:,\s*\d{{4}})?|"
    r"today|tomorrow|yesterday|monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    re.IGNORECASE,
)
_VALUE_PATTERN = re.compile(r"\b\d+(?:[.,]\d+)?%?")
_NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b")
_WORD_PATTERN = re.compile(r"[a-z][a-z0-9+#/.-]*", re.IGNORECASE)
_SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]*")
_COMMAND_VERBS = frozenset(
    "build create write fix deploy explain list show find generate make add remove "
    "update run install configure analyze compare summarize review refactor test".split()
)


@dataclass(frozen=True, slots=True)
class Keyword:
    text: str
    count: int


@dataclass(frozen=True, slots=True)
class Sentiment:
    score: int = 0
    positive: tuple[str, ...] = ()
    negative: tuple[str, ...] = ()

    @property
    def is_positive(self) -> bool:
        return self.score > 0

    @property
    def is_negative(self) -> bool:
        return self.score < 0


@dataclass(frozen=True, slots=True)
class LinguisticIntent:
    label: str = "unknown"
    confidence: float = 0.0


@dataclass(slots=True)
class TextAnalysis:
    entities: dict[str, list[str]] = field(default_factory=dict)
    sentiment: Sentiment = field(default_factory=Sentiment)
    keywords: list[Keyword] = field(default_factory=list)
    intent: LinguisticIntent = field(default_factory=LinguisticIntent)
    stats: dict[str, int] = field(default_factory=dict)


class TextAnalyzer(Protocol):
    def analyze(self, text: str) -> TextAnalysis: ...


class KeywordAnalyzer:
    """Deterministic analyzer built on word lists and regular expressions."""

    def __init__(self, keyword_limit: int = 5) -> None:
        self._keyword_limit = keyword_limit

    def analyze(self, text: str) -> TextAnalysis:
        if not isinstance(text, str) or not text.strip():
            return TextAnalysis()

        words = [w.lower().rstrip(".") for w in _WORD_PATTERN.findall(text)]
        sentences = [s for s in _SENTENCE_PATTERN.findall(text) if s.strip()]

        return TextAnalysis(
            entities=self._entities(text),
            sentiment=self._sentiment(words),
            keywords=self._keywords(words),
            intent=self._intent(text, words),
            stats={
                "sentences": len(sentences),
                "words": len(words),
                "characters": len(text),
                **_part_of_speech_counts(words),
            },
        )

    def _entities(self, text: str) -> dict[str, list[str]]:
        names = []
        for match in _NAME_PATTERN.finditer(text):
            name = match.group(0)
            before = text[: match.start()].rstrip()
            # a single capitalised sentence opener is not a name
            if (not before or before[-1] in ".!?") and " " not in name:
                continue
            names.append(name)

        return {
            "names": _unique(names),
            "dates": _unique(m.group(0) for m in _DATE_PATTERN.finditer(text)),
            "values": _unique(m.group(0) for m in _VALUE_PATTERN.finditer(text)),
        }

    def _sentiment(self, words: list[str]) -> Sentiment:
        positive = tuple(w for w in words if w in _POSITIVE)
        negative = tuple(w for w in words if w in _NEGATIVE)
        return Sentiment(score=len(positive) - len(negative), positive=positive, negative=negative)

    def _keywords(self, words: list[str]) -> list[Keyword]:
        counts = Counter(w for w in words if len(w) > 2 and w not in _STOPWORDS)
        return [Keyword(text=w, count=c) for w, c in counts.most_common(self._keyword_limit)]

    def _intent(self, text: str, words: list[str]) -> LinguisticIntent:
        lower = text.strip().lower()
        if "?" in lower or (words and words[0] in {"what", "how", "why", "when", "where", "who"}):
            return LinguisticIntent("question", 0.95)
        if words and words[0] in _COMMAND_VERBS:
            return LinguisticIntent("command", 0.9)
        if any(p in lower for p in ("please", "could you", "can you")):
            return LinguisticIntent("request", 0.85)
        return LinguisticIntent("statement", 0.7)


def _unique(items) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)


_ADJECTIVE_SUFFIXES = ("ous", "ful", "able", "ible", "ive", "less", "ical", "ish")
_VERB_SUFFIXES = ("ing", "ed", "ize", "ise", "ify")


def _part_of_speech_counts(words: list[str]) -> dict[str, int]:
    """Rough suffix and word-list tagging; enough to weight routing features."""
    verbs = nouns = adjectives = 0
    for word in words:
        if word in _STOPWORDS or len(word) < 3:
            continue
        if word in _COMMAND_VERBS or word.endswith(_VERB_SUFFIXES):
            verbs += 1
        elif word in _POSITIVE or word in _NEGATIVE or word.endswith(_ADJECTIVE_SUFFIXES):
            adjectives += 1
        else:
            nouns += 1
    return {"verbs": verbs, "nouns": nouns, "adjectives": adjectives}

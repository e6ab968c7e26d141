"""
Coach conversation sentiment and topic detection.

The KPI calculator takes any ``SentimentAnalyzer``; the default is a keyword
heuristic over the user's own messages of the day.
"""

from dataclasses import dataclass, field
from typing import Protocol

MAX_TOPICS = 4

POSITIVE_KEYWORDS = ("gut", "super", "toll", "perfekt", "motiviert", "stark", "erfolg", "schaffe")
NEGATIVE_KEYWORDS = ("schlecht", "müde", "stress", "schwer", "problem", "schwierig", "unmotiviert")

# Map order is the reporting order
TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sleep": ("schlaf", "schlafen", "aufwachen", "eingeschlafen", "nachts"),
    "nutrition": ("essen", "mahlzeit", "kalorien", "protein", "kohlenhydrate", "ernährung", "hunger"),
    "training": ("training", "workout", "übung", "reps", "satz", "sätze", "trainiert"),
    "stress": ("stress", "gestresst", "druck", "anstrengend", "hektisch"),
    "motivation": ("motivation", "motiviert", "unmotiviert", "lust", "antrieb"),
    "weight": ("gewicht", "waage", "abnehmen", "zunehmen", "kilo"),
    "exhaustion": ("müde", "erschöpft", "kaputt", "energielos", "schlapp"),
    "goals": ("ziel", "ziele", "fortschritt", "erfolg", "plan"),
}


@dataclass
class SentimentResult:
    sentiment: str = "neutral"  # positive, negative, neutral
    motivation_level: str = "unknown"  # high, moderate, low, unknown
    topics: list[str] = field(default_factory=list)
    positive_hits: int = 0
    negative_hits: int = 0


class SentimentAnalyzer(Protocol):
    def analyze(self, messages: list[str]) -> SentimentResult: ...


class KeywordSentimentAnalyzer:
    """Counts fixed German keyword hits per message."""

    def __init__(
        self,
        positive: tuple[str, ...] = POSITIVE_KEYWORDS,
        negative: tuple[str, ...] = NEGATIVE_KEYWORDS,
        topics: dict[str, tuple[str, ...]] = TOPIC_KEYWORDS,
        max_topics: int = MAX_TOPICS,
    ):
        self.positive = positive
        self.negative = negative
        self.topics = topics
        self.max_topics = max_topics

    def analyze(self, messages: list[str]) -> SentimentResult:
        texts = [m.lower() for m in messages if m]
        if not texts:
            return SentimentResult()

        pos = sum(1 for text in texts for word in self.positive if word in text)
        neg = sum(1 for text in texts for word in self.negative if word in text)

        if pos > neg:
            sentiment, motivation = "positive", "high"
        elif neg > pos:
            sentiment, motivation = "negative", "low"
        else:
            sentiment, motivation = "neutral", "moderate"

        return SentimentResult(
            sentiment=sentiment,
            motivation_level=motivation,
            topics=self.extract_topics(texts),
            positive_hits=pos,
            negative_hits=neg,
        )

    def extract_topics(self, texts: list[str]) -> list[str]:
        texts = [t.lower() for t in texts if t]
        found = [
            topic
            for topic, words in self.topics.items()
            if any(word in text for text in texts for word in words)
        ]
        return found[: self.max_topics]

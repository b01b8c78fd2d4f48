"""Emotion port: abstract interface for text emotion classifiers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmotionScores:
    """Named emotion scores, each in [0, 1]."""

    joy: float = 0.0
    sadness: float = 0.0
    fear: float = 0.0
    surprise: float = 0.0
    anger: float = 0.0

    @classmethod
    def from_labels(cls, items: list[dict]) -> "EmotionScores":
        """Build from classifier output shaped like ``[{"label": ..., "score": ...}]``."""
        scores = {item["label"]: float(item["score"]) for item in items}
        return cls(
            joy=scores.get("joy", 0.0),
            sadness=scores.get("sadness", 0.0),
            fear=scores.get("fear", 0.0),
            surprise=scores.get("surprise", 0.0),
            anger=scores.get("anger", 0.0),
        )


class EmotionPort(ABC):
    """Abstraction for the emotion classifier."""

    @abstractmethod
    async def classify(self, text: str) -> EmotionScores:
        """Score ``text``. Implementations return all-zero scores on failure."""
        ...

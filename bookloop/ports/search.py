"""Similarity search port: the contract of the external ``hybrid_search`` function."""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class SearchMatch:
    """A single book returned by the similarity function."""

    id: int
    title: str
    similarity: float
    author: str | None = None
    image_url: str | None = None
    average_rating: float | None = None
    emotion_joy: float | None = None

    @property
    def match_percent(self) -> int:
        """Similarity as a whole percentage, halves rounded up."""
        return math.floor(self.similarity * 100 + 0.5)


class SimilaritySearchPort(ABC):
    """Ranks catalog books against a query embedding."""

    @abstractmethod
    async def hybrid_search(
        self,
        query_embedding: list[float],
        min_joy: float = 0.0,
        min_sadness: float = 0.0,
        match_threshold: float = 0.3,
        match_count: int = 10,
    ) -> list[SearchMatch]:
        """Return at most ``match_count`` books with ``similarity >= match_threshold``
        and emotion scores at or above the minimums, most similar first."""
        ...

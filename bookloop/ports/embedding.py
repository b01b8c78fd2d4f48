"""Embedding port: abstract interface for text-to-vector providers."""

from abc import ABC, abstractmethod


class EmbeddingPort(ABC):
    """Abstraction over the service that turns free text into a vector."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return a fixed-length embedding for ``text``.

        Raises on provider failure; callers decide how to degrade.
        """
        ...

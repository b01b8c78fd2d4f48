import hashlib
import logging
import math
import re

from bookloop.ports.embedding import EmbeddingPort

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[a-z0-9']+")


class MockEmbeddingAdapter(EmbeddingPort):
    """
    Deterministic embedding adapter for development and tests.

    Hashes each lower-cased word into one of ``dimensions`` buckets and
    L2-normalizes the counts, so texts sharing vocabulary score a positive
    cosine similarity and identical texts score 1.0.
    """

    def __init__(self, dimensions: int = 64) -> None:
        self._dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for word in _WORD.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimensions] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm:
            vector = [v / norm for v in vector]
        logger.debug("MockEmbedding: %d chars -> %d dims", len(text), self._dimensions)
        return vector

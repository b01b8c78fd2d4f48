import logging

import httpx

from bookloop.domain.errors import DependencyFailure
from bookloop.ports.embedding import EmbeddingPort

logger = logging.getLogger(__name__)


class OllamaEmbeddingAdapter(EmbeddingPort):
    """Embedding adapter using a local Ollama instance."""

    def __init__(self, base_url: str, model: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model

    async def embed(self, text: str) -> list[float]:
        payload = {"model": self._model, "input": text}
        async with httpx.AsyncClient(timeout=60.0) as client:
            logger.info("Ollama embedding request: model=%s, %d chars", self._model, len(text))
            try:
                resp = await client.post(f"{self._base_url}/api/embed", json=payload)
                resp.raise_for_status()
                vector = resp.json()["embeddings"][0]
            except (httpx.HTTPError, KeyError, IndexError) as exc:
                raise DependencyFailure(f"Embedding provider failed: {exc}") from exc
        logger.debug("Ollama embedding size: %d", len(vector))
        return vector

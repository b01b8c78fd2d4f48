import logging

from openai import AsyncOpenAI, OpenAIError

from bookloop.domain.errors import DependencyFailure
from bookloop.ports.embedding import EmbeddingPort

logger = logging.getLogger(__name__)


class OpenAIEmbeddingAdapter(EmbeddingPort):
    """Embedding adapter using the OpenAI embeddings API."""

    def __init__(self, api_key: str, model: str) -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    async def embed(self, text: str) -> list[float]:
        logger.info("OpenAI embedding request: model=%s, %d chars", self._model, len(text))
        try:
            resp = await self._client.embeddings.create(model=self._model, input=text)
        except OpenAIError as exc:
            raise DependencyFailure(f"Embedding provider failed: {exc}") from exc
        vector = resp.data[0].embedding
        logger.debug("OpenAI embedding size: %d", len(vector))
        return vector

"""Builds provider adapters from settings."""

import logging
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookloop.config import (
    EmbeddingProviderKind,
    EmotionProviderKind,
    SearchBackend,
    settings,
)
from bookloop.ports.embedding import EmbeddingPort
from bookloop.ports.emotion import EmotionPort
from bookloop.ports.search import SimilaritySearchPort

logger = logging.getLogger(__name__)


@lru_cache
def get_embedding_adapter() -> EmbeddingPort:
    kind = settings.embedding_provider
    logger.info("Embedding provider: %s", kind.value)
    if kind is EmbeddingProviderKind.OPENAI:
        from bookloop.adapters.embedding.openai_adapter import OpenAIEmbeddingAdapter

        return OpenAIEmbeddingAdapter(settings.openai_api_key, settings.openai_embedding_model)
    if kind is EmbeddingProviderKind.OLLAMA:
        from bookloop.adapters.embedding.ollama import OllamaEmbeddingAdapter

        return OllamaEmbeddingAdapter(settings.ollama_base_url, settings.ollama_embedding_model)

    from bookloop.adapters.embedding.mock import MockEmbeddingAdapter

    return MockEmbeddingAdapter()


@lru_cache
def get_emotion_adapter() -> EmotionPort:
    kind = settings.emotion_provider
    logger.info("Emotion provider: %s", kind.value)
    if kind is EmotionProviderKind.HUGGINGFACE:
        from bookloop.adapters.emotion.huggingface import HuggingFaceEmotionAdapter

        return HuggingFaceEmotionAdapter(settings.huggingface_token, settings.huggingface_emotion_model)

    from bookloop.adapters.emotion.mock import MockEmotionAdapter

    return MockEmotionAdapter()


def get_similarity_adapter(
    session_factory: async_sessionmaker[AsyncSession],
) -> SimilaritySearchPort:
    if settings.search_backend is SearchBackend.POSTGRES:
        from bookloop.adapters.search.postgres import PostgresSimilarityAdapter

        return PostgresSimilarityAdapter(session_factory)

    from bookloop.adapters.search.local import LocalSimilarityAdapter

    return LocalSimilarityAdapter(session_factory)

import json
import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookloop.domain.errors import DependencyFailure
from bookloop.ports.search import SearchMatch, SimilaritySearchPort

logger = logging.getLogger(__name__)

_HYBRID_SEARCH = text(
    "SELECT * FROM hybrid_search("
    "query_embedding => CAST(:query_embedding AS vector), "
    "min_joy => :min_joy, "
    "min_sadness => :min_sadness, "
    "match_threshold => :match_threshold, "
    "match_count => :match_count)"
)

_MATCH_FIELDS = {"id", "title", "similarity", "author", "image_url", "average_rating", "emotion_joy"}


class PostgresSimilarityAdapter(SimilaritySearchPort):
    """Calls the ``hybrid_search`` SQL function installed alongside pgvector."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def hybrid_search(
        self,
        query_embedding: list[float],
        min_joy: float = 0.0,
        min_sadness: float = 0.0,
        match_threshold: float = 0.3,
        match_count: int = 10,
    ) -> list[SearchMatch]:
        params = {
            # pgvector accepts the JSON array literal as its text form.
            "query_embedding": json.dumps(query_embedding),
            "min_joy": min_joy,
            "min_sadness": min_sadness,
            "match_threshold": match_threshold,
            "match_count": match_count,
        }
        try:
            async with self._session_factory() as session:
                result = await session.execute(_HYBRID_SEARCH, params)
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise DependencyFailure(f"Similarity search failed: {exc}") from exc

        logger.info("hybrid_search returned %d rows (threshold=%.2f)", len(rows), match_threshold)
        return [
            SearchMatch(**{k: v for k, v in row.items() if k in _MATCH_FIELDS})
            for row in rows
        ]

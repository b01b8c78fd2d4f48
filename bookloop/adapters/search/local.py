import logging
import math

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookloop.domain.enums import PUBLISHED_STATUSES
from bookloop.domain.errors import DependencyFailure
from bookloop.domain.models import Book
from bookloop.ports.search import SearchMatch, SimilaritySearchPort

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 when either is all zeros."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if not norm_a or not norm_b:
        return 0.0
    return dot / (norm_a * norm_b)


class LocalSimilarityAdapter(SimilaritySearchPort):
    """
    In-process equivalent of the ``hybrid_search`` SQL function.

    Scans published books that carry an embedding and ranks them by cosine
    similarity. Intended for SQLite development databases and tests.
    """

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
        stmt = select(Book).where(
            Book.status.in_(list(PUBLISHED_STATUSES)),
            Book.embedding.is_not(None),
            func.coalesce(Book.emotion_joy, 0.0) >= min_joy,
            func.coalesce(Book.emotion_sadness, 0.0) >= min_sadness,
        )
        try:
            async with self._session_factory() as session:
                books = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise DependencyFailure(f"Similarity search failed: {exc}") from exc

        matches: list[SearchMatch] = []
        for book in books:
            if not book.embedding or len(book.embedding) != len(query_embedding):
                continue
            similarity = cosine_similarity(query_embedding, book.embedding)
            if similarity >= match_threshold:
                matches.append(
                    SearchMatch(
                        id=book.id,
                        title=book.title,
                        similarity=similarity,
                        author=book.author,
                        image_url=book.image_url,
                        average_rating=book.average_rating,
                        emotion_joy=book.emotion_joy,
                    )
                )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        logger.debug("Local hybrid_search: %d candidates, %d matches", len(books), len(matches))
        return matches[:match_count]

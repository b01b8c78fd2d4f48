"""Recommendation engine: vibe search, history/wishlist personalization and trending."""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookloop.domain.enums import PUBLISHED_STATUSES
from bookloop.domain.errors import DependencyFailure
from bookloop.domain.models import Book
from bookloop.ports.embedding import EmbeddingPort
from bookloop.ports.search import SearchMatch, SimilaritySearchPort
from bookloop.repositories import BookRepository, TransactionRepository, WishlistRepository
from bookloop.text.templates import render_search_query, render_seed_text

logger = logging.getLogger(__name__)


@dataclass
class EmotionFilter:
    joy: float = 0.0
    sadness: float = 0.0


@dataclass
class PersonalizedResult:
    """Recommendations plus the title of the book that seeded them."""

    source_title: str | None = None
    recommendations: list[SearchMatch] = field(default_factory=list)


@dataclass
class HomeFeed:
    trending: list[Book] = field(default_factory=list)
    history: PersonalizedResult = field(default_factory=PersonalizedResult)
    wishlist: PersonalizedResult = field(default_factory=PersonalizedResult)


class RecommendationEngine:
    """
    Four independent, read-only strategies.

    Each strategy opens its own session from ``session_factory`` so they can
    run concurrently. Provider and storage failures degrade to empty results and are
    logged rather than raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        embedder: EmbeddingPort,
        search: SimilaritySearchPort,
        search_threshold: float = 0.3,
        personal_threshold: float = 0.2,
        match_count: int = 10,
        trending_window: int = 100,
    ) -> None:
        self._session_factory = session_factory
        self._embedder = embedder
        self._search = search
        self._search_threshold = search_threshold
        self._personal_threshold = personal_threshold
        self._match_count = match_count
        self._trending_window = trending_window

    async def hybrid_search(
        self, query: str, emotion_filter: EmotionFilter | None = None
    ) -> list[SearchMatch]:
        """Semantic search with optional minimum joy/sadness scores."""
        emotion_filter = emotion_filter or EmotionFilter()
        try:
            embedding = await self._embedder.embed(render_search_query(query))
            matches = await self._search.hybrid_search(
                embedding,
                min_joy=emotion_filter.joy,
                min_sadness=emotion_filter.sadness,
                match_threshold=self._search_threshold,
                match_count=self._match_count,
            )
        except DependencyFailure:
            logger.exception("Search failed for query %r", query)
            return []
        logger.info("Search %r -> %d matches", query, len(matches))
        return matches

    async def history_based(self, user_id: UUID) -> PersonalizedResult:
        """Seeded by the most recent book the user actually borrowed."""
        try:
            async with self._session_factory() as session:
                transaction = await TransactionRepository(session).latest_engaged(user_id)
                seed = transaction.book if transaction else None
        except SQLAlchemyError:
            logger.exception("history seed lookup failed for user %s", user_id)
            return PersonalizedResult()
        return await self._similar_to(seed, "history")

    async def wishlist_based(self, user_id: UUID) -> PersonalizedResult:
        """Seeded by the most recently wishlisted book."""
        try:
            async with self._session_factory() as session:
                entry = await WishlistRepository(session).latest(user_id)
                seed = entry.book if entry else None
        except SQLAlchemyError:
            logger.exception("wishlist seed lookup failed for user %s", user_id)
            return PersonalizedResult()
        return await self._similar_to(seed, "wishlist")

    async def trending(self) -> list[Book]:
        """Most borrowed books across the latest transactions, ratings as fallback."""
        try:
            async with self._session_factory() as session:
                return await self._trending(session)
        except SQLAlchemyError:
            logger.exception("trending lookup failed")
            return []

    async def _trending(self, session: AsyncSession) -> list[Book]:
        books = BookRepository(session)
        recent = await TransactionRepository(session).recent(self._trending_window)
        if not recent:
            return await books.most_rated(self._match_count)

        # Counter.most_common is a stable sort, so ties keep first-seen order.
        counts = Counter(t.book_id for t in recent)
        popular_ids = [book_id for book_id, _ in counts.most_common(self._match_count)]

        fetched = await books.list_by_ids(popular_ids, PUBLISHED_STATUSES)
        if not fetched:
            return await books.most_rated(self._match_count)

        rank = {book_id: i for i, book_id in enumerate(popular_ids)}
        return sorted(fetched, key=lambda b: rank[b.id])

    async def home_feed(self, user_id: UUID | None) -> HomeFeed:
        """Run trending, history and wishlist concurrently; each fails on its own."""
        if user_id is None:
            (trending,) = await asyncio.gather(self.trending(), return_exceptions=True)
            return HomeFeed(trending=self._or_default(trending, [], "trending"))

        trending, history, wishlist = await asyncio.gather(
            self.trending(),
            self.history_based(user_id),
            self.wishlist_based(user_id),
            return_exceptions=True,
        )
        return HomeFeed(
            trending=self._or_default(trending, [], "trending"),
            history=self._or_default(history, PersonalizedResult(), "history"),
            wishlist=self._or_default(wishlist, PersonalizedResult(), "wishlist"),
        )

    async def _similar_to(self, seed: Book | None, strategy: str) -> PersonalizedResult:
        if seed is None:
            return PersonalizedResult()
        try:
            embedding = await self._embedder.embed(render_seed_text(seed.title, seed.description))
            matches = await self._search.hybrid_search(
                embedding,
                match_threshold=self._personal_threshold,
                match_count=self._match_count,
            )
        except DependencyFailure:
            logger.exception("%s recommendations failed for seed book %d", strategy, seed.id)
            return PersonalizedResult()

        recommendations = [m for m in matches if m.id != seed.id]
        logger.info("%s recommendations from %r: %d", strategy, seed.title, len(recommendations))
        return PersonalizedResult(source_title=seed.title, recommendations=recommendations)

    @staticmethod
    def _or_default(result, default, strategy: str):
        if isinstance(result, BaseException):
            logger.error("%s strategy failed: %r", strategy, result, exc_info=result)
            return default
        return result

"""FastAPI dependencies wiring sessions, adapters and services together."""

from collections.abc import AsyncGenerator
from datetime import timedelta

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookloop.adapters.factory import (
    get_embedding_adapter,
    get_emotion_adapter,
    get_similarity_adapter,
)
from bookloop.config import settings
from bookloop.database import get_session_factory
from bookloop.ports.embedding import EmbeddingPort
from bookloop.ports.emotion import EmotionPort
from bookloop.ports.search import SimilaritySearchPort
from bookloop.services.catalog import CatalogService
from bookloop.services.recommendations import RecommendationEngine
from bookloop.services.review import ReviewService
from bookloop.services.transactions import TransactionStateMachine
from bookloop.services.wishlist import WishlistService


async def get_session(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    async with factory() as session:
        yield session


def get_similarity_search(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SimilaritySearchPort:
    return get_similarity_adapter(factory)


def get_state_machine(session: AsyncSession = Depends(get_session)) -> TransactionStateMachine:
    return TransactionStateMachine(session, loan_period=timedelta(days=settings.loan_period_days))


def get_catalog(
    session: AsyncSession = Depends(get_session),
    embedder: EmbeddingPort = Depends(get_embedding_adapter),
    emotions: EmotionPort = Depends(get_emotion_adapter),
) -> CatalogService:
    return CatalogService(session, embedder, emotions)


def get_wishlist_service(session: AsyncSession = Depends(get_session)) -> WishlistService:
    return WishlistService(session)


def get_review_service(session: AsyncSession = Depends(get_session)) -> ReviewService:
    return ReviewService(session)


def get_recommendation_engine(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    embedder: EmbeddingPort = Depends(get_embedding_adapter),
    search: SimilaritySearchPort = Depends(get_similarity_search),
) -> RecommendationEngine:
    return RecommendationEngine(
        session_factory=factory,
        embedder=embedder,
        search=search,
        search_threshold=settings.search_match_threshold,
        personal_threshold=settings.personal_match_threshold,
        match_count=settings.match_count,
        trending_window=settings.trending_window,
    )

"""Recommendation strategies over the local similarity backend."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from bookloop.adapters.search.local import LocalSimilarityAdapter
from bookloop.domain.enums import BookStatus, TransactionStatus
from bookloop.domain.models import Wishlist
from bookloop.ports.search import SearchMatch
from bookloop.services.recommendations import EmotionFilter, PersonalizedResult, RecommendationEngine

from tests.conftest import NOW, FailingEmbedder

DESERT = "Desert planet politics, spice trade and a prophecy of rebellion"


@pytest.fixture
def engine(session_factory, embedder, similarity) -> RecommendationEngine:
    return RecommendationEngine(session_factory, embedder, similarity)


def ids(items) -> list[int]:
    return [item.id for item in items]


# ── Trending ───────────────────────────────────────


async def borrow_pattern(add_transaction, books, borrower):
    """Transactions for the given books, oldest first."""
    for offset, book in enumerate(books):
        await add_transaction(
            book, borrower, status=TransactionStatus.RETURNED, created_at=NOW + timedelta(minutes=offset)
        )


@pytest.mark.asyncio
async def test_trending_ranks_by_borrow_count(engine, add_book, add_transaction, borrower):
    one, two, three = [await add_book(title=t) for t in ("One", "Two", "Three")]
    await borrow_pattern(add_transaction, [one, one, one, two, two, three], borrower)

    assert ids(await engine.trending()) == [one.id, two.id, three.id]


@pytest.mark.asyncio
async def test_trending_drops_unpublished_without_substitution(engine, add_book, add_transaction, borrower):
    one, two = await add_book(title="One"), await add_book(title="Two")
    three = await add_book(title="Three", status=BookStatus.REJECTED)
    await add_book(title="Popular", ratings_count=5000)
    await borrow_pattern(add_transaction, [one, one, one, two, two, three], borrower)

    assert ids(await engine.trending()) == [one.id, two.id]


@pytest.mark.asyncio
async def test_trending_keeps_rented_books(engine, add_book, add_transaction, borrower):
    rented = await add_book(title="Out", status=BookStatus.RENTED)
    await borrow_pattern(add_transaction, [rented], borrower)
    assert ids(await engine.trending()) == [rented.id]


@pytest.mark.asyncio
async def test_trending_falls_back_to_ratings(engine, add_book):
    few = await add_book(title="Few", ratings_count=3)
    many = await add_book(title="Many", ratings_count=900)
    await add_book(title="Hidden", status=BookStatus.PENDING_APPROVAL, ratings_count=10_000)
    unrated = await add_book(title="Unrated", ratings_count=None)

    assert ids(await engine.trending()) == [many.id, few.id, unrated.id]


@pytest.mark.asyncio
async def test_trending_falls_back_when_every_trending_book_is_gone(engine, add_book, add_transaction, borrower):
    gone = await add_book(title="Gone", status=BookStatus.REJECTED)
    rated = await add_book(title="Rated", ratings_count=12)
    await borrow_pattern(add_transaction, [gone, gone], borrower)

    assert ids(await engine.trending()) == [rated.id]


@pytest.mark.asyncio
async def test_trending_only_counts_recent_window(session_factory, embedder, similarity, add_book, add_transaction, borrower):
    engine = RecommendationEngine(session_factory, embedder, similarity, trending_window=2)
    old, new = await add_book(title="Old"), await add_book(title="New")
    await borrow_pattern(add_transaction, [old, old, old, new, new], borrower)

    assert ids(await engine.trending()) == [new.id]


# ── Hybrid search ──────────────────────────────────


@pytest.mark.asyncio
async def test_hybrid_search_ranks_matches(engine, add_book):
    match = await add_book(title="Dune", description=DESERT, embed=True)
    await add_book(title="Draft", description=DESERT, embed=True, status=BookStatus.PENDING_APPROVAL)

    results = await engine.hybrid_search(DESERT)

    assert ids(results) == [match.id]
    assert results[0].match_percent == 100


@pytest.mark.asyncio
async def test_hybrid_search_emotion_filter(engine, add_book):
    happy = await add_book(title="Sunny", description="A story of the sea", embed=True, emotion_joy=0.9)
    await add_book(title="Grey", description="A story of the sea", embed=True, emotion_joy=0.1)

    results = await engine.hybrid_search("A story of the sea", EmotionFilter(joy=0.5))

    assert ids(results) == [happy.id]


@pytest.mark.asyncio
async def test_hybrid_search_degrades_on_provider_failure(session_factory, similarity, add_book):
    await add_book(description=DESERT, embed=True)
    engine = RecommendationEngine(session_factory, FailingEmbedder(), similarity)
    assert await engine.hybrid_search(DESERT) == []


def test_match_percent_rounds_halves_up():
    assert SearchMatch(id=1, title="x", similarity=0.875).match_percent == 88
    assert SearchMatch(id=1, title="x", similarity=0.874).match_percent == 87
    assert SearchMatch(id=1, title="x", similarity=0.3).match_percent == 30


# ── Personalized ───────────────────────────────────


@pytest.mark.asyncio
async def test_history_excludes_seed(engine, add_book, add_transaction, borrower):
    seed = await add_book(title="Dune", description=DESERT, embed=True)
    sequel = await add_book(title="Children of Dune", description=DESERT, embed=True)
    await add_transaction(seed, borrower, status=TransactionStatus.RETURNED, created_at=NOW)

    result = await engine.history_based(borrower.user_id)

    assert result.source_title == "Dune"
    assert sequel.id in ids(result.recommendations)
    assert seed.id not in ids(result.recommendations)


@pytest.mark.asyncio
async def test_history_ignores_pending_and_rejected_requests(engine, add_book, add_transaction, borrower):
    seed = await add_book(title="Dune", description=DESERT, embed=True)
    await add_transaction(seed, borrower, status=TransactionStatus.PENDING)
    await add_transaction(seed, borrower, status=TransactionStatus.REJECTED)

    assert await engine.history_based(borrower.user_id) == PersonalizedResult()


@pytest.mark.asyncio
async def test_history_uses_latest_borrow(engine, add_book, add_transaction, borrower):
    first = await add_book(title="Emma", description="Matchmaking in a small English village", embed=True)
    latest = await add_book(title="Dune", description=DESERT, embed=True)
    await add_transaction(first, borrower, status=TransactionStatus.RETURNED, created_at=NOW)
    await add_transaction(latest, borrower, status=TransactionStatus.ACTIVE, created_at=NOW + timedelta(days=1))

    result = await engine.history_based(borrower.user_id)
    assert result.source_title == "Dune"


@pytest.mark.asyncio
async def test_wishlist_excludes_seed(engine, session, add_book, borrower):
    seed = await add_book(title="Dune", description=DESERT, embed=True)
    sibling = await add_book(title="Dune Messiah", description=DESERT, embed=True)
    session.add(Wishlist(user_id=borrower.user_id, book_id=seed.id))
    await session.commit()

    result = await engine.wishlist_based(borrower.user_id)

    assert result.source_title == "Dune"
    assert ids(result.recommendations) == [sibling.id]


@pytest.mark.asyncio
async def test_no_seed_returns_empty(engine, borrower):
    assert await engine.history_based(borrower.user_id) == PersonalizedResult()
    assert await engine.wishlist_based(borrower.user_id) == PersonalizedResult()


@pytest.mark.asyncio
async def test_personalized_degrades_on_provider_failure(session_factory, similarity, add_book, add_transaction, borrower):
    seed = await add_book(title="Dune", description=DESERT, embed=True)
    await add_transaction(seed, borrower, status=TransactionStatus.RETURNED)
    engine = RecommendationEngine(session_factory, FailingEmbedder(), similarity)

    result = await engine.history_based(borrower.user_id)
    assert result.recommendations == []


# ── Home feed ──────────────────────────────────────


@pytest.mark.asyncio
async def test_home_feed_isolates_failing_strategy(engine, add_book, add_transaction, borrower, monkeypatch):
    book = await add_book(title="One", description=DESERT, embed=True)
    await add_transaction(book, borrower, status=TransactionStatus.RETURNED)

    async def broken(user_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine, "history_based", broken)

    feed = await engine.home_feed(borrower.user_id)

    assert ids(feed.trending) == [book.id]
    assert feed.history == PersonalizedResult()
    assert feed.wishlist == PersonalizedResult()


@pytest.mark.asyncio
async def test_home_feed_anonymous_only_trending(engine, add_book):
    book = await add_book(ratings_count=4)
    feed = await engine.home_feed(None)
    assert ids(feed.trending) == [book.id]
    assert feed.history.source_title is None


# ── Storage failures ───────────────────────────────


@pytest.fixture
async def broken_engine(tmp_path, embedder):
    """An engine whose database has no tables, so every read fails."""
    db = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    factory = async_sessionmaker(db, expire_on_commit=False)
    yield RecommendationEngine(factory, embedder, LocalSimilarityAdapter(factory))
    await db.dispose()


@pytest.mark.asyncio
async def test_strategies_degrade_on_storage_failure(broken_engine, borrower):
    assert await broken_engine.trending() == []
    assert await broken_engine.history_based(borrower.user_id) == PersonalizedResult()
    assert await broken_engine.wishlist_based(borrower.user_id) == PersonalizedResult()
    assert await broken_engine.hybrid_search(DESERT) == []


@pytest.mark.asyncio
async def test_home_feed_survives_storage_failure(broken_engine, borrower):
    feed = await broken_engine.home_feed(borrower.user_id)
    assert feed.trending == []
    assert feed.history == PersonalizedResult()
    assert feed.wishlist == PersonalizedResult()

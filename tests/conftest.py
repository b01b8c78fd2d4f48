import os
from collections.abc import AsyncGenerator
from datetime import datetime
from uuid import uuid4

# Must be set before bookloop is imported: the engine is built at import time.
os.environ.setdefault("BOOKLOOP_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("BOOKLOOP_CREATE_TABLES", "false")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bookloop.adapters.embedding.mock import MockEmbeddingAdapter
from bookloop.adapters.emotion.mock import MockEmotionAdapter
from bookloop.adapters.search.local import LocalSimilarityAdapter
from bookloop.domain.caller import Caller
from bookloop.domain.enums import BookStatus, Role, TransactionStatus
from bookloop.domain.errors import DependencyFailure
from bookloop.domain.models import Base, Book, Transaction
from bookloop.ports.embedding import EmbeddingPort

NOW = datetime(2026, 3, 1, 12, 0, 0)


class FailingEmbedder(EmbeddingPort):
    async def embed(self, text: str) -> list[float]:
        raise DependencyFailure("embedding provider down")


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh file-backed SQLite database per test (concurrent sessions need a real file)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookloop.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as s:
        yield s


@pytest.fixture
def borrower() -> Caller:
    return Caller(user_id=uuid4())


@pytest.fixture
def other_borrower() -> Caller:
    return Caller(user_id=uuid4())


@pytest.fixture
def admin() -> Caller:
    return Caller(user_id=uuid4(), role=Role.ADMIN)


@pytest.fixture
def embedder() -> MockEmbeddingAdapter:
    return MockEmbeddingAdapter()


@pytest.fixture
def emotions() -> MockEmotionAdapter:
    return MockEmotionAdapter()


@pytest.fixture
def similarity(session_factory) -> LocalSimilarityAdapter:
    return LocalSimilarityAdapter(session_factory)


@pytest.fixture
def add_book(session, embedder):
    """Insert a book directly; ``embed=True`` stores the mock vector of its description."""

    async def _add(
        title: str = "Dune",
        status: BookStatus = BookStatus.AVAILABLE,
        embed: bool = False,
        **fields,
    ) -> Book:
        fields.setdefault("author", "Frank Herbert")
        fields.setdefault("description", f"{title} is a novel.")
        if embed:
            fields["embedding"] = await embedder.embed(fields["description"])
        book = Book(title=title, status=status, **fields)
        session.add(book)
        await session.commit()
        return book

    return _add


@pytest.fixture
def add_transaction(session):
    """Insert a transaction row in any status, bypassing the workflow."""

    async def _add(
        book: Book,
        caller: Caller,
        status: TransactionStatus = TransactionStatus.PENDING,
        **fields,
    ) -> Transaction:
        transaction = Transaction(
            book_id=book.id,
            user_id=caller.user_id,
            status=status,
            extension_requested=fields.pop("extension_requested", False),
            **fields,
        )
        session.add(transaction)
        await session.commit()
        return transaction

    return _add

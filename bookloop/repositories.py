"""Async data access for books, transactions, wishlists and reviews.

Every write commits on its own. Multi-step operations in the services are
therefore sequences of independent storage transactions, never one atomic unit.
"""

from collections.abc import Iterable, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bookloop.domain.enums import (
    ENGAGED_STATUSES,
    HELD_STATUSES,
    OPEN_STATUSES,
    PUBLISHED_STATUSES,
    BookStatus,
    TransactionStatus,
)
from bookloop.domain.models import Book, Review, Transaction, Wishlist


class BookRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, book_id: int) -> Book | None:
        return await self._session.get(Book, book_id, populate_existing=True)

    async def add(self, book: Book) -> Book:
        self._session.add(book)
        await self._session.commit()
        return book

    async def save(self, book: Book) -> Book:
        await self._session.commit()
        return book

    async def delete(self, book: Book) -> None:
        await self._session.delete(book)
        await self._session.commit()

    async def set_status(self, book_id: int, status: BookStatus) -> None:
        await self._session.execute(
            update(Book)
            .where(Book.id == book_id)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()

    async def transition(
        self, book_id: int, from_statuses: Iterable[BookStatus], to_status: BookStatus
    ) -> Book | None:
        """Conditionally move a book between statuses; None when the guard fails."""
        result = await self._session.execute(
            update(Book)
            .where(Book.id == book_id, Book.status.in_(list(from_statuses)))
            .values(status=to_status)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        if result.rowcount == 0:
            return None
        return await self.get(book_id)

    async def search(
        self,
        query: str | None = None,
        category: str | None = None,
        statuses: Iterable[BookStatus] = PUBLISHED_STATUSES,
        order_by: Sequence[Any] = (),
    ) -> list[Book]:
        stmt = select(Book).where(Book.status.in_(list(statuses)))
        if query and query.strip():
            pattern = f"%{query.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(Book.title).like(pattern), func.lower(Book.author).like(pattern))
            )
        if category:
            stmt = stmt.where(Book.broad_category == category)
        stmt = stmt.order_by(*order_by) if order_by else stmt.order_by(Book.created_at.desc())
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_ids(self, book_ids: Sequence[int], statuses: Iterable[BookStatus]) -> list[Book]:
        """Fetch order is unspecified; callers re-sort."""
        if not book_ids:
            return []
        stmt = select(Book).where(Book.id.in_(book_ids), Book.status.in_(list(statuses)))
        return list((await self._session.execute(stmt)).scalars().all())

    async def most_rated(self, limit: int, statuses: Iterable[BookStatus] = PUBLISHED_STATUSES) -> list[Book]:
        stmt = (
            select(Book)
            .where(Book.status.in_(list(statuses)))
            .order_by(func.coalesce(Book.ratings_count, 0).desc(), Book.id)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_owner(self, owner_id: UUID) -> list[Book]:
        stmt = select(Book).where(Book.owner_id == owner_id).order_by(Book.created_at.desc(), Book.id.desc())
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_status(self, status: BookStatus) -> list[Book]:
        stmt = select(Book).where(Book.status == status).order_by(Book.created_at, Book.id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_excluding_status(self, status: BookStatus) -> list[Book]:
        stmt = select(Book).where(Book.status != status)
        return list((await self._session.execute(stmt)).scalars().all())


class TransactionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, transaction_id: int) -> Transaction | None:
        return await self._session.get(Transaction, transaction_id, populate_existing=True)

    async def add(self, transaction: Transaction) -> Transaction:
        self._session.add(transaction)
        await self._session.commit()
        return await self.get(transaction.id)

    async def delete_pending(self, transaction_id: int, user_id: UUID) -> bool:
        """Delete a pending row owned by ``user_id``; False when nothing matched."""
        result = await self._session.execute(
            delete(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount > 0

    async def transition(
        self,
        transaction_id: int,
        from_statuses: Iterable[TransactionStatus],
        *criteria: ColumnElement[bool],
        **values: Any,
    ) -> Transaction | None:
        """
        Compare-and-set update.

        Applies ``values`` only if the row is still in one of ``from_statuses``
        and matches every extra criterion. Returns the refreshed row, or None
        when the guard did not match (someone else moved it first).
        """
        result = await self._session.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status.in_(list(from_statuses)),
                *criteria,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        if result.rowcount == 0:
            return None
        return await self.get(transaction_id)

    async def find_open(self, book_id: int, user_id: UUID) -> Transaction | None:
        stmt = (
            select(Transaction)
            .where(
                Transaction.book_id == book_id,
                Transaction.user_id == user_id,
                Transaction.status.in_(list(OPEN_STATUSES)),
            )
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def find_holder(self, book_id: int, exclude_id: int | None = None) -> Transaction | None:
        stmt = select(Transaction).where(
            Transaction.book_id == book_id,
            Transaction.status.in_(list(HELD_STATUSES)),
        )
        if exclude_id is not None:
            stmt = stmt.where(Transaction.id != exclude_id)
        return (await self._session.execute(stmt.limit(1))).scalar_one_or_none()

    async def has_engaged(self, book_id: int, user_id: UUID) -> bool:
        stmt = (
            select(Transaction.id)
            .where(
                Transaction.book_id == book_id,
                Transaction.user_id == user_id,
                Transaction.status.in_(list(ENGAGED_STATUSES)),
            )
            .limit(1)
        )
        return (await self._session.execute(stmt)).first() is not None

    async def latest_engaged(self, user_id: UUID) -> Transaction | None:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.status.in_(list(ENGAGED_STATUSES)),
            )
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def recent(self, limit: int) -> list[Transaction]:
        stmt = select(Transaction).order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_for_user(self, user_id: UUID) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_by_status(
        self,
        statuses: Iterable[TransactionStatus],
        *criteria: ColumnElement[bool],
        order_by: Sequence[Any] = (),
    ) -> list[Transaction]:
        stmt = select(Transaction).where(Transaction.status.in_(list(statuses)), *criteria)
        stmt = stmt.order_by(*order_by) if order_by else stmt.order_by(Transaction.created_at, Transaction.id)
        return list((await self._session.execute(stmt)).scalars().all())


class WishlistRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, book_id: int) -> Wishlist | None:
        stmt = select(Wishlist).where(Wishlist.user_id == user_id, Wishlist.book_id == book_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def add(self, entry: Wishlist) -> Wishlist:
        self._session.add(entry)
        await self._session.commit()
        await self._session.refresh(entry, attribute_names=["book"])
        return entry

    async def delete(self, entry: Wishlist) -> None:
        await self._session.delete(entry)
        await self._session.commit()

    async def latest(self, user_id: UUID) -> Wishlist | None:
        stmt = (
            select(Wishlist)
            .where(Wishlist.user_id == user_id)
            .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_for_user(self, user_id: UUID) -> list[Wishlist]:
        stmt = (
            select(Wishlist)
            .where(Wishlist.user_id == user_id)
            .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
        )
        return list((await self._session.execute(stmt)).scalars().all())


class ReviewRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, review: Review) -> Review:
        self._session.add(review)
        await self._session.commit()
        return review

    async def list_for_book(self, book_id: int) -> list[Review]:
        stmt = (
            select(Review)
            .where(Review.book_id == book_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        return list((await self._session.execute(stmt)).scalars().all())

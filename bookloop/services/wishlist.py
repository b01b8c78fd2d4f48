"""Per-user wishlist of catalog books."""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookloop.domain.caller import Caller
from bookloop.domain.enums import PUBLISHED_STATUSES
from bookloop.domain.errors import NotFoundError
from bookloop.domain.models import Wishlist
from bookloop.repositories import BookRepository, WishlistRepository

logger = logging.getLogger(__name__)


class WishlistService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._wishlists = WishlistRepository(session)
        self._books = BookRepository(session)

    async def add(self, book_id: int, caller: Caller) -> Wishlist:
        """Add a catalog book; adding one that is already listed returns the existing entry."""
        existing = await self._wishlists.get(caller.user_id, book_id)
        if existing:
            return existing
        book = await self._books.get(book_id)
        if book is None or book.status not in PUBLISHED_STATUSES:
            raise NotFoundError(f"Book {book_id} not found")
        try:
            return await self._wishlists.add(Wishlist(user_id=caller.user_id, book_id=book_id))
        except IntegrityError:
            # Lost a race with a concurrent add of the same (user, book).
            await self._session.rollback()
            return await self._wishlists.get(caller.user_id, book_id)

    async def remove(self, book_id: int, caller: Caller) -> bool:
        entry = await self._wishlists.get(caller.user_id, book_id)
        if entry is None:
            return False
        await self._wishlists.delete(entry)
        return True

    async def toggle(self, book_id: int, caller: Caller) -> bool:
        """Flip membership; returns whether the book is now on the wishlist."""
        if await self.remove(book_id, caller):
            logger.info("Book %d removed from wishlist of %s", book_id, caller.user_id)
            return False
        await self.add(book_id, caller)
        logger.info("Book %d added to wishlist of %s", book_id, caller.user_id)
        return True

    async def list_for_user(self, caller: Caller) -> list[Wishlist]:
        return await self._wishlists.list_for_user(caller.user_id)

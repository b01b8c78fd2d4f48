"""Book submission, admin moderation and catalog reads."""

import logging

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession

from bookloop.api.schemas import Availability, BookSubmission, BrowseSort
from bookloop.domain.caller import Caller
from bookloop.domain.enums import PUBLISHED_STATUSES, BookStatus
from bookloop.domain.errors import (
    DependencyFailure,
    ForbiddenError,
    InvalidSubmission,
    InvalidTransition,
    NotFoundError,
)
from bookloop.domain.models import Book
from bookloop.ports.embedding import EmbeddingPort
from bookloop.ports.emotion import EmotionPort
from bookloop.repositories import BookRepository
from bookloop.services.duplicates import DuplicateCheck, DuplicateDetector
from bookloop.text.templates import BOOK_PROFILE, render_book_profile, render_emotion_input

logger = logging.getLogger(__name__)

_SORTS = {
    BrowseSort.NEWEST: (Book.created_at.desc(), Book.id.desc()),
    BrowseSort.OLDEST: (Book.created_at, Book.id),
    BrowseSort.A_Z: (func.lower(Book.title), Book.id),
    BrowseSort.Z_A: (func.lower(Book.title).desc(), Book.id),
    BrowseSort.RATING: (func.coalesce(Book.average_rating, 0).desc(), Book.id),
}

# Owners may withdraw a listing only before it ever circulated.
_DELETABLE = frozenset({BookStatus.PENDING_APPROVAL, BookStatus.REJECTED})


class CatalogService:
    """Handles listings from submission through moderation, plus catalog reads."""

    def __init__(
        self,
        session: AsyncSession,
        embedder: EmbeddingPort,
        emotions: EmotionPort,
        detector: DuplicateDetector | None = None,
    ) -> None:
        self._books = BookRepository(session)
        self._embedder = embedder
        self._emotions = emotions
        self._detector = detector or DuplicateDetector()

    async def submit_book(self, data: BookSubmission, caller: Caller) -> Book:
        """
        List a new book for admin approval.

        Emotion scores and the search embedding are computed up front. A failed
        classifier leaves zero scores and a failed embedder leaves the book
        without a vector; neither blocks the submission.
        """
        if not (data.title.strip() and data.author.strip() and data.description.strip()):
            raise InvalidSubmission()

        emotions = await self._emotions.classify(render_emotion_input(data.description))

        embedding = None
        try:
            embedding = await self._embedder.embed(
                render_book_profile(data.title, data.author, data.category, data.description)
            )
        except DependencyFailure:
            logger.warning("Embedding failed for submission %r; stored without a vector", data.title)

        book = await self._books.add(
            Book(
                title=data.title.strip(),
                author=data.author.strip(),
                description=data.description,
                broad_category=data.category,
                image_url=data.image_url or None,
                isbn13=data.isbn13,
                published_year=data.published_year,
                num_pages=data.num_pages,
                owner_id=caller.user_id,
                status=BookStatus.PENDING_APPROVAL,
                embedding=embedding,
                emotion_joy=emotions.joy,
                emotion_sadness=emotions.sadness,
                emotion_fear=emotions.fear,
                emotion_surprise=emotions.surprise,
                ratings_count=0,
            )
        )
        logger.info(
            "Book %d submitted by %s: %r (%s v%s)",
            book.id,
            caller.user_id,
            book.title,
            BOOK_PROFILE.name,
            BOOK_PROFILE.version,
        )
        return book

    async def review_queue(self, caller: Caller) -> list[tuple[Book, DuplicateCheck]]:
        """Pending submissions, oldest first, each annotated with a duplicate check."""
        self._require_admin(caller)
        pending = await self._books.list_by_status(BookStatus.PENDING_APPROVAL)
        catalog = await self._books.list_excluding_status(BookStatus.REJECTED)
        return [
            (book, self._detector.check(book, (b for b in catalog if b.id != book.id)))
            for book in pending
        ]

    async def moderate_submission(self, book_id: int, approve: bool, caller: Caller) -> Book:
        self._require_admin(caller)
        await self.get_book(book_id)
        target = BookStatus.AVAILABLE if approve else BookStatus.REJECTED
        book = await self._books.transition(book_id, {BookStatus.PENDING_APPROVAL}, target)
        if book is None:
            raise InvalidTransition("Only books awaiting approval can be moderated")
        logger.info("Submission %d %s", book_id, "published" if approve else "rejected")
        return book

    async def browse(
        self,
        query: str | None = None,
        category: str | None = None,
        availability: Availability = Availability.ALL,
        sort: BrowseSort = BrowseSort.NEWEST,
    ) -> list[Book]:
        if availability is Availability.ALL:
            statuses = PUBLISHED_STATUSES
        else:
            statuses = {BookStatus(availability.value)}
        return await self._books.search(
            query=query, category=category, statuses=statuses, order_by=_SORTS[sort]
        )

    async def get_book(self, book_id: int) -> Book:
        book = await self._books.get(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    async def my_listings(self, caller: Caller) -> list[Book]:
        return await self._books.list_by_owner(caller.user_id)

    async def delete_listing(self, book_id: int, caller: Caller) -> None:
        book = await self.get_book(book_id)
        if book.owner_id != caller.user_id:
            raise ForbiddenError("Only the owner can remove this listing")
        if book.status not in _DELETABLE:
            raise InvalidTransition("Published books cannot be removed")
        await self._books.delete(book)
        logger.info("Listing %d removed by owner", book_id)

    @staticmethod
    def _require_admin(caller: Caller) -> None:
        if not caller.is_admin:
            raise ForbiddenError("Admin role required")

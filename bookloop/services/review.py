"""Review submission service with borrow constraint enforcement."""

from sqlalchemy.ext.asyncio import AsyncSession

from bookloop.api.schemas import ReviewCreateRequest
from bookloop.domain.caller import Caller
from bookloop.domain.errors import ForbiddenError, NotFoundError
from bookloop.domain.models import Review
from bookloop.repositories import BookRepository, ReviewRepository, TransactionRepository


class ReviewService:
    """Handles review creation with borrow validation."""

    def __init__(self, session: AsyncSession) -> None:
        self._reviews = ReviewRepository(session)
        self._books = BookRepository(session)
        self._transactions = TransactionRepository(session)

    async def create_review(self, book_id: int, caller: Caller, data: ReviewCreateRequest) -> Review:
        """
        Submit a review for a book.

        Constraint: the user must have borrowed the book (held or returned).
        The book's aggregate rating is folded forward rather than recomputed,
        since imported books carry ratings that have no review rows.
        """
        book = await self._books.get(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        if not await self._transactions.has_engaged(book_id, caller.user_id):
            raise ForbiddenError("You must borrow a book before reviewing it")

        review = await self._reviews.add(
            Review(book_id=book_id, user_id=caller.user_id, rating=data.rating, comment=data.comment)
        )

        count = book.ratings_count or 0
        average = book.average_rating or 0.0
        book.average_rating = round((average * count + data.rating) / (count + 1), 2)
        book.ratings_count = count + 1
        await self._books.save(book)
        return review

    async def get_reviews_for_book(self, book_id: int) -> list[Review]:
        """Retrieve all reviews for a specific book, newest first."""
        return await self._reviews.list_for_book(book_id)

"""Pydantic request/response schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from bookloop.domain.enums import BookStatus, TransactionStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ── Books ──────────────────────────────────────────


class BookSubmission(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    author: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1)
    category: str = "Fiction"
    image_url: str | None = None
    isbn13: int | None = Field(default=None, ge=0, le=9_999_999_999_999)
    published_year: int | None = None
    num_pages: int | None = Field(default=None, gt=0)


class BookSummary(ORMModel):
    id: int
    title: str
    author: str | None = None
    image_url: str | None = None
    average_rating: float | None = None
    status: BookStatus


class BookDetail(BookSummary):
    isbn13: int | None = None
    description: str | None = None
    broad_category: str | None = None
    published_year: int | None = None
    num_pages: int | None = None
    owner_id: UUID | None = None
    ratings_count: int | None = None
    emotion_joy: float | None = None
    emotion_sadness: float | None = None
    emotion_fear: float | None = None
    emotion_surprise: float | None = None
    created_at: datetime | None = None


class BrowseSort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    A_Z = "a-z"
    Z_A = "z-a"
    RATING = "rating"


class Availability(str, Enum):
    ALL = "all"
    AVAILABLE = "available"
    RENTED = "rented"


class DuplicateInfo(BaseModel):
    is_duplicate: bool
    reason: str


class SubmissionReviewItem(BaseModel):
    book: BookDetail
    duplicate: DuplicateInfo


# ── Transactions ───────────────────────────────────


class TransactionResponse(ORMModel):
    id: int
    book_id: int
    user_id: UUID
    status: TransactionStatus
    created_at: datetime | None = None
    approval_date: datetime | None = None
    due_date: datetime | None = None
    returned_at: datetime | None = None
    extension_requested: bool
    book: BookSummary | None = None


class ExtensionDecision(BaseModel):
    approve: bool


# ── Wishlist & Reviews ─────────────────────────────


class WishlistItem(ORMModel):
    id: int
    book_id: int
    created_at: datetime | None = None
    book: BookSummary | None = None


class WishlistToggleResponse(BaseModel):
    book_id: int
    in_wishlist: bool


class ReviewCreateRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=5000)


class ReviewResponse(ORMModel):
    id: int
    book_id: int
    user_id: UUID
    rating: int
    comment: str | None = None
    created_at: datetime | None = None


# ── Recommendations ────────────────────────────────


class SearchMatchResponse(ORMModel):
    id: int
    title: str
    author: str | None = None
    image_url: str | None = None
    average_rating: float | None = None
    emotion_joy: float | None = None
    similarity: float
    match_percent: int


class PersonalizedResponse(ORMModel):
    source_title: str | None = None
    recommendations: list[SearchMatchResponse] = []


class HomeFeedResponse(ORMModel):
    trending: list[BookSummary] = []
    history: PersonalizedResponse = PersonalizedResponse()
    wishlist: PersonalizedResponse = PersonalizedResponse()

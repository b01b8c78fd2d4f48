"""Catalog, submission, rental request, review and wishlist routes for a single book."""

from fastapi import APIRouter, Depends, Query, status

from bookloop.api.deps import (
    get_catalog,
    get_review_service,
    get_state_machine,
    get_wishlist_service,
)
from bookloop.api.middleware.auth import get_current_caller
from bookloop.api.schemas import (
    Availability,
    BookDetail,
    BookSubmission,
    BookSummary,
    BrowseSort,
    ReviewCreateRequest,
    ReviewResponse,
    TransactionResponse,
    WishlistToggleResponse,
)
from bookloop.domain.caller import Caller
from bookloop.services.catalog import CatalogService
from bookloop.services.review import ReviewService
from bookloop.services.transactions import TransactionStateMachine
from bookloop.services.wishlist import WishlistService

router = APIRouter(prefix="/books", tags=["Books"])


@router.post("", response_model=BookDetail, status_code=status.HTTP_201_CREATED)
async def submit_book(
    data: BookSubmission,
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> BookDetail:
    """List a book for lending. It stays hidden until an admin approves it."""
    book = await catalog.submit_book(data, caller)
    return BookDetail.model_validate(book)


@router.get("", response_model=list[BookSummary])
async def browse_books(
    q: str | None = Query(default=None, max_length=200),
    category: str | None = None,
    availability: Availability = Availability.ALL,
    sort: BrowseSort = BrowseSort.NEWEST,
    catalog: CatalogService = Depends(get_catalog),
) -> list[BookSummary]:
    books = await catalog.browse(q, category, availability, sort)
    return [BookSummary.model_validate(b) for b in books]


@router.get("/mine", response_model=list[BookDetail])
async def my_listings(
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> list[BookDetail]:
    books = await catalog.my_listings(caller)
    return [BookDetail.model_validate(b) for b in books]


@router.get("/{book_id}", response_model=BookDetail)
async def get_book(book_id: int, catalog: CatalogService = Depends(get_catalog)) -> BookDetail:
    return BookDetail.model_validate(await catalog.get_book(book_id))


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    book_id: int,
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> None:
    await catalog.delete_listing(book_id, caller)


@router.post("/{book_id}/rentals", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def request_rental(
    book_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    transaction = await machine.request_rental(book_id, caller)
    return TransactionResponse.model_validate(transaction)


@router.get("/{book_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    book_id: int, reviews: ReviewService = Depends(get_review_service)
) -> list[ReviewResponse]:
    return [ReviewResponse.model_validate(r) for r in await reviews.get_reviews_for_book(book_id)]


@router.post("/{book_id}/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    book_id: int,
    data: ReviewCreateRequest,
    reviews: ReviewService = Depends(get_review_service),
    caller: Caller = Depends(get_current_caller),
) -> ReviewResponse:
    review = await reviews.create_review(book_id, caller, data)
    return ReviewResponse.model_validate(review)


@router.post("/{book_id}/wishlist", response_model=WishlistToggleResponse)
async def toggle_wishlist(
    book_id: int,
    wishlist: WishlistService = Depends(get_wishlist_service),
    caller: Caller = Depends(get_current_caller),
) -> WishlistToggleResponse:
    in_wishlist = await wishlist.toggle(book_id, caller)
    return WishlistToggleResponse(book_id=book_id, in_wishlist=in_wishlist)

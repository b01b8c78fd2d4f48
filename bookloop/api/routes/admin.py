"""Admin moderation and rental mediation routes."""

from fastapi import APIRouter, Depends, Query

from bookloop.api.deps import get_catalog, get_state_machine
from bookloop.api.middleware.auth import get_current_caller
from bookloop.api.schemas import (
    BookDetail,
    DuplicateInfo,
    ExtensionDecision,
    SubmissionReviewItem,
    TransactionResponse,
)
from bookloop.domain.caller import Caller
from bookloop.domain.enums import TransactionStatus
from bookloop.services.catalog import CatalogService
from bookloop.services.transactions import TransactionStateMachine

router = APIRouter(prefix="/admin", tags=["Admin"])


# ── Submissions ────────────────────────────────────


@router.get("/submissions", response_model=list[SubmissionReviewItem])
async def review_queue(
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> list[SubmissionReviewItem]:
    """Pending submissions with a duplicate hint for each."""
    queue = await catalog.review_queue(caller)
    return [
        SubmissionReviewItem(
            book=BookDetail.model_validate(book),
            duplicate=DuplicateInfo(is_duplicate=check.is_duplicate, reason=check.reason),
        )
        for book, check in queue
    ]


@router.post("/submissions/{book_id}/approve", response_model=BookDetail)
async def approve_submission(
    book_id: int,
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> BookDetail:
    return BookDetail.model_validate(await catalog.moderate_submission(book_id, True, caller))


@router.post("/submissions/{book_id}/reject", response_model=BookDetail)
async def reject_submission(
    book_id: int,
    catalog: CatalogService = Depends(get_catalog),
    caller: Caller = Depends(get_current_caller),
) -> BookDetail:
    return BookDetail.model_validate(await catalog.moderate_submission(book_id, False, caller))


# ── Rentals ────────────────────────────────────────


@router.get("/rentals", response_model=list[TransactionResponse])
async def list_rentals(
    status: list[TransactionStatus] = Query(default=[TransactionStatus.PENDING]),
    extension_requested: bool | None = None,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> list[TransactionResponse]:
    """Queues: ``?status=pending``, ``?status=approved&status=active``, ``?status=returned``..."""
    rows = await machine.list_by_status(status, caller, extension_requested=extension_requested)
    return [TransactionResponse.model_validate(t) for t in rows]


@router.post("/rentals/{transaction_id}/approve", response_model=TransactionResponse)
async def approve_rental(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.approve_rental(transaction_id, caller))


@router.post("/rentals/{transaction_id}/reject", response_model=TransactionResponse)
async def reject_rental(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.reject_rental(transaction_id, caller))


@router.post("/rentals/{transaction_id}/confirm-return", response_model=TransactionResponse)
async def confirm_return(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.confirm_return(transaction_id, caller))


@router.post("/rentals/{transaction_id}/force-return", response_model=TransactionResponse)
async def force_return(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.force_return(transaction_id, caller))


@router.post("/rentals/{transaction_id}/extension", response_model=TransactionResponse)
async def resolve_extension(
    transaction_id: int,
    decision: ExtensionDecision,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    updated = await machine.resolve_extension(transaction_id, decision.approve, caller)
    return TransactionResponse.model_validate(updated)

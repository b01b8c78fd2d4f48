"""Borrower-side rental routes and the wishlist listing."""

from fastapi import APIRouter, Depends, status

from bookloop.api.deps import get_state_machine, get_wishlist_service
from bookloop.api.middleware.auth import get_current_caller
from bookloop.api.schemas import TransactionResponse, WishlistItem
from bookloop.domain.caller import Caller
from bookloop.services.transactions import TransactionStateMachine
from bookloop.services.wishlist import WishlistService

router = APIRouter(tags=["Rentals"])


@router.get("/rentals", response_model=list[TransactionResponse])
async def my_rentals(
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> list[TransactionResponse]:
    return [TransactionResponse.model_validate(t) for t in await machine.list_for_borrower(caller)]


@router.get("/rentals/{transaction_id}", response_model=TransactionResponse)
async def get_rental(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.get(transaction_id, caller))


@router.delete("/rentals/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_request(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> None:
    await machine.cancel_request(transaction_id, caller)


@router.post("/rentals/{transaction_id}/return", response_model=TransactionResponse)
async def request_return(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.request_return(transaction_id, caller))


@router.post("/rentals/{transaction_id}/extension", response_model=TransactionResponse)
async def request_extension(
    transaction_id: int,
    machine: TransactionStateMachine = Depends(get_state_machine),
    caller: Caller = Depends(get_current_caller),
) -> TransactionResponse:
    return TransactionResponse.model_validate(await machine.request_extension(transaction_id, caller))


@router.get("/wishlist", response_model=list[WishlistItem])
async def my_wishlist(
    wishlist: WishlistService = Depends(get_wishlist_service),
    caller: Caller = Depends(get_current_caller),
) -> list[WishlistItem]:
    return [WishlistItem.model_validate(w) for w in await wishlist.list_for_user(caller)]

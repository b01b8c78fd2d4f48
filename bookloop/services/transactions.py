"""Rental transaction lifecycle: every valid status move and its book-status side effect."""

import logging
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookloop.domain.caller import Caller
from bookloop.domain.enums import (
    HELD_STATUSES,
    TERMINAL_STATUSES,
    BookStatus,
    TransactionStatus,
)
from bookloop.domain.errors import (
    AlreadyRequested,
    DependencyFailure,
    ForbiddenError,
    InvalidTransition,
    NotAvailable,
    NotCancelable,
    NotFoundError,
    PartialUpdateFailure,
)
from bookloop.domain.models import Transaction, utcnow
from bookloop.repositories import BookRepository, TransactionRepository

logger = logging.getLogger(__name__)

DEFAULT_LOAN_PERIOD = timedelta(days=14)

_RETURNABLE = frozenset({TransactionStatus.APPROVED, TransactionStatus.ACTIVE})


class TransactionStateMachine:
    """
    Owns the borrowing workflow.

    Storage writes are not atomic across tables: the transaction row is
    committed first and the book row second. If the second write fails a
    ``PartialUpdateFailure`` is raised and nothing is rolled back; an admin
    force return reconciles the pair. Status moves use compare-and-set
    updates, so repeating an action after it succeeded is rejected.
    """

    def __init__(
        self,
        session: AsyncSession,
        loan_period: timedelta = DEFAULT_LOAN_PERIOD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._transactions = TransactionRepository(session)
        self._books = BookRepository(session)
        self._loan_period = loan_period
        self._clock = clock

    # ── Borrower actions ─────────────────────────────

    async def request_rental(self, book_id: int, caller: Caller) -> Transaction:
        """Open a pending request. The book is untouched until approval."""
        async with self._storage("request rental"):
            book = await self._books.get(book_id)
            if book is None:
                raise NotFoundError(f"Book {book_id} not found")
            # Read-then-write: concurrent requesters can both pass these checks.
            if await self._transactions.find_open(book_id, caller.user_id):
                raise AlreadyRequested()
            if book.status is not BookStatus.AVAILABLE:
                raise NotAvailable()

            transaction = await self._transactions.add(
                Transaction(
                    book_id=book_id,
                    user_id=caller.user_id,
                    status=TransactionStatus.PENDING,
                    extension_requested=False,
                )
            )
        logger.info("Rental requested: transaction=%d book=%d user=%s", transaction.id, book_id, caller.user_id)
        return transaction

    async def cancel_request(self, transaction_id: int, caller: Caller) -> None:
        """Delete the caller's own pending request."""
        async with self._storage("cancel request"):
            transaction = await self._get(transaction_id)
            if transaction.status is not TransactionStatus.PENDING or transaction.user_id != caller.user_id:
                raise NotCancelable()
            if not await self._transactions.delete_pending(transaction_id, caller.user_id):
                raise NotCancelable()
        logger.info("Rental request %d cancelled by borrower", transaction_id)

    async def request_return(self, transaction_id: int, caller: Caller) -> Transaction:
        async with self._storage("request return"):
            transaction = await self._get(transaction_id)
            self._require_borrower(transaction, caller)
            updated = await self._transactions.transition(
                transaction_id, _RETURNABLE, status=TransactionStatus.PENDING_RETURN
            )
            if updated is None:
                raise InvalidTransition("Only books you currently hold can be returned")
        logger.info("Return requested for transaction %d", transaction_id)
        return updated

    async def request_extension(self, transaction_id: int, caller: Caller) -> Transaction:
        async with self._storage("request extension"):
            transaction = await self._get(transaction_id)
            self._require_borrower(transaction, caller)
            updated = await self._transactions.transition(
                transaction_id,
                HELD_STATUSES,
                Transaction.extension_requested.is_(False),
                extension_requested=True,
            )
            if updated is None:
                raise InvalidTransition("An extension can only be requested once for a book you hold")
        logger.info("Extension requested for transaction %d", transaction_id)
        return updated

    # ── Admin actions ────────────────────────────────

    async def approve_rental(self, transaction_id: int, caller: Caller) -> Transaction:
        """Approve a pending request; the book becomes rented for one loan period."""
        self._require_admin(caller)
        async with self._storage("approve rental"):
            transaction = await self._get(transaction_id)
            if transaction.status is not TransactionStatus.PENDING:
                raise InvalidTransition("Only pending requests can be approved")
            if await self._transactions.find_holder(transaction.book_id, exclude_id=transaction_id):
                raise NotAvailable("Book is already rented to another borrower")

            now = self._clock()
            updated = await self._transactions.transition(
                transaction_id,
                {TransactionStatus.PENDING},
                status=TransactionStatus.APPROVED,
                approval_date=now,
                due_date=now + self._loan_period,
            )
            if updated is None:
                raise InvalidTransition("Only pending requests can be approved")
            await self._sync_book(updated, BookStatus.RENTED)
        logger.info("Rental %d approved, due %s", transaction_id, updated.due_date.isoformat())
        return updated

    async def reject_rental(self, transaction_id: int, caller: Caller) -> Transaction:
        self._require_admin(caller)
        async with self._storage("reject rental"):
            await self._get(transaction_id)
            updated = await self._transactions.transition(
                transaction_id,
                {TransactionStatus.PENDING},
                status=TransactionStatus.REJECTED,
                approval_date=self._clock(),
            )
            if updated is None:
                raise InvalidTransition("Only pending requests can be rejected")
        logger.info("Rental %d rejected", transaction_id)
        return updated

    async def confirm_return(self, transaction_id: int, caller: Caller) -> Transaction:
        """Admin confirms the book came back. Accepted from any open status."""
        return await self._close(transaction_id, caller, forced=False)

    async def force_return(self, transaction_id: int, caller: Caller) -> Transaction:
        """Admin terminates a rental outright, e.g. to settle a dispute."""
        return await self._close(transaction_id, caller, forced=True)

    async def resolve_extension(self, transaction_id: int, approve: bool, caller: Caller) -> Transaction:
        """Grant or refuse a pending extension; grants add one loan period to the current due date."""
        self._require_admin(caller)
        async with self._storage("resolve extension"):
            transaction = await self._get(transaction_id)
            if not transaction.extension_requested or transaction.status not in HELD_STATUSES:
                raise InvalidTransition("No extension request is pending for this rental")

            values: dict = {"extension_requested": False}
            criteria = [Transaction.extension_requested.is_(True)]
            if approve:
                current_due = transaction.due_date or self._clock()
                values["due_date"] = current_due + self._loan_period
                criteria.append(
                    Transaction.due_date == transaction.due_date
                    if transaction.due_date is not None
                    else Transaction.due_date.is_(None)
                )

            updated = await self._transactions.transition(
                transaction_id, HELD_STATUSES, *criteria, **values
            )
            if updated is None:
                raise InvalidTransition("Extension request changed while it was being resolved")
        logger.info(
            "Extension for transaction %d %s", transaction_id, "approved" if approve else "rejected"
        )
        return updated

    # ── Reads ────────────────────────────────────────

    async def get(self, transaction_id: int, caller: Caller) -> Transaction:
        transaction = await self._get(transaction_id)
        if not caller.is_admin and transaction.user_id != caller.user_id:
            raise ForbiddenError()
        return transaction

    async def list_for_borrower(self, caller: Caller) -> list[Transaction]:
        return await self._transactions.list_for_user(caller.user_id)

    async def list_by_status(
        self,
        statuses: Iterable[TransactionStatus],
        caller: Caller,
        extension_requested: bool | None = None,
    ) -> list[Transaction]:
        """Admin queues. Held rentals come back soonest-due first, returns newest first."""
        self._require_admin(caller)
        statuses = set(statuses)
        criteria = []
        if extension_requested is not None:
            criteria.append(Transaction.extension_requested.is_(extension_requested))

        if statuses <= HELD_STATUSES:
            order_by = (Transaction.due_date, Transaction.id)
        elif statuses == {TransactionStatus.RETURNED}:
            order_by = (Transaction.returned_at.desc(), Transaction.id.desc())
        else:
            order_by = ()
        return await self._transactions.list_by_status(statuses, *criteria, order_by=order_by)

    # ── Internals ────────────────────────────────────

    async def _close(self, transaction_id: int, caller: Caller, forced: bool) -> Transaction:
        self._require_admin(caller)
        action = "force return" if forced else "confirm return"
        async with self._storage(action):
            transaction = await self._get(transaction_id)
            source = transaction.status
            if source in TERMINAL_STATUSES:
                raise InvalidTransition(f"Transaction is already {source.value}")
            if not forced and source is not TransactionStatus.PENDING_RETURN:
                logger.warning(
                    "Admin override: confirming return of transaction %d from %s",
                    transaction_id,
                    source.value,
                )

            # Guard on the observed status so the book sync below matches what was closed.
            updated = await self._transactions.transition(
                transaction_id,
                {source},
                status=TransactionStatus.RETURNED,
                returned_at=self._clock(),
                extension_requested=False,
            )
            if updated is None:
                raise InvalidTransition("Transaction changed while it was being closed")
            if source in HELD_STATUSES:
                await self._sync_book(updated, BookStatus.AVAILABLE)
        logger.info("Transaction %d closed via %s (was %s)", transaction_id, action, source.value)
        return updated

    async def _get(self, transaction_id: int) -> Transaction:
        transaction = await self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def _sync_book(self, transaction: Transaction, status: BookStatus) -> None:
        """Second write of a two-write operation."""
        # Rollback expires every loaded row, so read these first.
        transaction_id = transaction.id
        book_id = transaction.book_id
        written = transaction.status
        try:
            await self._books.set_status(book_id, status)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error(
                "Transaction %d is %s but book %d could not be set to %s",
                transaction_id,
                written.value,
                book_id,
                status.value,
            )
            raise PartialUpdateFailure(transaction_id, book_id) from exc
        # Reload so transaction.book reflects the new status.
        await self._books.get(transaction.book_id)

    @asynccontextmanager
    async def _storage(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.exception("Storage failure during %s", action)
            raise DependencyFailure(f"Could not {action}: storage unavailable") from exc

    @staticmethod
    def _require_admin(caller: Caller) -> None:
        if not caller.is_admin:
            raise ForbiddenError("Admin role required")

    @staticmethod
    def _require_borrower(transaction: Transaction, caller: Caller) -> None:
        if transaction.user_id != caller.user_id:
            raise ForbiddenError("Only the borrower can do this")

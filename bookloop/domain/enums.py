"""Status and role vocabularies shared by models, services and schemas."""

from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class BookStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    AVAILABLE = "available"
    RENTED = "rented"
    REJECTED = "rejected"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    PENDING_RETURN = "pending_return"
    RETURNED = "returned"
    REJECTED = "rejected"


# Books visible in the public catalog.
PUBLISHED_STATUSES = frozenset({BookStatus.AVAILABLE, BookStatus.RENTED})

# "Currently held": the borrower physically has the book.
HELD_STATUSES = frozenset(
    {
        TransactionStatus.APPROVED,
        TransactionStatus.ACTIVE,
        TransactionStatus.PENDING_RETURN,
    }
)

OPEN_STATUSES = HELD_STATUSES | {TransactionStatus.PENDING}

TERMINAL_STATUSES = frozenset({TransactionStatus.RETURNED, TransactionStatus.REJECTED})

# Transactions that count as the borrower having engaged with the book.
ENGAGED_STATUSES = HELD_STATUSES | {TransactionStatus.RETURNED}

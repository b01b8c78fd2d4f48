"""Domain exception hierarchy, translated to HTTP responses in ``bookloop.main``."""


class BookLoopError(Exception):
    """Base class for every error raised by the service layer."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookLoopError):
    """The request is well-formed but not allowed in the current state."""

    default_message = "Invalid request"


class InvalidTransition(ValidationError):
    default_message = "Transaction is not in a state that allows this action"


class AlreadyRequested(ValidationError):
    default_message = "You already have an open request for this book"


class NotAvailable(ValidationError):
    default_message = "Book is not available for rental"


class NotCancelable(ValidationError):
    default_message = "Only your own pending requests can be cancelled"


class InvalidSubmission(ValidationError):
    default_message = "Title, author and description are required"


class NotFoundError(BookLoopError):
    default_message = "Not found"


class ForbiddenError(BookLoopError):
    default_message = "You are not allowed to perform this action"


class DependencyFailure(BookLoopError):
    """An external collaborator (provider or storage) could not be reached."""

    default_message = "A required service is unavailable"


class PartialUpdateFailure(BookLoopError):
    """The transaction row was written but the companion book write failed.

    Nothing is rolled back: an admin force action reconciles the pair.
    """

    default_message = "Transaction updated but book status could not be synced"

    def __init__(self, transaction_id: int, book_id: int, message: str | None = None) -> None:
        self.transaction_id = transaction_id
        self.book_id = book_id
        super().__init__(message)

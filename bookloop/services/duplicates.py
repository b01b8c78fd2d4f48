"""Duplicate-submission detection for the admin review queue."""

from collections.abc import Iterable
from dataclasses import dataclass

from bookloop.domain.models import Book

ISBN_MATCH = "ISBN Match"
TITLE_MATCH = "Title Match"


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    reason: str = ""


UNIQUE = DuplicateCheck(is_duplicate=False)


class DuplicateDetector:
    """
    Flags a submitted book that probably already exists in the catalog.

    ISBN-13 equality is checked first as the stronger signal, then exact
    case-insensitive title equality. The result only annotates the review
    queue; it never blocks a submission.
    """

    def check(self, candidate: Book, existing: Iterable[Book]) -> DuplicateCheck:
        existing = list(existing)

        if candidate.isbn13 is not None:
            if any(book.isbn13 == candidate.isbn13 for book in existing):
                return DuplicateCheck(is_duplicate=True, reason=ISBN_MATCH)

        title = (candidate.title or "").lower()
        if any((book.title or "").lower() == title for book in existing):
            return DuplicateCheck(is_duplicate=True, reason=TITLE_MATCH)

        return UNIQUE

from bookloop.domain.models import Book
from bookloop.services.duplicates import ISBN_MATCH, TITLE_MATCH, DuplicateDetector

EXISTING = [Book(id=1, title="Dune", isbn13=111)]


def test_isbn_match():
    result = DuplicateDetector().check(Book(isbn13=111, title="Other"), EXISTING)
    assert result.is_duplicate
    assert result.reason == ISBN_MATCH


def test_title_match_is_case_insensitive():
    result = DuplicateDetector().check(Book(isbn13=222, title="dune"), EXISTING)
    assert result.is_duplicate
    assert result.reason == TITLE_MATCH


def test_unique_book():
    result = DuplicateDetector().check(Book(isbn13=333, title="New"), EXISTING)
    assert not result.is_duplicate
    assert result.reason == ""


def test_isbn_wins_over_title():
    existing = [Book(id=1, title="Dune", isbn13=111), Book(id=2, title="Emma", isbn13=444)]
    result = DuplicateDetector().check(Book(isbn13=444, title="DUNE"), existing)
    assert result.reason == ISBN_MATCH


def test_missing_isbn_falls_back_to_title():
    result = DuplicateDetector().check(Book(isbn13=None, title="DUNE"), EXISTING)
    assert result.reason == TITLE_MATCH


def test_no_fuzzy_matching():
    result = DuplicateDetector().check(Book(title="Dune Messiah"), EXISTING)
    assert not result.is_duplicate


def test_empty_catalog():
    assert not DuplicateDetector().check(Book(title="Dune", isbn13=111), []).is_duplicate

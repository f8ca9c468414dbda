"""Search and tab filtering for the book list."""
from collections.abc import Iterable
from typing import Literal

from schemas.book import BookRecord, BookStatus

LibraryTab = Literal["all", "to-read", "reading", "completed"]


def search_books(books: Iterable[BookRecord], query: str) -> list[BookRecord]:
    """
    Keep books whose title or author contains the query, ignoring case.

    A blank query keeps everything.
    """
    needle = query.strip().casefold()
    if not needle:
        return list(books)
    return [
        book for book in books
        if needle in book.title.casefold() or needle in book.author.casefold()
    ]


def books_for_tab(books: Iterable[BookRecord], tab: LibraryTab = "all") -> list[BookRecord]:
    """Books shown under a status tab; "all" shows every book."""
    if tab == "all":
        return list(books)
    status = BookStatus(tab)
    return [book for book in books if book.status == status]

"""Service layer for book record CRUD operations."""
import logging
from datetime import date

from core.session_context import SessionContext
from db.document_store import (
    SERVER_TIMESTAMP,
    BackendError,
    CollectionRef,
    DocumentSnapshot,
    DocumentStore,
    OrderBy,
)
from schemas.book import BookCreate, BookRecord, BookUpdate
from schemas.validators import validate_date_range
from services.exceptions import ForbiddenError, InvalidDataError, NotFoundError, backend_errors
from services.reading_stats_service import update_reading_stats
from services.utils import BOOKS_COLLECTION, owned_by

logger = logging.getLogger(__name__)


def _is_missing_index(error: BackendError) -> bool:
    """Whether the store rejected a query for lack of a supporting index."""
    return error.code == "failed-precondition" or "requires an index" in error.message


def _check_merged_dates(stored: dict, changes: dict) -> None:
    """
    Check the date range the record would have after applying changes.

    Raises:
        InvalidDataError: If the end date would precede the start date.
    """
    merged = {**stored, **changes}
    start, end = merged.get("startDate"), merged.get("endDate")
    try:
        validate_date_range(
            date.fromisoformat(start) if start else None,
            date.fromisoformat(end) if end else None,
        )
    except ValueError as e:
        raise InvalidDataError(str(e)) from e


async def _get_owned_book(
    books: CollectionRef,
    user_id: str,
    book_id: str,
    action: str,
) -> DocumentSnapshot:
    """
    Load a book and enforce that the user owns it.

    Ownership is checked here on every read and write, regardless of any
    access rules the backend applies.

    Raises:
        NotFoundError: If the book doesn't exist.
        ForbiddenError: If the book belongs to another user.
    """
    snapshot = await books.get(book_id)
    if not snapshot.exists:
        raise NotFoundError("Book not found.")
    if snapshot.data.get("userId") != user_id:
        logger.warning(
            "book_ownership_denied action=%s book_id=%s user_id=%s",
            action,
            book_id,
            user_id,
        )
        raise ForbiddenError(f"You don't have permission to {action} this book.")
    return snapshot


async def get_user_books(store: DocumentStore, ctx: SessionContext) -> list[BookRecord]:
    """
    Get all books of the signed-in user, newest first.

    Ordering is best-effort: when the store lacks the index the ordered query
    needs, the same filter is run unordered.
    """
    user_id = ctx.require_user_id()
    books = store.collection(BOOKS_COLLECTION)
    with backend_errors("get_user_books"):
        try:
            snapshots = await books.query(
                owned_by(user_id),
                order_by=OrderBy("createdAt", descending=True),
            )
        except BackendError as e:
            if not _is_missing_index(e):
                raise
            logger.warning("get_user_books_unordered_fallback user_id=%s error=%s", user_id, e)
            snapshots = await books.query(owned_by(user_id))
    return [BookRecord.from_document(snapshot.id, snapshot.data) for snapshot in snapshots]


async def get_book_by_id(store: DocumentStore, ctx: SessionContext, book_id: str) -> BookRecord:
    """
    Get one of the signed-in user's books.

    Raises:
        NotFoundError: If the book doesn't exist.
        ForbiddenError: If the book belongs to another user.
    """
    user_id = ctx.require_user_id()
    with backend_errors("get_book_by_id"):
        snapshot = await _get_owned_book(
            store.collection(BOOKS_COLLECTION), user_id, book_id, "view",
        )
    return BookRecord.from_document(snapshot.id, snapshot.data)


async def add_book(store: DocumentStore, ctx: SessionContext, data: BookCreate) -> str:
    """
    Create a book owned by the signed-in user and refresh their statistics.

    `data` is trusted as validated by its schema.

    Returns:
        The id assigned by the store.
    """
    user_id = ctx.require_user_id()
    document = {
        **data.to_document(),
        "userId": user_id,
        "createdAt": SERVER_TIMESTAMP,
        "updatedAt": SERVER_TIMESTAMP,
    }
    with backend_errors("add_book"):
        book_id = await store.collection(BOOKS_COLLECTION).add(document)
    logger.info("book_added book_id=%s user_id=%s", book_id, user_id)
    await update_reading_stats(store, user_id)
    return book_id


async def update_book(
    store: DocumentStore,
    ctx: SessionContext,
    book_id: str,
    data: BookUpdate,
) -> str:
    """
    Update one of the signed-in user's books and refresh their statistics.

    Only the fields set on `data` change. Last writer wins.

    Raises:
        NotFoundError: If the book doesn't exist.
        ForbiddenError: If the book belongs to another user.
        InvalidDataError: If the end date would precede the stored or new start date.
    """
    user_id = ctx.require_user_id()
    books = store.collection(BOOKS_COLLECTION)
    with backend_errors("update_book"):
        snapshot = await _get_owned_book(books, user_id, book_id, "edit")
        changes = data.to_document()
        _check_merged_dates(snapshot.data, changes)
        await books.update(book_id, {**changes, "updatedAt": SERVER_TIMESTAMP})
    logger.info("book_updated book_id=%s user_id=%s", book_id, user_id)
    await update_reading_stats(store, user_id)
    return book_id


async def delete_book(store: DocumentStore, ctx: SessionContext, book_id: str) -> None:
    """
    Delete one of the signed-in user's books and refresh their statistics.

    Raises:
        NotFoundError: If the book doesn't exist.
        ForbiddenError: If the book belongs to another user.
    """
    user_id = ctx.require_user_id()
    books = store.collection(BOOKS_COLLECTION)
    with backend_errors("delete_book"):
        await _get_owned_book(books, user_id, book_id, "delete")
        await books.delete(book_id)
    logger.info("book_deleted book_id=%s user_id=%s", book_id, user_id)
    await update_reading_stats(store, user_id)

"""
Service layer for per-user reading statistics.

Statistics are only ever recomputed from the full set of a user's book
records, never adjusted incrementally, so the stored aggregate can't drift
from the records once a recomputation completes.
"""
import logging
from collections import Counter
from collections.abc import Iterable

from core.session_context import SessionContext
from db.document_store import SERVER_TIMESTAMP, DocumentStore
from schemas.book import BookStatus
from schemas.reading_stats import ReadingStats
from services.exceptions import backend_errors
from services.utils import BOOKS_COLLECTION, READING_STATS_COLLECTION, owned_by

logger = logging.getLogger(__name__)


def compute_reading_stats(books: Iterable[dict]) -> ReadingStats:
    """
    Count book documents by status.

    Records with an unrecognized status count toward the total only.
    """
    statuses = Counter(book.get("status") for book in books)
    return ReadingStats(
        total=sum(statuses.values()),
        reading=statuses[BookStatus.READING],
        completed=statuses[BookStatus.COMPLETED],
        to_read=statuses[BookStatus.TO_READ],
    )


async def update_reading_stats(store: DocumentStore, user_id: str) -> ReadingStats:
    """
    Recompute and store a user's reading statistics.

    The stats document is written with merge semantics: fields other than the
    counts and lastUpdated are preserved.

    Args:
        store: Document store.
        user_id: Owner whose books are counted.

    Returns:
        The freshly computed counts.
    """
    with backend_errors("update_reading_stats"):
        snapshots = await store.collection(BOOKS_COLLECTION).query(owned_by(user_id))
        stats = compute_reading_stats(snapshot.data for snapshot in snapshots)
        await store.collection(READING_STATS_COLLECTION).set(
            user_id,
            {**stats.counts(), "lastUpdated": SERVER_TIMESTAMP},
            merge=True,
        )
    logger.info(
        "reading_stats_updated user_id=%s total=%s reading=%s completed=%s to_read=%s",
        user_id,
        stats.total,
        stats.reading,
        stats.completed,
        stats.to_read,
    )
    return stats


async def get_user_reading_stats(store: DocumentStore, ctx: SessionContext) -> ReadingStats:
    """Get the stored statistics for the signed-in user, computing them if none exist yet."""
    user_id = ctx.require_user_id()
    with backend_errors("get_user_reading_stats"):
        snapshot = await store.collection(READING_STATS_COLLECTION).get(user_id)
    if not snapshot.exists:
        return await update_reading_stats(store, user_id)
    return ReadingStats.model_validate(snapshot.data)

"""Shared constants and helpers for the service layer."""
from db.document_store import FieldFilter

# Document store collections
BOOKS_COLLECTION = "books"
USERS_COLLECTION = "users"
READING_STATS_COLLECTION = "readingStats"


def owned_by(user_id: str) -> list[FieldFilter]:
    """Query filters selecting the documents owned by a user."""
    return [FieldFilter("userId", user_id)]

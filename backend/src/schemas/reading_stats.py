"""Pydantic schema for per-user reading statistics."""
from datetime import datetime

from pydantic import BaseModel

from schemas.book import DOCUMENT_CONFIG


class ReadingStats(BaseModel):
    """
    Aggregate counts of a user's book records by status.

    Always derived from the full set of the user's records, never authored.
    Stored in the readingStats collection as total/reading/completed/toRead/lastUpdated.
    """

    model_config = DOCUMENT_CONFIG

    total: int = 0
    reading: int = 0
    completed: int = 0
    to_read: int = 0
    last_updated: datetime | None = None

    def counts(self) -> dict[str, int]:
        """Return the counts without the timestamp, keyed by store field name."""
        return self.model_dump(by_alias=True, exclude={"last_updated"})

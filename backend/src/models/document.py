"""Document model backing the schemaless document store."""
from sqlalchemy import JSON, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite for local runs and tests)
DocumentData = JSON().with_variant(JSONB(), "postgresql")


class Document(Base, TimestampMixin):
    """
    A single schemaless document in a named collection.

    Collections are not tables: books, users, and readingStats all live here,
    distinguished by the collection column. The payload is whatever the
    caller stored, with server timestamps already resolved to ISO 8601 strings.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(100), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict] = mapped_column(DocumentData, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_documents_collection", "collection"),
    )

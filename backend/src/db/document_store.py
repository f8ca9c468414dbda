"""
Collection-scoped document store on top of async SQLAlchemy.

Exposes the small surface the data-access layer needs: get, query, add, set
(with optional merge), update, and delete against named collections, plus a
server-assigned timestamp sentinel. Failures are raised as BackendError with a
backend code; translating those codes into application errors is the caller's
job (see services/exceptions.py).
"""
import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.document import Document

logger = logging.getLogger(__name__)

# PostgreSQL insufficient_privilege
SQLSTATE_INSUFFICIENT_PRIVILEGE = "42501"


class _ServerTimestamp:
    """Sentinel replaced with the store's clock when a document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class BackendError(Exception):
    """
    Failure reported by the document store.

    Codes: "not-found", "failed-precondition", "permission-denied",
    "unavailable", "unknown".
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


@dataclass(frozen=True)
class FieldFilter:
    """Equality filter on a top-level document field."""

    field: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    """Sort on a top-level document field."""

    field: str
    descending: bool = False


@dataclass
class DocumentSnapshot:
    """A document id with its data, or None when the document doesn't exist."""

    id: str
    data: dict | None

    @property
    def exists(self) -> bool:
        """Whether the document was found."""
        return self.data is not None


def _to_backend_error(exc: Exception) -> BackendError:
    """Classify a database driver failure into a backend code."""
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate == SQLSTATE_INSUFFICIENT_PRIVILEGE:
            return BackendError("permission-denied", str(orig))
        if exc.connection_invalidated or isinstance(exc, OperationalError | InterfaceError):
            return BackendError("unavailable", str(orig))
    if isinstance(exc, OSError):
        return BackendError("unavailable", str(exc))
    return BackendError("unknown", str(exc))


def _field_expression(field: str, value: Any) -> Any:
    """Typed accessor for a JSON field, matching the Python type of the compared value."""
    element = Document.data[field]
    if isinstance(value, bool):
        return element.as_boolean()
    if isinstance(value, int):
        return element.as_integer()
    if isinstance(value, float):
        return element.as_float()
    return element.as_string()


class DocumentStore:
    """
    Document store over a single `documents` table.

    Args:
        session_factory: Factory for sessions on the backing database.
        composite_indexes: Declared composite indexes as
            (collection, filter_field..., order_field) tuples. An ordered query
            that filters on other fields needs a matching index, otherwise it is
            rejected with "failed-precondition".
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        composite_indexes: frozenset[tuple[str, ...]] = frozenset(),
    ) -> None:
        self._session_factory = session_factory
        self._composite_indexes = composite_indexes
        self._last_timestamp: datetime | None = None

    def collection(self, name: str) -> "CollectionRef":
        """Get a reference to a named collection."""
        return CollectionRef(self, name)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Yield a session wrapped in a transaction.

        Commits when the block exits cleanly. Driver failures are re-raised as
        BackendError.
        """
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except BackendError:
            raise
        except (SQLAlchemyError, OSError) as e:
            backend_error = _to_backend_error(e)
            logger.warning("document_store_error code=%s error=%s", backend_error.code, e)
            raise backend_error from e

    def server_now(self) -> str:
        """
        Current server time as an ISO 8601 string.

        Strictly increasing within this store so documents written in quick
        succession keep their write order when sorted.
        """
        now = datetime.now(UTC)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat(timespec="microseconds")

    def resolve(self, data: dict) -> dict:
        """Replace SERVER_TIMESTAMP sentinels (including in nested dicts) with the store clock."""
        now = self.server_now()

        def _resolve(value: Any) -> Any:
            if value is SERVER_TIMESTAMP:
                return now
            if isinstance(value, dict):
                return {k: _resolve(v) for k, v in value.items()}
            return value

        return _resolve(data)

    def check_index(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        order_by: OrderBy | None,
    ) -> None:
        """
        Reject ordered queries that need a composite index that wasn't declared.

        Raises:
            BackendError: With code "failed-precondition".
        """
        if order_by is None or not filters:
            return
        filter_fields = tuple(f.field for f in filters)
        if order_by.field in filter_fields:
            return
        if (collection, *filter_fields, order_by.field) in self._composite_indexes:
            return
        fields = ", ".join((*filter_fields, order_by.field))
        raise BackendError(
            "failed-precondition",
            f"The query requires an index on {collection}({fields}). "
            "Declare it in STORE_COMPOSITE_INDEXES.",
        )


class CollectionRef:
    """Operations scoped to one named collection."""

    def __init__(self, store: DocumentStore, name: str) -> None:
        self._store = store
        self.name = name

    def _key(self, doc_id: str) -> dict[str, str]:
        return {"collection": self.name, "id": doc_id}

    async def get(self, doc_id: str) -> DocumentSnapshot:
        """Fetch a document by id."""
        async with self._store.session() as session:
            document = await session.get(Document, self._key(doc_id))
            return DocumentSnapshot(
                id=doc_id,
                data=dict(document.data) if document is not None else None,
            )

    async def query(
        self,
        filters: Sequence[FieldFilter] = (),
        order_by: OrderBy | None = None,
    ) -> list[DocumentSnapshot]:
        """
        Fetch all documents matching every equality filter.

        Raises:
            BackendError: "failed-precondition" when the ordering needs an
                undeclared composite index.
        """
        self._store.check_index(self.name, filters, order_by)
        statement = select(Document).where(Document.collection == self.name)
        for field_filter in filters:
            statement = statement.where(
                _field_expression(field_filter.field, field_filter.value) == field_filter.value,
            )
        if order_by is not None:
            column = Document.data[order_by.field].as_string()
            statement = statement.order_by(column.desc() if order_by.descending else column.asc())
        async with self._store.session() as session:
            result = await session.execute(statement)
            return [
                DocumentSnapshot(id=document.id, data=dict(document.data))
                for document in result.scalars().all()
            ]

    async def add(self, data: dict) -> str:
        """Create a document with a store-assigned id and return the id."""
        doc_id = uuid4().hex
        async with self._store.session() as session:
            session.add(Document(collection=self.name, id=doc_id, data=self._store.resolve(data)))
        logger.debug("document_added collection=%s id=%s", self.name, doc_id)
        return doc_id

    async def set(self, doc_id: str, data: dict, merge: bool = False) -> None:
        """
        Create or overwrite a document.

        With merge=True, top-level fields not present in data are preserved.
        """
        resolved = self._store.resolve(data)
        async with self._store.session() as session:
            document = await session.get(Document, self._key(doc_id))
            if document is None:
                session.add(Document(collection=self.name, id=doc_id, data=resolved))
            elif merge:
                document.data = {**document.data, **resolved}
            else:
                document.data = resolved

    async def update(self, doc_id: str, data: dict) -> None:
        """
        Merge fields into an existing document.

        Raises:
            BackendError: "not-found" if the document doesn't exist.
        """
        resolved = self._store.resolve(data)
        async with self._store.session() as session:
            document = await session.get(Document, self._key(doc_id))
            if document is None:
                raise BackendError("not-found", f"No document to update: {self.name}/{doc_id}")
            document.data = {**document.data, **resolved}

    async def delete(self, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        async with self._store.session() as session:
            await session.execute(
                delete(Document).where(
                    Document.collection == self.name,
                    Document.id == doc_id,
                ),
            )

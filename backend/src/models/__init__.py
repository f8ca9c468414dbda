"""SQLAlchemy models."""
from models.base import Base, TimestampMixin
from models.document import Document

__all__ = [
    "Base",
    "Document",
    "TimestampMixin",
]

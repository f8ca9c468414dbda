"""Pydantic schemas for book records."""
from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from schemas.validators import validate_date_range, validate_required_text


class BookStatus(StrEnum):
    """Reading status of a book."""

    TO_READ = "to-read"
    READING = "reading"
    COMPLETED = "completed"


# Documents use camelCase field names (userId, startDate, createdAt, ...)
DOCUMENT_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookCreate(BaseModel):
    """
    Schema for creating a new book record.

    Validation happens here, when the form data is turned into a BookCreate.
    The data-access layer trusts an instance it is handed.
    """

    model_config = DOCUMENT_CONFIG

    title: str
    author: str
    status: BookStatus
    start_date: date | None = None
    end_date: date | None = None
    comment: str | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        """Title is required."""
        return validate_required_text(v, "Title")

    @field_validator("author")
    @classmethod
    def check_author(cls, v: str) -> str:
        """Author is required."""
        return validate_required_text(v, "Author")

    @model_validator(mode="after")
    def check_dates(self) -> "BookCreate":
        """End date cannot precede start date."""
        validate_date_range(self.start_date, self.end_date)
        return self

    def to_document(self) -> dict:
        """Serialize to store field names, omitting absent optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BookUpdate(BaseModel):
    """
    Schema for updating an existing book record.

    Only fields explicitly set are written; setting a date or comment to None
    clears it. Title, author and status can be changed but never cleared.
    """

    model_config = DOCUMENT_CONFIG

    title: str | None = None
    author: str | None = None
    status: BookStatus | None = None
    start_date: date | None = None
    end_date: date | None = None
    comment: str | None = None

    @field_validator("title", "author", "status", mode="before")
    @classmethod
    def check_not_cleared(cls, v: object, info: ValidationInfo) -> object:
        """Required fields may be left unset but not set to None."""
        if v is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be cleared")
        return v

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        """Title cannot be blanked."""
        return validate_required_text(v, "Title")

    @field_validator("author")
    @classmethod
    def check_author(cls, v: str) -> str:
        """Author cannot be blanked."""
        return validate_required_text(v, "Author")

    @model_validator(mode="after")
    def check_dates(self) -> "BookUpdate":
        """
        End date cannot precede start date when both are supplied.

        A range spanning the stored record and this update is checked by
        update_book, which sees the stored dates.
        """
        validate_date_range(self.start_date, self.end_date)
        return self

    def to_document(self) -> dict:
        """Serialize only the fields the caller set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class BookRecord(BaseModel):
    """A stored book record merged with its document id."""

    model_config = DOCUMENT_CONFIG

    id: str
    title: str
    author: str
    status: BookStatus
    start_date: date | None = None
    end_date: date | None = None
    comment: str | None = None
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "BookRecord":
        """Build a record from a document id and its stored fields."""
        return cls.model_validate({**data, "id": doc_id})

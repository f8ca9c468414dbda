"""Pydantic schemas for user profiles, registration, and the cached session snapshot."""
from datetime import date

from pydantic import BaseModel, Field, field_validator

from schemas.book import DOCUMENT_CONFIG
from schemas.reading_stats import ReadingStats
from schemas.validators import (
    MIN_PASSWORD_LENGTH,
    validate_email,
    validate_required_text,
)

JOIN_DATE_FORMAT = "%d/%m/%Y"


def format_join_date(day: date) -> str:
    """Format a join date as DD/MM/YYYY."""
    return day.strftime(JOIN_DATE_FORMAT)


def compose_full_name(first_name: str | None, last_name: str | None) -> str:
    """Join first and last name, skipping missing parts."""
    return " ".join(part for part in (first_name, last_name) if part)


class UserProfile(BaseModel):
    """
    Profile document stored in the users collection, merged with auth identity.

    Profiles created before full names were stored only have first/last name;
    display_name covers both shapes.
    """

    model_config = DOCUMENT_CONFIG

    uid: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    join_date: str | None = None

    @property
    def display_name(self) -> str:
        """Stored full name, or first and last name joined."""
        if self.full_name:
            return self.full_name
        return compose_full_name(self.first_name, self.last_name)


class UserProfileUpdate(BaseModel):
    """Schema for updating profile fields."""

    model_config = DOCUMENT_CONFIG

    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None

    @field_validator("first_name", "last_name", "full_name")
    @classmethod
    def check_not_blank(cls, v: str | None) -> str | None:
        """Name fields cannot be blanked."""
        if v is None:
            return None
        return validate_required_text(v, "Name")


class SessionSnapshot(BaseModel):
    """
    Denormalized copy of the signed-in user kept in the local cache.

    IMPORTANT: When adding, removing, or renaming fields, bump
    SNAPSHOT_SCHEMA_VERSION in core/session_cache.py so entries written by an
    older build are ignored.
    """

    model_config = DOCUMENT_CONFIG

    uid: str
    email: str | None = None
    full_name: str = ""
    join_date: str | None = None
    reading_stats: ReadingStats = Field(default_factory=ReadingStats)


class RegistrationRequest(BaseModel):
    """Fields collected by the sign-up form."""

    first_name: str
    last_name: str
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)

    @field_validator("first_name", "last_name")
    @classmethod
    def check_name(cls, v: str) -> str:
        """Names are required."""
        return validate_required_text(v, "Name")

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Email must look like an address."""
        return validate_email(v)

    @property
    def full_name(self) -> str:
        """First and last name joined."""
        return compose_full_name(self.first_name, self.last_name)

"""
Shared validation functions for Pydantic schemas.

Used by the book and user schemas; entity-specific validators remain in their
respective schema modules.
"""
import re
from datetime import date

# Same pattern the registration form checks before submitting
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PASSWORD_LENGTH = 6


def validate_required_text(value: str, field_name: str) -> str:
    """
    Strip a required text value and reject blanks.

    Args:
        value: The raw text.
        field_name: Human-readable field name for the error message.

    Returns:
        The stripped text.

    Raises:
        ValueError: If the value is empty after stripping.
    """
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} cannot be empty")
    return stripped


def validate_email(email: str) -> str:
    """Normalize an email address and check its shape."""
    normalized = email.strip()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid email format: '{normalized}'. "
            "Use an address like name@example.com.",
        )
    return normalized


def validate_date_range(start_date: date | None, end_date: date | None) -> None:
    """Ensure end_date is on or after start_date when both are present."""
    if start_date is not None and end_date is not None and end_date < start_date:
        raise ValueError(
            f"End date {end_date.isoformat()} cannot be before start date "
            f"{start_date.isoformat()}",
        )

"""Tests for user, registration, and session snapshot schemas."""
from datetime import date

import pytest
from pydantic import ValidationError

from schemas.reading_stats import ReadingStats
from schemas.user import (
    RegistrationRequest,
    SessionSnapshot,
    UserProfile,
    UserProfileUpdate,
    compose_full_name,
    format_join_date,
)


def test__format_join_date__day_month_year() -> None:
    """Join dates are DD/MM/YYYY."""
    assert format_join_date(date(2025, 7, 4)) == "04/07/2025"


@pytest.mark.parametrize(("first", "last", "expected"), [
    ("Alice", "Liddell", "Alice Liddell"),
    ("Alice", None, "Alice"),
    (None, None, ""),
])
def test__compose_full_name(first: str | None, last: str | None, expected: str) -> None:
    """Missing name parts are skipped."""
    assert compose_full_name(first, last) == expected


# =============================================================================
# UserProfile Tests
# =============================================================================


def test__user_profile__display_name_prefers_full_name() -> None:
    """A stored full name wins over first and last name."""
    profile = UserProfile.model_validate({
        "uid": "u1",
        "firstName": "Alice",
        "lastName": "Liddell",
        "fullName": "Alice P. Liddell",
    })

    assert profile.display_name == "Alice P. Liddell"


def test__user_profile__display_name_from_legacy_fields() -> None:
    """Profiles without a full name join first and last name."""
    profile = UserProfile.model_validate({"uid": "u1", "firstName": "Alice", "lastName": "Liddell"})

    assert profile.display_name == "Alice Liddell"


def test__user_profile_update__rejects_blank_name() -> None:
    """Names can't be blanked."""
    with pytest.raises(ValidationError):
        UserProfileUpdate(first_name="  ")


def test__user_profile_update__dump_uses_store_names() -> None:
    """Only set fields are dumped, under store names."""
    update = UserProfileUpdate(last_name="Hargreaves")

    assert update.model_dump(by_alias=True, exclude_unset=True) == {"lastName": "Hargreaves"}


# =============================================================================
# RegistrationRequest Tests
# =============================================================================


def test__registration_request__valid() -> None:
    """A complete form validates and composes the full name."""
    request = RegistrationRequest(
        first_name=" Alice ",
        last_name="Liddell",
        email=" alice@example.com ",
        password="secret1",
    )

    assert request.full_name == "Alice Liddell"
    assert request.email == "alice@example.com"


def test__registration_request__rejects_bad_email() -> None:
    """Emails must look like addresses."""
    with pytest.raises(ValidationError, match="Invalid email format"):
        RegistrationRequest(first_name="A", last_name="L", email="alice@", password="secret1")


def test__registration_request__rejects_short_password() -> None:
    """Passwords need at least six characters."""
    with pytest.raises(ValidationError):
        RegistrationRequest(first_name="A", last_name="L", email="a@example.com", password="12345")


# =============================================================================
# SessionSnapshot Tests
# =============================================================================


def test__session_snapshot__defaults_to_zero_stats() -> None:
    """A minimal snapshot carries zeroed statistics."""
    snapshot = SessionSnapshot(uid="u1")

    assert snapshot.reading_stats == ReadingStats()
    assert snapshot.full_name == ""


def test__reading_stats__counts_use_store_names() -> None:
    """counts() omits the timestamp and uses camelCase."""
    stats = ReadingStats(total=3, reading=1, completed=1, to_read=1)

    assert stats.counts() == {"total": 3, "reading": 1, "completed": 1, "toRead": 1}

"""Tests for application configuration."""
import pytest
from pydantic import ValidationError

from core.config import Settings


class TestCompositeIndexParsing:
    """Tests for composite index declarations parsed from STORE_COMPOSITE_INDEXES."""

    def test_default_declares_books_ordering_index(self) -> None:
        """The default covers the newest-first book list query."""
        settings = Settings(_env_file=None)
        assert settings.store_composite_indexes == frozenset({("books", "userId", "createdAt")})

    def test_parse_multiple_indexes(self) -> None:
        """Entries separated by ';' each become one index."""
        settings = Settings(
            _env_file=None,
            STORE_COMPOSITE_INDEXES="books:userId,createdAt;notes:userId,title",
        )
        assert settings.store_composite_indexes == frozenset({
            ("books", "userId", "createdAt"),
            ("notes", "userId", "title"),
        })

    def test_parse_with_whitespace(self) -> None:
        """Whitespace around collections and fields is stripped."""
        settings = Settings(
            _env_file=None,
            STORE_COMPOSITE_INDEXES=" books : userId , createdAt ; ",
        )
        assert settings.store_composite_indexes == frozenset({("books", "userId", "createdAt")})

    def test_parse_empty_string(self) -> None:
        """Empty string declares no indexes."""
        settings = Settings(_env_file=None, STORE_COMPOSITE_INDEXES="")
        assert settings.store_composite_indexes == frozenset()

    def test_malformed_entries_are_skipped(self) -> None:
        """Entries without a collection separator or fields are ignored."""
        settings = Settings(
            _env_file=None,
            STORE_COMPOSITE_INDEXES="books;notes:;books:userId,createdAt",
        )
        assert settings.store_composite_indexes == frozenset({("books", "userId", "createdAt")})


class TestTimeouts:
    """Tests for timeout settings."""

    def test_registration_timeout_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Registration writes get 15 seconds by default."""
        monkeypatch.delenv("REGISTRATION_TIMEOUT", raising=False)
        settings = Settings(_env_file=None)
        assert settings.registration_timeout == 15.0

    def test_registration_timeout_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """REGISTRATION_TIMEOUT overrides the default."""
        monkeypatch.setenv("REGISTRATION_TIMEOUT", "2.5")
        settings = Settings(_env_file=None)
        assert settings.registration_timeout == 2.5

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_non_positive_timeout_rejected(self, value: str) -> None:
        """Zero or negative timeouts are rejected."""
        with pytest.raises(ValidationError, match="greater than zero"):
            Settings(_env_file=None, REGISTRATION_TIMEOUT=value)


class TestRedisConfig:
    """Tests for Redis settings."""

    def test_redis_can_be_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """REDIS_ENABLED=false turns the cache off."""
        monkeypatch.setenv("REDIS_ENABLED", "false")
        settings = Settings(_env_file=None)
        assert settings.redis_enabled is False

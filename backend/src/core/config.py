"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Document store
    database_url: str = Field(
        default="sqlite+aiosqlite:///./booktracker.db",
        validation_alias="DATABASE_URL",
    )
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Composite indexes declared for the document store, e.g. "books:userId,createdAt".
    # Multiple indexes are separated by ";".
    store_composite_indexes_str: str = Field(
        default="books:userId,createdAt",
        validation_alias="STORE_COMPOSITE_INDEXES",
    )

    # Redis - device-local session snapshot cache
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # Identity service (email/password accounts)
    identity_api_key: str = Field(default="", validation_alias="IDENTITY_API_KEY")
    identity_base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        validation_alias="IDENTITY_BASE_URL",
    )
    identity_timeout: float = Field(default=30.0, validation_alias="IDENTITY_TIMEOUT")

    # Deadline for writing the profile and initial stats during registration
    registration_timeout: float = Field(default=15.0, validation_alias="REGISTRATION_TIMEOUT")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("registration_timeout", "identity_timeout")
    @classmethod
    def validate_positive_timeout(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("Timeout must be greater than zero")
        return v

    @property
    def store_composite_indexes(self) -> frozenset[tuple[str, ...]]:
        """
        Parse the composite index declarations.

        "books:userId,createdAt;notes:userId,title" becomes
        {("books", "userId", "createdAt"), ("notes", "userId", "title")}.
        """
        indexes = set()
        for entry in self.store_composite_indexes_str.split(";"):
            entry = entry.strip()
            if not entry or ":" not in entry:
                continue
            collection, fields = entry.split(":", 1)
            field_names = tuple(f.strip() for f in fields.split(",") if f.strip())
            if field_names:
                indexes.add((collection.strip(), *field_names))
        return frozenset(indexes)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

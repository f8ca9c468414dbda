"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from unittest.mock import patch

import fakeredis
import httpx
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.identity import IdentityClient, SessionUser
from core.redis import RedisClient
from core.session_cache import SessionCache
from core.session_context import SessionContext
from db.document_store import DocumentStore
from db.session import create_schema, create_session_factory

IDENTITY_BASE_URL = "https://identity.test/v1"
BOOKS_INDEX = ("books", "userId", "createdAt")


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Create an engine on a fresh SQLite database file for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}", echo=False)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def store(async_engine: AsyncEngine) -> DocumentStore:
    """Document store with the books ordering index declared."""
    return DocumentStore(
        create_session_factory(async_engine),
        composite_indexes=frozenset({BOOKS_INDEX}),
    )


@pytest.fixture
def unindexed_store(async_engine: AsyncEngine) -> DocumentStore:
    """Document store over the same database with no composite indexes declared."""
    return DocumentStore(create_session_factory(async_engine))


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient]:
    """RedisClient connected to an in-process fake Redis server."""
    fake = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
    client = RedisClient("redis://localhost:6379")
    with patch("core.redis.Redis", return_value=fake):
        await client.connect()

    yield client

    await client.flushdb()
    await client.close()


@pytest.fixture
def session_cache(redis_client: RedisClient) -> SessionCache:
    """Session snapshot cache backed by the fake Redis."""
    return SessionCache(redis_client)


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient]:
    """Shared HTTP client for the identity service."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def auth(http_client: httpx.AsyncClient) -> IdentityClient:
    """Identity client pointed at the mocked identity service."""
    return IdentityClient(http_client, api_key="test-api-key", base_url=IDENTITY_BASE_URL)


@pytest.fixture
def mock_identity() -> Generator[respx.MockRouter]:
    """Context manager for mocking identity service responses."""
    with respx.mock(base_url=IDENTITY_BASE_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def alice() -> SessionUser:
    """A signed-in identity."""
    return SessionUser(uid="alice-uid", email="alice@example.com")


@pytest.fixture
def alice_ctx(alice: SessionUser) -> SessionContext:
    """Context acting as alice."""
    return SessionContext.from_user(alice)


@pytest.fixture
def bob_ctx() -> SessionContext:
    """Context acting as a second user."""
    return SessionContext(user_id="bob-uid")


@pytest.fixture
def anonymous_ctx() -> SessionContext:
    """Context with nobody signed in."""
    return SessionContext()

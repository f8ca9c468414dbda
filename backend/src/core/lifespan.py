"""Application lifespan: build the backend clients on startup and release them on shutdown."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from core.config import Settings, get_settings
from core.identity import IdentityClient
from core.logging_config import configure_logging
from core.redis import RedisClient
from core.session_cache import SessionCache
from core.session_context import SessionContext
from db.document_store import DocumentStore
from db.session import create_engine, create_schema, create_session_factory


@dataclass
class AppServices:
    """Clients the screens hand to the service layer."""

    settings: Settings
    engine: AsyncEngine
    store: DocumentStore
    redis: RedisClient
    cache: SessionCache
    auth: IdentityClient

    def context(self) -> SessionContext:
        """Session context for the user signed in right now."""
        return SessionContext.from_user(self.auth.current_user())


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[AppServices]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = settings or get_settings()
    configure_logging(app_settings.log_level)

    # Startup: document store
    engine = create_engine(app_settings)
    await create_schema(engine)
    store = DocumentStore(
        create_session_factory(engine),
        composite_indexes=app_settings.store_composite_indexes,
    )

    # Startup: Connect to Redis for the session cache
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
    )
    await redis_client.connect()

    try:
        async with httpx.AsyncClient(timeout=app_settings.identity_timeout) as http_client:
            yield AppServices(
                settings=app_settings,
                engine=engine,
                store=store,
                redis=redis_client,
                cache=SessionCache(redis_client),
                auth=IdentityClient(
                    http_client,
                    api_key=app_settings.identity_api_key,
                    base_url=app_settings.identity_base_url,
                ),
            )
    finally:
        # Shutdown: Clean up Redis and the database engine
        await redis_client.close()
        await engine.dispose()

"""Local cache of the signed-in user's session snapshot."""
import json
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from schemas.user import SessionSnapshot

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Snapshot schema version - included in the cache key (e.g., "session:v1:snapshot")
#
# Bump this version when SessionSnapshot fields are added, removed, or renamed.
# Snapshots written by an older build are then never found (cache miss), which
# the session bootstrap treats the same as a fresh install.
SNAPSHOT_SCHEMA_VERSION = 1


class SessionCache:
    """
    Cache holding the single denormalized session snapshot of this device.

    Values are stored as JSON strings with the same camelCase field names the
    document store uses. The cache is a read-optimized mirror: callers treat
    its writes as best-effort side effects of the authoritative remote
    operation.
    """

    def __init__(self, redis_client: "RedisClient") -> None:
        """Initialize session cache with Redis client."""
        self._redis = redis_client

    @property
    def key(self) -> str:
        """Cache key for the snapshot."""
        return f"session:v{SNAPSHOT_SCHEMA_VERSION}:snapshot"

    async def get(self) -> SessionSnapshot | None:
        """
        Get the cached snapshot.

        Returns:
            SessionSnapshot if present and readable, None otherwise. An entry
            that no longer deserializes is treated as a miss.
        """
        data = await self._redis.get(self.key)
        if not data:
            logger.debug("session_cache_miss")
            return None
        try:
            snapshot = SessionSnapshot.model_validate(json.loads(data))
        except (ValueError, ValidationError) as e:
            logger.warning("session_cache_unreadable error=%s", e)
            return None
        logger.debug("session_cache_hit uid=%s", snapshot.uid)
        return snapshot

    async def set(self, snapshot: SessionSnapshot) -> bool:
        """
        Write the snapshot, replacing any previous one.

        Returns:
            True if written, False if the cache is unavailable.
        """
        data = snapshot.model_dump_json(by_alias=True)
        written = await self._redis.set(self.key, data)
        logger.debug("session_cache_set uid=%s written=%s", snapshot.uid, written)
        return written

    async def merge(self, updates: dict) -> SessionSnapshot | None:
        """
        Merge fields into an existing snapshot.

        Args:
            updates: Snapshot fields by store name (e.g. {"fullName": "..."}).
                Keys the snapshot does not know are ignored.

        Returns:
            The merged snapshot, or None when no snapshot is cached.
        """
        current = await self.get()
        if current is None:
            return None
        merged = SessionSnapshot.model_validate(
            {**current.model_dump(by_alias=True), **updates},
        )
        await self.set(merged)
        return merged

    async def clear(self) -> bool:
        """Remove the snapshot. Returns False if the cache is unavailable."""
        removed = await self._redis.delete(self.key)
        logger.debug("session_cache_clear removed=%s", removed)
        return removed

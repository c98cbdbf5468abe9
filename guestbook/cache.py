import json
import logging

import redis.asyncio as redis

from guestbook.config import settings

logger = logging.getLogger(__name__)

PUBLIC_COMMENTS_KEY = "comments:public"


class CacheManager:
    """
    Cache-aside manager backed by Redis.

    Every public method tolerates an absent or unreachable Redis: reads
    return None and writes are skipped, so requests fall through to the
    database instead of failing.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits: int = 0
        self._misses: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis ping failed, public comment cache disabled: %s", exc)

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """Return the cached value for *key*, or None on a miss or error."""
        if not self._redis:
            self._misses += 1
            return None
        try:
            data = await self._redis.get(key)
            if data is not None:
                self._hits += 1
                return json.loads(data)
            self._misses += 1
            return None
        except Exception as exc:
            logger.debug("Cache GET error for key=%r: %s", key, exc)
            self._misses += 1
            return None

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET error for key=%r: %s", key, exc)

    async def delete(self, key: str) -> None:
        if not self._redis:
            return
        try:
            await self._redis.delete(key)
        except Exception as exc:
            logger.debug("Cache DELETE error for key=%r: %s", key, exc)

    # ------------------------------------------------------------------
    # Domain-level invalidation
    # ------------------------------------------------------------------

    async def invalidate_public_comments(self) -> None:
        """Drop the public comment list after a submission or approval."""
        await self.delete(PUBLIC_COMMENTS_KEY)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._redis is not None

    @property
    def stats(self) -> dict:
        """Snapshot of hit/miss counters, reported by the health endpoint."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager()

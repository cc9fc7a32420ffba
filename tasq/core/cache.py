import json
import logging
from typing import Any, List, Optional

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class CacheService:
    """Best-effort async Redis access for the notification ledger.

    Built with ``redis_client=None`` when Redis could not be reached at
    startup; every call then returns the empty result.  Redis errors at
    runtime are logged and treated the same way, so a Redis outage never
    propagates into a notification tick.
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis: Optional[Redis] = redis_client

    @property
    def is_available(self) -> bool:
        return self._redis is not None

    # ------------------------------------------------------------------
    # Raw values
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except Exception:
            logger.warning("Redis GET %s failed", key, exc_info=True)
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store *value*; with *ttl* (seconds) the key expires on its own."""
        if self._redis is None:
            return
        try:
            if ttl:
                await self._redis.setex(key, ttl, value)
            else:
                await self._redis.set(key, value)
        except Exception:
            logger.warning("Redis SET %s failed", key, exc_info=True)

    async def delete(self, key: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(key)
        except Exception:
            logger.warning("Redis DEL %s failed", key, exc_info=True)

    async def scan_keys(self, pattern: str) -> List[str]:
        """Collect keys matching a glob *pattern* with ``SCAN`` (never ``KEYS``)."""
        if self._redis is None:
            return []
        try:
            return [key async for key in self._redis.scan_iter(match=pattern)]
        except Exception:
            logger.warning("Redis SCAN %s failed", pattern, exc_info=True)
            return []

    # ------------------------------------------------------------------
    # JSON values
    # ------------------------------------------------------------------

    async def get_json(self, key: str) -> Any:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding malformed JSON at %s", key)
            return None

    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError):
            logger.warning("Value for %s is not JSON-serialisable", key)
            return
        await self.set(key, payload, ttl=ttl)

    async def close(self) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception:
            logger.warning("Error while closing Redis client", exc_info=True)

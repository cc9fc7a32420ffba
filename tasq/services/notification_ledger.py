"""Per-day notification ledger.

Records which task ids already raised a deadline alert for a user on a
given calendar day, so the scanner alerts at most once per task per day.

Keys look like ``notified_upcoming:<user_id>:<YYYY-MM-DD>`` and hold a
JSON list of task ids.  Keys for past days are never read again; they
expire through the Redis TTL or are dropped by ``prune``.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Protocol, Set

from tasq.core.cache import CacheService
from tasq.core.config import settings
from tasq.core.constants import LEDGER_KEY_PREFIX

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


class LedgerStore(Protocol):
    """Key-value capability the ledger persists through."""

    async def get(self, key: str) -> Optional[List[str]]: ...

    async def put(self, key: str, value: List[str]) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, prefix: str) -> List[str]: ...


class RedisLedgerStore:
    """Ledger store backed by Redis with a process-local mirror.

    Every write refreshes a TTL of ``lookahead + 1`` days, so keys for
    days that can no longer matter expire on their own.

    ``CacheService`` reports a failed Redis call as a miss, which would
    read as "nothing alerted yet".  Every write therefore also lands in
    the mirror, and reads return the union of both, so a Redis outage
    never re-opens a day that this process already recorded.
    """

    def __init__(self, cache: CacheService, ttl_seconds: int) -> None:
        self._cache = cache
        self._ttl = ttl_seconds
        self._mirror = InMemoryLedgerStore()

    async def get(self, key: str) -> Optional[List[str]]:
        stored = await self._read_redis(key)
        local = await self._mirror.get(key)
        if stored is None and local is None:
            return None
        merged = list(stored or [])
        merged.extend(v for v in local or [] if v not in merged)
        return merged

    async def put(self, key: str, value: List[str]) -> None:
        await self._mirror.put(key, value)
        await self._cache.set_json(key, value, ttl=self._ttl)

    async def delete(self, key: str) -> None:
        await self._mirror.delete(key)
        await self._cache.delete(key)

    async def keys(self, prefix: str) -> List[str]:
        found = await self._cache.scan_keys(f"{prefix}*")
        found.extend(k for k in await self._mirror.keys(prefix) if k not in found)
        return found

    async def _read_redis(self, key: str) -> Optional[List[str]]:
        value = await self._cache.get_json(key)
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning("Ignoring non-list ledger value at %s", key)
            return None
        return [str(v) for v in value]


class InMemoryLedgerStore:
    """Process-local ledger store, used when Redis is unreachable.

    Survives session restarts within the same process but not a process
    restart.
    """

    def __init__(self) -> None:
        self._data: Dict[str, List[str]] = {}

    async def get(self, key: str) -> Optional[List[str]]:
        value = self._data.get(key)
        return list(value) if value is not None else None

    async def put(self, key: str, value: List[str]) -> None:
        self._data[key] = list(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str) -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


def build_ledger_store(
    cache: CacheService, lookahead_days: Optional[int] = None
) -> LedgerStore:
    """Pick the Redis store when a client is configured, otherwise fall
    back to the in-process store."""
    if lookahead_days is None:
        lookahead_days = settings.DEADLINE_LOOKAHEAD_DAYS
    if cache.is_available:
        return RedisLedgerStore(cache, ttl_seconds=(lookahead_days + 1) * _SECONDS_PER_DAY)
    logger.warning("Redis unavailable – notification ledger kept in process memory")
    return InMemoryLedgerStore()


class NotificationLedger:
    """Per-user, per-day record of already-alerted task ids."""

    def __init__(self, store: LedgerStore, lookahead_days: Optional[int] = None) -> None:
        self._store = store
        self._lookahead_days = (
            settings.DEADLINE_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days
        )

    @staticmethod
    def key(user_id: str, day: date) -> str:
        return f"{LEDGER_KEY_PREFIX}:{user_id}:{day.isoformat()}"

    async def notified(self, user_id: str, day: date) -> Set[str]:
        """Return the task ids already alerted for *user_id* on *day*."""
        return set(await self._store.get(self.key(user_id, day)) or [])

    async def contains(self, user_id: str, day: date, task_id: str) -> bool:
        return str(task_id) in await self.notified(user_id, day)

    async def add_all(self, user_id: str, day: date, task_ids: Iterable[str]) -> Set[str]:
        """Extend the day's entry with *task_ids* and persist it.

        Existing ids are kept; the stored list preserves first-seen
        order.  Returns the resulting set.
        """
        key = self.key(user_id, day)
        current = await self._store.get(key) or []
        merged = list(current)
        seen = set(current)
        for task_id in task_ids:
            task_id = str(task_id)
            if task_id not in seen:
                merged.append(task_id)
                seen.add(task_id)
        if len(merged) != len(current):
            await self._store.put(key, merged)
        return seen

    async def prune(self, user_id: str, today: date) -> int:
        """Drop entries for days older than the lookahead window.

        Returns the number of deleted keys.
        """
        cutoff = today - timedelta(days=self._lookahead_days)
        prefix = f"{LEDGER_KEY_PREFIX}:{user_id}:"
        removed = 0
        for key in await self._store.keys(prefix):
            try:
                day = date.fromisoformat(key[len(prefix):])
            except ValueError:
                continue
            if day < cutoff:
                await self._store.delete(key)
                removed += 1
        if removed:
            logger.debug("Pruned %d ledger key(s) for user %s", removed, user_id)
        return removed

import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from tasq.core.cache import CacheService
from tasq.services.notification_ledger import (
    InMemoryLedgerStore,
    NotificationLedger,
    RedisLedgerStore,
    build_ledger_store,
)

DAY = date(2024, 10, 24)


def _scan_result(*keys):
    async def _gen(match=None):
        for key in keys:
            yield key

    return MagicMock(side_effect=_gen)


class TestLedgerKey:
    def test_key_layout(self):
        assert NotificationLedger.key("42", DAY) == "notified_upcoming:42:2024-10-24"


class TestNotificationLedger:
    @pytest.mark.asyncio
    async def test_unknown_day_is_empty(self, ledger):
        assert await ledger.notified("42", DAY) == set()
        assert not await ledger.contains("42", DAY, "1")

    @pytest.mark.asyncio
    async def test_add_all_merges_with_existing_ids(self, ledger):
        await ledger.add_all("42", DAY, ["1", "2"])
        result = await ledger.add_all("42", DAY, ["2", "3"])

        assert result == {"1", "2", "3"}
        assert await ledger.contains("42", DAY, "3")

    @pytest.mark.asyncio
    async def test_add_all_preserves_insertion_order_in_store(self):
        store = InMemoryLedgerStore()
        ledger = NotificationLedger(store, lookahead_days=4)

        await ledger.add_all("42", DAY, ["9", "3"])
        await ledger.add_all("42", DAY, ["1", "9"])

        assert await store.get("notified_upcoming:42:2024-10-24") == ["9", "3", "1"]

    @pytest.mark.asyncio
    async def test_entries_are_scoped_by_user_and_day(self, ledger):
        await ledger.add_all("42", DAY, ["1"])

        assert await ledger.notified("99", DAY) == set()
        assert await ledger.notified("42", date(2024, 10, 25)) == set()

    @pytest.mark.asyncio
    async def test_prune_drops_only_days_before_window(self):
        store = InMemoryLedgerStore()
        ledger = NotificationLedger(store, lookahead_days=4)
        for day in (date(2024, 10, 19), date(2024, 10, 20), date(2024, 10, 24)):
            await ledger.add_all("42", day, ["1"])
        await ledger.add_all("99", date(2024, 10, 1), ["1"])

        removed = await ledger.prune("42", DAY)

        assert removed == 1
        assert sorted(await store.keys("notified_upcoming:")) == [
            "notified_upcoming:42:2024-10-20",
            "notified_upcoming:42:2024-10-24",
            "notified_upcoming:99:2024-10-01",
        ]

    @pytest.mark.asyncio
    async def test_prune_skips_malformed_keys(self):
        store = InMemoryLedgerStore()
        await store.put("notified_upcoming:42:not-a-date", ["1"])
        ledger = NotificationLedger(store, lookahead_days=4)

        assert await ledger.prune("42", DAY) == 0
        assert await store.get("notified_upcoming:42:not-a-date") == ["1"]


class TestRedisLedgerStore:
    @pytest.mark.asyncio
    async def test_put_writes_json_with_ttl(self, mock_cache, mock_redis):
        store = RedisLedgerStore(mock_cache, ttl_seconds=432000)

        await store.put("notified_upcoming:42:2024-10-24", ["1", "2"])

        mock_redis.setex.assert_awaited_once_with(
            "notified_upcoming:42:2024-10-24", 432000, json.dumps(["1", "2"])
        )

    @pytest.mark.asyncio
    async def test_get_reads_json_list(self, mock_cache, mock_redis):
        mock_redis.get.return_value = json.dumps([1, "2"])
        store = RedisLedgerStore(mock_cache, ttl_seconds=60)

        assert await store.get("k") == ["1", "2"]

    @pytest.mark.asyncio
    async def test_get_ignores_non_list_values(self, mock_cache, mock_redis):
        mock_redis.get.return_value = json.dumps({"1": True})
        store = RedisLedgerStore(mock_cache, ttl_seconds=60)

        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_get_tolerates_redis_errors(self, mock_cache, mock_redis):
        mock_redis.get.side_effect = ConnectionError("redis down")
        ledger = NotificationLedger(RedisLedgerStore(mock_cache, ttl_seconds=60), 4)

        assert await ledger.notified("42", DAY) == set()

    @pytest.mark.asyncio
    async def test_keys_scans_by_prefix(self, mock_cache, mock_redis):
        mock_redis.scan_iter = _scan_result(
            "notified_upcoming:42:2024-10-01", "notified_upcoming:42:2024-10-24"
        )
        store = RedisLedgerStore(mock_cache, ttl_seconds=60)

        keys = await store.keys("notified_upcoming:42:")

        assert len(keys) == 2
        mock_redis.scan_iter.assert_called_once_with(match="notified_upcoming:42:*")

    @pytest.mark.asyncio
    async def test_prune_deletes_stale_redis_keys(self, mock_cache, mock_redis):
        mock_redis.scan_iter = _scan_result(
            "notified_upcoming:42:2024-10-01", "notified_upcoming:42:2024-10-24"
        )
        ledger = NotificationLedger(RedisLedgerStore(mock_cache, ttl_seconds=60), 4)

        assert await ledger.prune("42", DAY) == 1
        mock_redis.delete.assert_awaited_once_with("notified_upcoming:42:2024-10-01")


class TestBuildLedgerStore:
    def test_uses_redis_when_available(self, mock_cache):
        store = build_ledger_store(mock_cache, lookahead_days=4)
        assert isinstance(store, RedisLedgerStore)
        assert store._ttl == 5 * 86400

    def test_falls_back_to_memory_without_redis(self):
        store = build_ledger_store(CacheService(None), lookahead_days=4)
        assert isinstance(store, InMemoryLedgerStore)


class TestRedisOutage:
    @pytest.mark.asyncio
    async def test_recorded_day_survives_failing_redis(self, mock_cache, mock_redis):
        mock_redis.get.side_effect = ConnectionError("redis down")
        mock_redis.setex.side_effect = ConnectionError("redis down")
        ledger = NotificationLedger(RedisLedgerStore(mock_cache, ttl_seconds=60), 4)

        await ledger.add_all("42", DAY, ["1"])

        assert await ledger.notified("42", DAY) == {"1"}

    @pytest.mark.asyncio
    async def test_reads_merge_redis_and_local_entries(self, mock_cache, mock_redis):
        store = RedisLedgerStore(mock_cache, ttl_seconds=60)
        await store.put("k", ["1"])
        mock_redis.get.return_value = json.dumps(["2"])

        assert await store.get("k") == ["2", "1"]

    @pytest.mark.asyncio
    async def test_prune_clears_local_entries_too(self, mock_cache, mock_redis):
        mock_redis.scan_iter = _scan_result()
        store = RedisLedgerStore(mock_cache, ttl_seconds=60)
        ledger = NotificationLedger(store, 4)
        await ledger.add_all("42", date(2024, 10, 1), ["1"])

        assert await ledger.prune("42", DAY) == 1
        assert await store.get("notified_upcoming:42:2024-10-01") is None

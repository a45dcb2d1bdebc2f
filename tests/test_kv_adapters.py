"""Tests for the in-memory and SQLite keyed-store adapters."""

import pytest
import pytest_asyncio

from pattern_memory.protocols import (
    EXPIRY_GRACE_SECONDS,
    BackendError,
    KeyValueBucket,
    KeyValueClient,
)
from pattern_memory.storage import InMemoryKeyValueClient, SQLiteKeyValueClient


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def client(request, tmp_path, manual_clock):
    if request.param == "memory":
        kv = InMemoryKeyValueClient(clock=manual_clock, expiry_grace=30)
    else:
        kv = SQLiteKeyValueClient(tmp_path / "kv.db", clock=manual_clock, expiry_grace=30)
    await kv.connect()
    yield kv
    await kv.close()


class TestKeyValueContract:
    @pytest.mark.asyncio
    async def test_satisfies_protocols(self, client):
        assert isinstance(client, KeyValueClient)
        bucket = await client.create_bucket_if_absent("b")
        assert isinstance(bucket, KeyValueBucket)

    @pytest.mark.asyncio
    async def test_put_get_delete(self, client):
        bucket = await client.create_bucket_if_absent("b")
        await bucket.put("k", b"v1")
        await bucket.put("k", b"v2")
        assert await bucket.get("k") == b"v2"
        assert await bucket.delete("k") is True
        assert await bucket.get("k") is None
        assert await bucket.delete("k") is False

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, client):
        first = await client.create_bucket_if_absent("b")
        await first.put("k", b"v")
        second = await client.create_bucket_if_absent("b")
        assert await second.get("k") == b"v"

    @pytest.mark.asyncio
    async def test_open_missing_bucket_returns_none(self, client):
        assert await client.open_bucket("nope") is None
        await client.create_bucket_if_absent("yes")
        assert await client.open_bucket("yes") is not None

    @pytest.mark.asyncio
    async def test_buckets_are_isolated(self, client):
        a = await client.create_bucket_if_absent("a")
        b = await client.create_bucket_if_absent("b")
        await a.put("k", b"from-a")
        assert await b.get("k") is None

    @pytest.mark.asyncio
    async def test_list_by_prefix_is_sorted_and_literal(self, client):
        bucket = await client.create_bucket_if_absent("b")
        await bucket.put("agents/a_1/recent/2", b"2")
        await bucket.put("agents/a_1/recent/1", b"1")
        await bucket.put("agents/ab1/recent/3", b"3")
        await bucket.put("shared/decisions/4", b"4")

        entries = await bucket.list_by_prefix("agents/a_1/")

        assert entries == [("agents/a_1/recent/1", b"1"), ("agents/a_1/recent/2", b"2")]

    @pytest.mark.asyncio
    async def test_ttl_keys_kept_through_grace(self, client, manual_clock):
        bucket = await client.create_bucket_if_absent("b")
        await bucket.put("short", b"x", ttl_seconds=60)
        await bucket.put("forever", b"y")

        manual_clock.value += 61
        assert await bucket.get("short") == b"x"
        assert [key for key, _ in await bucket.list_by_prefix("")] == ["forever", "short"]

        manual_clock.value += 28
        assert await bucket.get("short") == b"x"

        manual_clock.value += 2
        assert await bucket.get("short") is None
        assert await bucket.list_by_prefix("") == [("forever", b"y")]
        assert await bucket.delete("short") is False

    @pytest.mark.asyncio
    async def test_key_deletable_after_ttl(self, client, manual_clock):
        bucket = await client.create_bucket_if_absent("b")
        await bucket.put("short", b"x", ttl_seconds=60)
        manual_clock.value += 61
        assert await bucket.delete("short") is True
        assert await bucket.get("short") is None

    def test_default_grace_is_a_week(self, tmp_path):
        assert InMemoryKeyValueClient().expiry_grace == EXPIRY_GRACE_SECONDS
        assert SQLiteKeyValueClient(tmp_path / "kv.db").expiry_grace == 7 * 86400

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, client):
        await client.close()
        assert client.is_connected() is False
        with pytest.raises(BackendError, match="Not connected"):
            await client.create_bucket_if_absent("b")


class TestSQLitePersistence:
    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, tmp_path):
        path = tmp_path / "nested" / "kv.db"
        first = SQLiteKeyValueClient(path)
        await first.connect()
        bucket = await first.create_bucket_if_absent("loom-pattern-p1")
        await bucket.put("agents/a1/core/m1", "ünïcode".encode("utf-8"))
        await first.close()

        second = SQLiteKeyValueClient(path)
        await second.connect()
        reopened = await second.open_bucket("loom-pattern-p1")
        assert await reopened.get("agents/a1/core/m1") == "ünïcode".encode("utf-8")

    @pytest.mark.asyncio
    async def test_unopenable_path_is_backend_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        client = SQLiteKeyValueClient(blocker / "kv.db")
        with pytest.raises(BackendError, match="Failed to open SQLite store"):
            await client.connect()

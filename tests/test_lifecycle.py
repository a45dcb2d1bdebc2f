"""Tests for cleanup: expiry, category limits and core reporting."""

from datetime import timedelta

import pytest
from unittest.mock import AsyncMock

from pattern_memory.core import Pattern
from pattern_memory.features.lifecycle import LifecycleManager
from pattern_memory.protocols import ValidationError
from pattern_memory.storage.keys import storage_key
from pattern_memory.storage.scoped import ScopedStore


async def _seed(store, memories):
    for memory in memories:
        key = storage_key(memory.scope, memory.agent_id, memory.category, memory.id)
        await store.set(key, memory)


@pytest.fixture
def store(kv_client):
    return ScopedStore(kv_client)


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expired_memories_deleted(self, pattern, clock):
        await pattern.remember("short lived", category="tasks")
        await pattern.remember("durable", category="longterm")
        clock.advance(hours=24, seconds=1)

        result = await pattern.cleanup()

        assert result.expired == 1
        assert result.deleted == 0
        assert result.errors == []
        remaining = await pattern.recall()
        assert [m.content for m in remaining.private] == ["durable"]

    @pytest.mark.asyncio
    async def test_nothing_expires_early(self, pattern, clock):
        await pattern.remember("still fresh")
        clock.advance(hours=23)
        result = await pattern.cleanup()
        assert result.expired == 0

    @pytest.mark.asyncio
    async def test_covers_every_agent_in_project(self, pattern, other_pattern, clock):
        await pattern.remember("mine", category="tasks")
        await other_pattern.remember("theirs", category="tasks")
        clock.advance(days=2)

        result = await pattern.cleanup(expire_only=True)

        assert result.expired == 2


class TestLimits:
    @pytest.mark.asyncio
    async def test_recent_trimmed_to_limit_oldest_first(self, store, make_memory, clock):
        await store.ensure("private", "proj-1", "agent-1")
        start = clock()
        far_future = start + timedelta(days=30)
        memories = []
        for i in range(1005):
            created = start + timedelta(seconds=i)
            memories.append(make_memory(f"m-{i:04d}", created_at=created, expires_at=far_future))
        await _seed(store, memories)
        manager = LifecycleManager(store, now_fn=clock)

        result = await manager.run("proj-1")

        assert result.deleted == 5
        assert result.expired == 0
        left = await store.keys("agents/agent-1/recent/", "private", "proj-1", "agent-1")
        assert len(left) == 1000
        for i in range(5):
            assert f"agents/agent-1/recent/m-{i:04d}" not in left
        assert "agents/agent-1/recent/m-0005" in left

    @pytest.mark.asyncio
    async def test_limits_are_project_wide(self, store, make_memory, clock):
        await store.ensure("private", "proj-1", "agent-1")
        start = clock()
        later = start + timedelta(seconds=1)
        latest = start + timedelta(seconds=2)
        await _seed(
            store,
            [
                make_memory("a-old", agent_id="agent-1", category="tasks", created_at=start),
                make_memory("b-new", agent_id="agent-2", category="tasks", created_at=later),
                make_memory("a-new", agent_id="agent-1", category="tasks", created_at=latest),
            ],
        )
        manager = LifecycleManager(store, now_fn=clock, limits={"tasks": 2})

        result = await manager.run("proj-1")

        assert result.deleted == 1
        assert await store.keys("agents/", "team", "proj-1", None) == [
            "agents/agent-1/tasks/a-new",
            "agents/agent-2/tasks/b-new",
        ]

    @pytest.mark.asyncio
    async def test_expire_only_skips_limits(self, store, make_memory, clock):
        await store.ensure("private", "proj-1", "agent-1")
        await _seed(store, [make_memory(f"t{i}", category="tasks") for i in range(3)])
        manager = LifecycleManager(store, now_fn=clock, limits={"tasks": 1})

        result = await manager.run("proj-1", expire_only=True)

        assert result.deleted == 0

    @pytest.mark.asyncio
    async def test_core_excess_reported_not_deleted(self, store, make_memory, clock):
        await store.ensure("private", "proj-1", "agent-1")
        await _seed(store, [make_memory(f"c{i}", category="core") for i in range(103)])
        manager = LifecycleManager(store, now_fn=clock)

        result = await manager.run("proj-1")

        assert result.deleted == 0
        assert result.errors == [
            "Core memory limit exceeded: 103 memories (limit: 100, excess: 3). "
            "Core memories cannot be auto-deleted."
        ]
        assert len(await store.keys("agents/", "team", "proj-1", None)) == 103


class TestErrors:
    @pytest.mark.asyncio
    async def test_delete_failure_reported_and_pass_continues(self, store, make_memory, clock):
        await store.ensure("private", "proj-1", "agent-1")
        expired_at = clock()
        await _seed(
            store,
            [
                make_memory("x1", category="tasks", expires_at=expired_at),
                make_memory(
                    "x2",
                    category="tasks",
                    created_at=expired_at + timedelta(seconds=1),
                    expires_at=expired_at,
                ),
            ],
        )
        clock.advance(seconds=5)
        store.delete = AsyncMock(side_effect=[RuntimeError("boom"), True])
        manager = LifecycleManager(store, now_fn=clock)

        result = await manager.run("proj-1")

        assert result.expired == 1
        assert len(result.errors) == 1
        assert "Failed to expire memory x1" in result.errors[0]

    @pytest.mark.asyncio
    async def test_list_failure_reported(self, store, clock):
        await store.ensure("private", "proj-1", "agent-1")
        store.list = AsyncMock(side_effect=RuntimeError("store down"))
        result = await LifecycleManager(store, now_fn=clock).run("proj-1")
        assert result.expired == 0
        assert result.errors and "store down" in result.errors[0]

    @pytest.mark.asyncio
    async def test_missing_project_rejected(self, store):
        with pytest.raises(ValidationError):
            await LifecycleManager(store).run("")

    @pytest.mark.asyncio
    async def test_pattern_cleanup_uses_its_project(self, kv_client, clock):
        p = Pattern(kv_client, project_id="proj-9", agent_id="a1", now_fn=clock)
        await p.open()
        result = await p.cleanup()
        assert result.to_dict() == {"expired": 0, "deleted": 0, "errors": []}
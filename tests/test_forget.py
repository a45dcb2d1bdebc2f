"""Tests for forget and forget_bulk."""

import pytest

from pattern_memory.protocols import AccessDenied, CoreProtected, MemoryNotFound, ValidationError


class TestForget:
    @pytest.mark.asyncio
    async def test_deletes_private_memory(self, pattern):
        memory_id = (await pattern.remember("temporary"))["memoryId"]
        assert await pattern.forget(memory_id) == {"deleted": True, "category": "recent"}
        assert await pattern.find_memory(memory_id) is None

    @pytest.mark.asyncio
    async def test_core_requires_force(self, pattern):
        memory_id = (await pattern.core_memory("who I am"))["memoryId"]
        with pytest.raises(CoreProtected) as exc_info:
            await pattern.forget(memory_id)
        assert exc_info.value.code == "CORE_PROTECTED"

        result = await pattern.forget(memory_id, force=True)

        assert result == {"deleted": True, "category": "core"}

    @pytest.mark.asyncio
    async def test_owner_can_delete_team_memory(self, pattern):
        memory_id = (
            await pattern.remember("use uv", scope="team", category="decisions")
        )["memoryId"]
        assert (await pattern.forget(memory_id))["category"] == "decisions"

    @pytest.mark.asyncio
    async def test_other_agent_cannot_delete_team_memory(self, pattern, other_pattern):
        memory_id = (
            await other_pattern.remember("their call", scope="team", category="decisions")
        )["memoryId"]
        with pytest.raises(AccessDenied) as exc_info:
            await pattern.forget(memory_id)
        assert exc_info.value.details["owner"] == "agent-2"
        assert await pattern.find_memory(memory_id) is not None

    @pytest.mark.asyncio
    async def test_other_agent_cannot_delete_public_memory(self, pattern, other_pattern):
        memory_id = (
            await other_pattern.remember("tip", scope="public", category="learnings")
        )["memoryId"]
        with pytest.raises(AccessDenied):
            await pattern.forget(memory_id)

    @pytest.mark.asyncio
    async def test_other_agents_private_memory_not_found(self, pattern, other_pattern):
        memory_id = (await other_pattern.remember("secret"))["memoryId"]
        with pytest.raises(MemoryNotFound):
            await pattern.forget(memory_id)

    @pytest.mark.asyncio
    async def test_invalid_id(self, pattern):
        with pytest.raises(ValidationError):
            await pattern.forget("has/slash")


class TestForgetBulk:
    @pytest.mark.asyncio
    async def test_collects_failures(self, pattern):
        first = (await pattern.remember("a"))["memoryId"]
        second = (await pattern.remember("b"))["memoryId"]

        result = await pattern.forget_bulk([first, "missing", second])

        assert result["deleted"] == 2
        assert result["failed"] == 1
        assert result["errors"][0]["memoryId"] == "missing"
        assert "not found" in result["errors"][0]["error"]

    @pytest.mark.asyncio
    async def test_stop_on_error(self, pattern):
        kept = (await pattern.remember("kept"))["memoryId"]
        result = await pattern.forget_bulk(["missing", kept], stop_on_error=True)
        assert result["deleted"] == 0
        assert await pattern.find_memory(kept) is not None

    @pytest.mark.asyncio
    async def test_force_applies_to_core(self, pattern):
        core_id = (await pattern.core_memory("identity"))["memoryId"]
        blocked = await pattern.forget_bulk([core_id])
        assert blocked["failed"] == 1
        forced = await pattern.forget_bulk([core_id], force=True)
        assert forced["deleted"] == 1

    @pytest.mark.asyncio
    async def test_rejects_empty_and_oversized(self, pattern):
        with pytest.raises(ValidationError):
            await pattern.forget_bulk([])
        with pytest.raises(ValidationError, match="Too many"):
            await pattern.forget_bulk([f"id-{i}" for i in range(101)])

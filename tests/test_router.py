"""Tests for scope to bucket routing."""

import pytest
from unittest.mock import AsyncMock, Mock

from pattern_memory.protocols import BackendError, BucketNotInitialized, ValidationError
from pattern_memory.storage.router import (
    GLOBAL_BUCKET,
    BucketKind,
    BucketRouter,
    bucket_name_for,
    validate_routing,
)


class TestBucketNames:
    def test_project_scopes_share_project_bucket(self):
        assert bucket_name_for("private", "p1", "a1") == "loom-pattern-p1"
        assert bucket_name_for("team", "p1", None) == "loom-pattern-p1"

    def test_personal_uses_user_bucket(self):
        assert bucket_name_for("personal", None, "a1") == "loom-user-a1"

    def test_public_uses_global_bucket(self):
        assert bucket_name_for("public", None, None) == GLOBAL_BUCKET == "loom-global-pattern"

    def test_shared_alias(self):
        assert bucket_name_for("shared", "p1", None) == "loom-pattern-p1"


class TestValidateRouting:
    def test_private_requires_project_and_agent(self):
        with pytest.raises(ValidationError, match="project_id is required"):
            validate_routing("private", None, "a1")
        with pytest.raises(ValidationError, match="agent_id is required"):
            validate_routing("private", "p1", "")

    def test_team_does_not_need_agent(self):
        assert validate_routing("team", "p1", None) == "team"

    def test_personal_does_not_need_project(self):
        assert validate_routing("personal", None, "a1") == "personal"

    def test_rejects_slash_and_whitespace(self):
        with pytest.raises(ValidationError, match="must not contain"):
            validate_routing("private", "p/1", "a1")
        with pytest.raises(ValidationError, match="must not contain"):
            validate_routing("personal", None, "a 1")


class TestBucketRouter:
    @pytest.mark.asyncio
    async def test_resolve_provisions_once_and_caches(self):
        bucket = Mock(name="bucket")
        client = Mock()
        client.create_bucket_if_absent = AsyncMock(return_value=bucket)
        router = BucketRouter(client)

        first = await router.resolve("private", "p1", "a1")
        second = await router.resolve("team", "p1", None)

        assert first is second
        assert first.kind is BucketKind.PROJECT
        assert first.name == "loom-pattern-p1"
        assert first.bucket is bucket
        client.create_bucket_if_absent.assert_awaited_once_with("loom-pattern-p1")

    @pytest.mark.asyncio
    async def test_lookup_before_resolve_raises(self):
        router = BucketRouter(Mock())
        with pytest.raises(BucketNotInitialized) as exc_info:
            router.lookup("private", "p1", "a1")
        assert exc_info.value.code == "BUCKET_NOT_INITIALIZED"
        assert exc_info.value.details["bucket"] == "loom-pattern-p1"

    @pytest.mark.asyncio
    async def test_lookup_after_resolve(self, kv_client):
        router = BucketRouter(kv_client)
        handle = await router.resolve("personal", None, "a1")
        assert router.lookup("personal", None, "a1") is handle
        assert router.is_initialized("personal", None, "a1")
        assert not router.is_initialized("public", None, None)

    @pytest.mark.asyncio
    async def test_reset_clears_cache(self, kv_client):
        router = BucketRouter(kv_client)
        await router.resolve("public", None, None)
        router.reset()
        assert not router.is_initialized("public", None, None)

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self):
        client = Mock()
        client.create_bucket_if_absent = AsyncMock(side_effect=OSError("disk gone"))
        router = BucketRouter(client)
        with pytest.raises(BackendError, match="disk gone") as exc_info:
            await router.resolve("public", None, None)
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_validation_happens_before_io(self):
        client = Mock()
        client.create_bucket_if_absent = AsyncMock()
        router = BucketRouter(client)
        with pytest.raises(ValidationError):
            await router.resolve("private", "p1", None)
        client.create_bucket_if_absent.assert_not_awaited()

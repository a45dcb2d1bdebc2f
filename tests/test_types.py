"""Tests for memory types, scope rules and timestamp helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from pattern_memory.protocols import InvalidCategoryError, ValidationError
from pattern_memory.types import (
    Memory,
    MemoryMetadata,
    RecallResult,
    expiry_for,
    format_timestamp,
    get_ttl,
    normalize_scope,
    parse_timestamp,
    scope_class_for,
    ScopeClass,
    validate_scope_category,
)


class TestTimestamps:
    def test_format_has_milliseconds_and_z(self):
        dt = datetime(2026, 1, 15, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2026-01-15T12:00:00.123Z"

    def test_naive_datetime_treated_as_utc(self):
        assert format_timestamp(datetime(2026, 1, 1)) == "2026-01-01T00:00:00.000Z"

    def test_parse_z_suffix(self):
        dt = parse_timestamp("2026-01-15T12:00:00.000Z")
        assert dt == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)

    def test_parse_offset_converted_to_utc(self):
        dt = parse_timestamp("2026-01-15T14:00:00+02:00")
        assert dt == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", "yesterday", None, 42])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises(ValidationError, match="since"):
            parse_timestamp(value, "since")


class TestScopeRules:
    def test_shared_alias_maps_to_team(self):
        assert normalize_scope("shared") == "team"

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValidationError, match="Invalid scope"):
            normalize_scope("galaxy")

    def test_scope_classes(self):
        assert scope_class_for("private") is ScopeClass.PRIVATE
        assert scope_class_for("personal") is ScopeClass.PRIVATE
        assert scope_class_for("team") is ScopeClass.SHARED
        assert scope_class_for("public") is ScopeClass.SHARED

    @pytest.mark.parametrize(
        "scope,category",
        [
            ("private", "recent"),
            ("private", "core"),
            ("personal", "longterm"),
            ("team", "decisions"),
            ("public", "learnings"),
            ("shared", "architecture"),
        ],
    )
    def test_valid_combinations(self, scope, category):
        validate_scope_category(scope, category)

    @pytest.mark.parametrize(
        "scope,category",
        [
            ("private", "decisions"),
            ("personal", "learnings"),
            ("team", "recent"),
            ("public", "core"),
        ],
    )
    def test_cross_class_categories_rejected(self, scope, category):
        with pytest.raises(InvalidCategoryError) as exc_info:
            validate_scope_category(scope, category)
        assert exc_info.value.code == "INVALID_CATEGORY"

    def test_unknown_category_rejected(self):
        with pytest.raises(InvalidCategoryError, match="Invalid category"):
            validate_scope_category("private", "misc")


class TestTtl:
    def test_only_recent_and_tasks_expire(self):
        assert get_ttl("recent") == 86400
        assert get_ttl("tasks") == 86400
        for category in ("longterm", "core", "decisions", "architecture", "learnings"):
            assert get_ttl(category) is None

    def test_expiry_for(self):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        assert expiry_for("tasks", now) == now + timedelta(hours=24)
        assert expiry_for("core", now) is None


class TestMemory:
    def test_to_dict_uses_camel_case(self, make_memory):
        memory = make_memory(
            metadata=MemoryMetadata(tags=["a"], priority=1, related_to=["x"], source="cli"),
            expires_at=datetime(2026, 1, 16, 12, tzinfo=timezone.utc),
        )
        data = memory.to_dict()
        assert data["agentId"] == "agent-1"
        assert data["projectId"] == "proj-1"
        assert data["createdAt"] == "2026-01-15T12:00:00.000Z"
        assert data["expiresAt"] == "2026-01-16T12:00:00.000Z"
        assert data["metadata"] == {
            "tags": ["a"],
            "priority": 1,
            "relatedTo": ["x"],
            "source": "cli",
        }
        assert data["version"] == 1

    def test_from_dict_restores_record(self, make_memory):
        original = make_memory(metadata=MemoryMetadata(tags=["t"]))
        restored = Memory.from_dict(original.to_dict())
        assert restored == original

    def test_from_dict_accepts_legacy_shared_scope(self, make_memory):
        data = make_memory(scope="team", category="decisions").to_dict()
        data["scope"] = "shared"
        assert Memory.from_dict(data).scope == "team"

    def test_from_dict_missing_fields(self, make_memory):
        with pytest.raises(ValidationError, match="missing fields: content"):
            Memory.from_dict({k: v for k, v in make_memory().to_dict().items() if k != "content"})

    def test_is_expired(self, make_memory):
        expires = datetime(2026, 1, 16, tzinfo=timezone.utc)
        memory = make_memory(expires_at=expires)
        assert memory.is_expired(expires - timedelta(seconds=1)) is False
        assert memory.is_expired(expires + timedelta(seconds=1)) is True
        assert make_memory().is_expired(expires + timedelta(days=999)) is False


class TestRecallResult:
    def test_by_scope_and_all(self, make_memory):
        result = RecallResult()
        result.by_scope("shared").append(make_memory(scope="team", category="decisions"))
        result.by_scope("private").append(make_memory())
        assert len(result.team) == 1
        assert [m.scope for m in result.all()] == ["private", "team"]

"""
Tests for the Pattern MCP server.

Covers tool definitions, input validation, the call_tool dispatcher and
error rendering.
"""

import json

import pytest
from unittest.mock import AsyncMock, Mock, patch

from mcp.types import TextContent, Tool

from pattern_memory.mcp.handlers import HANDLERS, VALIDATORS
from pattern_memory.mcp.sanitize import (
    sanitize_array,
    validate_bool,
    validate_enum,
    validate_number,
)
from pattern_memory.mcp.server import (
    TOOLS,
    call_tool,
    get_pattern,
    handle_tool_error,
    list_tools,
    set_pattern,
    validate_tool_input,
)
from pattern_memory.protocols import AccessDenied, ValidationError
from pattern_memory.types import RecallResult

EXPECTED_TOOLS = {
    "remember",
    "remember-task",
    "remember-learning",
    "remember-bulk",
    "commit-insight",
    "core-memory",
    "forget",
    "forget-bulk",
    "recall-context",
    "share-learning",
    "cleanup",
    "export-memories",
    "import-memories",
    "pattern_health",
}


@pytest.fixture
def active_pattern(pattern):
    """Install the test Pattern as the server's session."""
    set_pattern(pattern)
    yield pattern
    set_pattern(None)


@pytest.fixture
def patched_get_pattern():
    mock_pattern = Mock()
    with patch("pattern_memory.mcp.server.get_pattern", return_value=mock_pattern):
        yield mock_pattern


def _text(result):
    assert len(result) == 1
    assert isinstance(result[0], TextContent)
    return result[0].text


class TestToolDefinitions:
    @pytest.mark.asyncio
    async def test_list_tools_returns_all_tools(self):
        tools = await list_tools()
        assert len(tools) == 14
        assert all(isinstance(tool, Tool) for tool in tools)
        assert {tool.name for tool in tools} == EXPECTED_TOOLS

    def test_every_tool_has_handler_and_validator(self):
        assert set(HANDLERS) == EXPECTED_TOOLS
        assert set(VALIDATORS) == EXPECTED_TOOLS

    def test_tool_definitions_have_required_fields(self):
        for tool in TOOLS:
            assert tool.description
            assert tool.inputSchema["type"] == "object"
            assert "properties" in tool.inputSchema

    def test_remember_schema(self):
        tool = next(t for t in TOOLS if t.name == "remember")
        props = tool.inputSchema["properties"]
        assert tool.inputSchema["required"] == ["content"]
        assert "shared" in props["scope"]["enum"]
        assert props["scope"]["default"] == "private"


class TestValidateToolInput:
    def test_remember_defaults(self):
        args = validate_tool_input("remember", {"content": "hello"})
        assert args == {
            "content": "hello",
            "scope": "private",
            "category": "recent",
            "metadata": None,
        }

    def test_recall_maps_argument_names(self):
        args = validate_tool_input(
            "recall-context",
            {"scopes": ["team"], "minPriority": 1, "createdAfter": "2026-01-01T00:00:00Z"},
        )
        assert args["scopes"] == ["team"]
        assert args["min_priority"] == 1
        assert args["created_after"] == "2026-01-01T00:00:00Z"
        assert args["categories"] is None

    def test_schema_violation(self):
        with pytest.raises(ValidationError, match="Schema validation failed"):
            validate_tool_input("remember", {"content": 42})

    def test_unknown_tool(self):
        with pytest.raises(ValidationError, match="Unknown tool"):
            validate_tool_input("memory_load", {})

    def test_arguments_must_be_object(self):
        with pytest.raises(ValidationError, match="arguments must be an object"):
            validate_tool_input("cleanup", ["expireOnly"])

    def test_missing_arguments_treated_as_empty(self):
        assert validate_tool_input("cleanup", None) == {"expire_only": False}


class TestCallToolDispatcher:
    @pytest.mark.asyncio
    async def test_remember_then_recall(self, active_pattern):
        stored = json.loads(_text(await call_tool("remember", {"content": "use sqlite"})))
        assert stored["expiresAt"] == "2026-01-16T12:00:00.000Z"

        recalled = json.loads(_text(await call_tool("recall-context", {})))

        assert [m["id"] for m in recalled["private"]] == [stored["memoryId"]]
        assert recalled["counts"]["private"] == 1
        assert "use sqlite" in recalled["summary"]

    @pytest.mark.asyncio
    async def test_forget_core_without_force(self, active_pattern):
        core = json.loads(_text(await call_tool("core-memory", {"content": "who I am"})))
        result = await call_tool("forget", {"memoryId": core["memoryId"]})
        assert _text(result).startswith("Error [CORE_PROTECTED]:")

    @pytest.mark.asyncio
    async def test_validation_error_rendered(self, active_pattern):
        result = await call_tool("remember", {"content": ""})
        assert _text(result).startswith("Error [VALIDATION_ERROR]:")

    @pytest.mark.asyncio
    async def test_unknown_tool_rendered(self, active_pattern):
        assert _text(await call_tool("nope", {})) == "Error [VALIDATION_ERROR]: Unknown tool: nope"

    @pytest.mark.asyncio
    async def test_health(self, active_pattern):
        health = json.loads(_text(await call_tool("pattern_health", {})))
        assert health["status"] == "healthy"
        assert health["agentId"] == "agent-1"

    @pytest.mark.asyncio
    async def test_export_import_round_trip_through_tools(self, active_pattern, tmp_path):
        await call_tool("remember", {"content": "durable", "category": "longterm"})
        target = str(tmp_path / "out.json")
        exported = json.loads(_text(await call_tool("export-memories", {"outputPath": target})))
        imported = json.loads(_text(await call_tool("import-memories", {"inputPath": target})))
        assert exported["exported"] == 1
        assert imported["skipped"] == 1

    @pytest.mark.asyncio
    async def test_arguments_passed_to_pattern(self, patched_get_pattern):
        patched_get_pattern.recall = AsyncMock(return_value=RecallResult())
        await call_tool("recall-context", {"limit": 5, "search": "db"})
        kwargs = patched_get_pattern.recall.await_args.kwargs
        assert kwargs["limit"] == 5
        assert kwargs["search"] == "db"

    @pytest.mark.asyncio
    async def test_unexpected_error_hidden(self, patched_get_pattern):
        patched_get_pattern.cleanup = AsyncMock(side_effect=RuntimeError("disk on fire"))
        result = await call_tool("cleanup", {})
        assert _text(result) == "Internal server error"

    @pytest.mark.asyncio
    async def test_no_session(self):
        set_pattern(None)
        with pytest.raises(RuntimeError):
            get_pattern()
        assert _text(await call_tool("cleanup", {})) == "Internal server error"


class TestHandleToolError:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (AccessDenied("not yours"), "Error [ACCESS_DENIED]: not yours"),
            (ValueError("bad"), "Invalid input: bad"),
            (PermissionError("x"), "Access denied"),
            (FileNotFoundError("x"), "Resource not found"),
            (KeyError("x"), "Internal server error"),
        ],
    )
    def test_rendering(self, error, expected):
        assert _text(handle_tool_error(error, "remember", {"content": "x"})) == expected


class TestSanitizeHelpers:
    def test_sanitize_array(self):
        assert sanitize_array(None, "tags") == []
        assert sanitize_array(["a", "", "b"], "tags") == ["a", "b"]
        with pytest.raises(ValidationError, match="must be an array"):
            sanitize_array("a", "tags")
        with pytest.raises(ValidationError, match="too many"):
            sanitize_array(["a"] * 3, "tags", max_items=2)

    def test_validate_enum(self):
        assert validate_enum(None, "scope", ["private"], "private") == "private"
        with pytest.raises(ValidationError, match="must be one of"):
            validate_enum("secret", "scope", ["private"])

    @pytest.mark.parametrize("value", [True, "3", float("nan"), float("inf")])
    def test_validate_number_rejects(self, value):
        with pytest.raises(ValidationError):
            validate_number(value, "limit")

    def test_validate_number_bounds(self):
        assert validate_number(2, "limit", 1, 3) == 2.0
        with pytest.raises(ValidationError, match=">= 1"):
            validate_number(0, "limit", 1, 3)

    def test_validate_bool(self):
        assert validate_bool(None, "force") is False
        with pytest.raises(ValidationError):
            validate_bool("yes", "force")

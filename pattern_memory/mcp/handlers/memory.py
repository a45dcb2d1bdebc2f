"""Handlers for memory write tools: remember*, core-memory, commit-insight, forget*."""

import json
from typing import Any, Dict

from pattern_memory.core import Pattern
from pattern_memory.mcp.sanitize import (
    sanitize_array,
    sanitize_string,
    validate_bool,
    validate_enum,
    validate_metadata_arg,
)
from pattern_memory.mcp.tool_definitions import VALID_SCOPES_WITH_ALIAS
from pattern_memory.protocols import ValidationError
from pattern_memory.types import VALID_CATEGORIES

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _content(arguments: Dict[str, Any]) -> str:
    # Size is checked in UTF-8 bytes by the core layer.
    content = arguments.get("content")
    if not isinstance(content, str):
        raise ValidationError("content is required and must be a string")
    return content


def validate_remember(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["content"] = _content(arguments)
    sanitized["scope"] = validate_enum(
        arguments.get("scope"), "scope", VALID_SCOPES_WITH_ALIAS, "private"
    )
    sanitized["category"] = validate_enum(
        arguments.get("category"), "category", list(VALID_CATEGORIES), "recent"
    )
    sanitized["metadata"] = validate_metadata_arg(arguments.get("metadata"))
    return sanitized


def validate_content_only(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "content": _content(arguments),
        "metadata": validate_metadata_arg(arguments.get("metadata")),
    }


def validate_remember_bulk(arguments: Dict[str, Any]) -> Dict[str, Any]:
    memories = arguments.get("memories")
    if not isinstance(memories, list):
        raise ValidationError("memories must be an array")
    return {
        "memories": memories,
        "stop_on_error": validate_bool(arguments.get("stopOnError"), "stopOnError", False),
        "validate": validate_bool(arguments.get("validate"), "validate", True),
    }


def validate_commit_insight(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["memory_id"] = sanitize_string(arguments.get("memoryId"), "memoryId", 128)
    new_content = arguments.get("newContent")
    if new_content is not None and not isinstance(new_content, str):
        raise ValidationError("newContent must be a string")
    sanitized["new_content"] = new_content
    return sanitized


def validate_forget(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "memory_id": sanitize_string(arguments.get("memoryId"), "memoryId", 128),
        "force": validate_bool(arguments.get("force"), "force", False),
    }


def validate_forget_bulk(arguments: Dict[str, Any]) -> Dict[str, Any]:
    memory_ids = sanitize_array(arguments.get("memoryIds"), "memoryIds", 128, 100)
    if not memory_ids:
        raise ValidationError("memoryIds must be a non-empty array")
    return {
        "memory_ids": memory_ids,
        "stop_on_error": validate_bool(arguments.get("stopOnError"), "stopOnError", False),
        "force": validate_bool(arguments.get("force"), "force", False),
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_remember(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.remember(
        content=args["content"],
        scope=args["scope"],
        category=args["category"],
        metadata=args.get("metadata"),
    )
    return json.dumps(result, indent=2)


async def handle_remember_task(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.remember_task(args["content"], metadata=args.get("metadata"))
    return json.dumps(result, indent=2)


async def handle_remember_learning(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.remember_learning(args["content"], metadata=args.get("metadata"))
    return json.dumps(result, indent=2)


async def handle_remember_bulk(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.remember_bulk(
        args["memories"], stop_on_error=args["stop_on_error"], validate=args["validate"]
    )
    return json.dumps(result, indent=2)


async def handle_core_memory(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.core_memory(args["content"], metadata=args.get("metadata"))
    return json.dumps(result, indent=2)


async def handle_commit_insight(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.commit_insight(args["memory_id"], new_content=args.get("new_content"))
    return json.dumps(result, indent=2)


async def handle_forget(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.forget(args["memory_id"], force=args["force"])
    return json.dumps(result, indent=2)


async def handle_forget_bulk(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.forget_bulk(
        args["memory_ids"], stop_on_error=args["stop_on_error"], force=args["force"]
    )
    return json.dumps(result, indent=2)


# ---------------------------------------------------------------------------
# Registry dicts
# ---------------------------------------------------------------------------

HANDLERS = {
    "remember": handle_remember,
    "remember-task": handle_remember_task,
    "remember-learning": handle_remember_learning,
    "remember-bulk": handle_remember_bulk,
    "core-memory": handle_core_memory,
    "commit-insight": handle_commit_insight,
    "forget": handle_forget,
    "forget-bulk": handle_forget_bulk,
}

VALIDATORS = {
    "remember": validate_remember,
    "remember-task": validate_content_only,
    "remember-learning": validate_content_only,
    "remember-bulk": validate_remember_bulk,
    "core-memory": validate_content_only,
    "commit-insight": validate_commit_insight,
    "forget": validate_forget,
    "forget-bulk": validate_forget_bulk,
}

"""Handlers for read and maintenance tools: recall-context, share-learning,
cleanup, export-memories, import-memories, pattern_health."""

import json
from typing import Any, Dict, Optional

from pattern_memory.core import Pattern
from pattern_memory.mcp.sanitize import (
    sanitize_array,
    sanitize_string,
    validate_bool,
    validate_enum,
    validate_number,
)
from pattern_memory.types import SHARED_CATEGORIES, VALID_CATEGORIES, VALID_SCOPES

_TIMESTAMP_FIELDS = (
    ("since", "since"),
    ("createdAfter", "created_after"),
    ("createdBefore", "created_before"),
    ("updatedAfter", "updated_after"),
    ("updatedBefore", "updated_before"),
)


def _optional_int(value: Any, field_name: str, low: int, high: int) -> Optional[int]:
    number = validate_number(value, field_name, low, high)
    return None if number is None else int(number)


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_recall_context(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    scopes = sanitize_array(arguments.get("scopes"), "scopes", 20, 4)
    for scope in scopes:
        validate_enum(scope, "scopes", list(VALID_SCOPES))
    sanitized["scopes"] = scopes or None
    categories = sanitize_array(arguments.get("categories"), "categories", 20, 7)
    for category in categories:
        validate_enum(category, "categories", list(VALID_CATEGORIES))
    sanitized["categories"] = categories or None
    # Out-of-range limits are clamped by the recall engine.
    limit = validate_number(arguments.get("limit"), "limit")
    sanitized["limit"] = None if limit is None else int(limit)
    tags = sanitize_array(arguments.get("tags"), "tags", 50, 10)
    sanitized["tags"] = tags or None
    sanitized["min_priority"] = _optional_int(arguments.get("minPriority"), "minPriority", 1, 3)
    sanitized["max_priority"] = _optional_int(arguments.get("maxPriority"), "maxPriority", 1, 3)
    for arg_name, key in _TIMESTAMP_FIELDS:
        value = sanitize_string(arguments.get(arg_name), arg_name, 64, required=False)
        sanitized[key] = value or None
    search = sanitize_string(arguments.get("search"), "search", 500, required=False)
    sanitized["search"] = search or None
    return sanitized


def validate_share_learning(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "memory_id": sanitize_string(arguments.get("memoryId"), "memoryId", 128),
        "category": validate_enum(
            arguments.get("category"), "category", list(SHARED_CATEGORIES), "learnings"
        ),
        "keep_original": validate_bool(arguments.get("keepOriginal"), "keepOriginal", False),
    }


def validate_cleanup(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"expire_only": validate_bool(arguments.get("expireOnly"), "expireOnly", False)}


def validate_export_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    output_path = sanitize_string(arguments.get("outputPath"), "outputPath", 4096, required=False)
    since = sanitize_string(arguments.get("since"), "since", 64, required=False)
    return {
        "output_path": output_path or None,
        "scope": validate_enum(arguments.get("scope"), "scope", list(VALID_SCOPES)),
        "category": validate_enum(arguments.get("category"), "category", list(VALID_CATEGORIES)),
        "since": since or None,
        "include_expired": validate_bool(
            arguments.get("includeExpired"), "includeExpired", False
        ),
    }


def validate_import_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "input_path": sanitize_string(arguments.get("inputPath"), "inputPath", 4096),
        "overwrite_existing": validate_bool(
            arguments.get("overwriteExisting"), "overwriteExisting", False
        ),
        "skip_invalid": validate_bool(arguments.get("skipInvalid"), "skipInvalid", True),
    }


def validate_pattern_health(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_recall_context(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.recall(**args)
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


async def handle_share_learning(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.share_learning(
        args["memory_id"], category=args["category"], keep_original=args["keep_original"]
    )
    return json.dumps(result, indent=2)


async def handle_cleanup(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.cleanup(expire_only=args["expire_only"])
    return json.dumps(result.to_dict(), indent=2)


async def handle_export_memories(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.export_memories(**args)
    return json.dumps(result, indent=2)


async def handle_import_memories(args: Dict[str, Any], p: Pattern) -> str:
    result = await p.import_memories(**args)
    return json.dumps(result, indent=2)


async def handle_pattern_health(args: Dict[str, Any], p: Pattern) -> str:
    return json.dumps(p.health(), indent=2)


# ---------------------------------------------------------------------------
# Registry dicts
# ---------------------------------------------------------------------------

HANDLERS = {
    "recall-context": handle_recall_context,
    "share-learning": handle_share_learning,
    "cleanup": handle_cleanup,
    "export-memories": handle_export_memories,
    "import-memories": handle_import_memories,
    "pattern_health": handle_pattern_health,
}

VALIDATORS = {
    "recall-context": validate_recall_context,
    "share-learning": validate_share_learning,
    "cleanup": validate_cleanup,
    "export-memories": validate_export_memories,
    "import-memories": validate_import_memories,
    "pattern_health": validate_pattern_health,
}

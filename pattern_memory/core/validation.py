"""Input validation for memory operations.

Standalone helpers shared by the Pattern class, the MCP layer and the CLI.
Every helper raises :class:`~pattern_memory.protocols.ValidationError`
(a ``ValueError``) so callers can treat bad input uniformly.

Canonical helpers:
- ``sanitize_string`` - string validation + control-char stripping
- ``validate_content`` - non-empty, UTF-8 size limit
- ``validate_metadata`` - tags, priority, relatedTo, source
- ``validate_memory_id`` - non-empty id safe to embed in a key
"""

import re
from typing import Any, Dict, Optional, Union

from pattern_memory.protocols import ValidationError
from pattern_memory.types import MAX_CONTENT_BYTES, MAX_TAG_LENGTH, MAX_TAGS, MemoryMetadata

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

MAX_MEMORY_ID_LENGTH = 128
MAX_SOURCE_LENGTH = 500
MAX_RELATED = 50


def sanitize_string(
    value: Any, field_name: str, max_length: int = 1000, required: bool = True
) -> str:
    """Sanitize and validate string inputs.

    Args:
        value: The value to sanitize.
        field_name: Name of the field for error messages.
        max_length: Maximum allowed string length.
        required: If True, empty strings are rejected.

    Returns:
        Sanitized string.

    Raises:
        ValidationError: If validation fails.
    """
    if value is None and not required:
        return ""

    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string, got {type(value).__name__}")

    if required and not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValidationError(
            f"{field_name} too long (max {max_length} characters, got {len(value)})"
        )

    # Remove null bytes and control characters except newlines and tabs
    return _CONTROL_CHARS.sub("", value)


def validate_content(content: Any) -> str:
    """Check memory content. Size is measured in UTF-8 bytes.

    Content is stored verbatim; control characters are not stripped.
    """
    if not isinstance(content, str):
        raise ValidationError(f"content must be a string, got {type(content).__name__}")
    if not content.strip():
        raise ValidationError("Content cannot be empty")
    size = len(content.encode("utf-8"))
    if size > MAX_CONTENT_BYTES:
        raise ValidationError(
            f"Content size ({size} bytes) exceeds maximum ({MAX_CONTENT_BYTES} bytes)",
            details={"contentSize": size, "maxSize": MAX_CONTENT_BYTES},
        )
    return content


def validate_memory_id(memory_id: Any) -> str:
    memory_id = sanitize_string(memory_id, "memoryId", MAX_MEMORY_ID_LENGTH)
    memory_id = memory_id.strip()
    if "/" in memory_id or any(ch.isspace() for ch in memory_id):
        raise ValidationError(f"memoryId must not contain '/' or whitespace: {memory_id!r}")
    return memory_id


def validate_metadata(
    metadata: Union[None, MemoryMetadata, Dict[str, Any]],
) -> Optional[MemoryMetadata]:
    """Normalize metadata given as a dataclass or a camelCase dict."""
    if metadata is None:
        return None
    if isinstance(metadata, MemoryMetadata):
        metadata = metadata.to_dict()
    if not isinstance(metadata, dict):
        raise ValidationError(f"metadata must be an object, got {type(metadata).__name__}")

    unknown = set(metadata) - {"tags", "priority", "relatedTo", "source"}
    if unknown:
        raise ValidationError(f"Unknown metadata fields: {', '.join(sorted(unknown))}")

    tags = metadata.get("tags")
    if tags is not None:
        if not isinstance(tags, list):
            raise ValidationError("metadata.tags must be an array")
        if len(tags) > MAX_TAGS:
            raise ValidationError(f"metadata.tags too many items (max {MAX_TAGS}, got {len(tags)})")
        tags = [
            sanitize_string(tag, f"metadata.tags[{i}]", MAX_TAG_LENGTH)
            for i, tag in enumerate(tags)
        ]

    priority = metadata.get("priority")
    if priority is not None:
        if isinstance(priority, float) and priority.is_integer():
            priority = int(priority)
        if isinstance(priority, bool) or priority not in (1, 2, 3):
            raise ValidationError(f"metadata.priority must be 1, 2 or 3, got {priority!r}")

    related = metadata.get("relatedTo")
    if related is not None:
        if not isinstance(related, list):
            raise ValidationError("metadata.relatedTo must be an array")
        if len(related) > MAX_RELATED:
            raise ValidationError(f"metadata.relatedTo too many items (max {MAX_RELATED})")
        related = [validate_memory_id(item) for item in related]

    source = metadata.get("source")
    if source is not None:
        source = sanitize_string(source, "metadata.source", MAX_SOURCE_LENGTH)

    result = MemoryMetadata(tags=tags, priority=priority, related_to=related, source=source)
    return result if result.to_dict() else None

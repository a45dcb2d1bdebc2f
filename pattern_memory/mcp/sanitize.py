"""Shared sanitization utilities for MCP layer.

These functions provide input validation and sanitization
for all MCP tools to ensure consistent security handling.
"""

import math
from typing import Any, Dict, List, Optional

from pattern_memory.core.validation import sanitize_string  # noqa: F401 - re-exported
from pattern_memory.protocols import ValidationError


def sanitize_array(
    value: Any, field_name: str, item_max_length: int = 500, max_items: int = 100
) -> List[str]:
    """Sanitize and validate array inputs.

    Args:
        value: The array to sanitize
        field_name: Name of the field for error messages
        item_max_length: Maximum length for each item
        max_items: Maximum number of items allowed

    Returns:
        List of sanitized strings (empty items removed)

    Raises:
        ValidationError: If validation fails
    """
    if value is None:
        return []

    if not isinstance(value, list):
        raise ValidationError(f"{field_name} must be an array, got {type(value).__name__}")

    if len(value) > max_items:
        raise ValidationError(f"{field_name} too many items (max {max_items}, got {len(value)})")

    if any(item is None for item in value):
        raise ValidationError(f"{field_name} must not contain null items")

    sanitized = []
    for i, item in enumerate(value):
        sanitized_item = sanitize_string(
            item, f"{field_name}[{i}]", item_max_length, required=False
        )
        if sanitized_item:
            sanitized.append(sanitized_item)

    return sanitized


def validate_enum(
    value: Any,
    field_name: str,
    valid_values: List[str],
    default: Optional[str] = None,
    required: bool = False,
) -> Optional[str]:
    """Validate enum values.

    Returns:
        The value, or ``default`` when the value is absent and not required.

    Raises:
        ValidationError: If validation fails
    """
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required")
        return default

    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if value not in valid_values:
        raise ValidationError(f"{field_name} must be one of {valid_values}, got '{value}'")

    return value


def validate_number(
    value: Any,
    field_name: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    default: Optional[float] = None,
) -> Optional[float]:
    """Validate numeric values, rejecting NaN, Infinity and booleans."""
    if value is None:
        return default

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValidationError(f"{field_name} must be a finite number, got {value}")

    if min_val is not None and value < min_val:
        raise ValidationError(f"{field_name} must be >= {min_val}, got {value}")

    if max_val is not None and value > max_val:
        raise ValidationError(f"{field_name} must be <= {max_val}, got {value}")

    return float(value)


def validate_bool(value: Any, field_name: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean, got {type(value).__name__}")
    return value


def validate_metadata_arg(value: Any) -> Optional[Dict[str, Any]]:
    """Shape check only; field rules are applied by the core layer."""
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError(f"metadata must be an object, got {type(value).__name__}")
    return value

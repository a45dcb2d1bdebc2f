"""Core Pattern class and validation helpers."""

from pattern_memory.core.pattern_class import Pattern
from pattern_memory.core.validation import (
    sanitize_string,
    validate_content,
    validate_memory_id,
    validate_metadata,
)

__all__ = [
    "Pattern",
    "sanitize_string",
    "validate_content",
    "validate_memory_id",
    "validate_metadata",
]

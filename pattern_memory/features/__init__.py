"""Recall and retention features built on the ScopedStore."""

from pattern_memory.features.lifecycle import LifecycleManager
from pattern_memory.features.recall import (
    RecallEngine,
    RecallFilters,
    category_priority,
    generate_summary,
)

__all__ = [
    "LifecycleManager",
    "RecallEngine",
    "RecallFilters",
    "category_priority",
    "generate_summary",
]

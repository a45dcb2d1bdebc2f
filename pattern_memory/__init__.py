"""
Pattern - Scoped memory for AI agents.

Private, personal, team and public memories over a keyed store.
"""

from .core import Pattern
from .features import LifecycleManager, RecallEngine, RecallFilters
from .storage import ScopedStore

try:
    from importlib.metadata import version

    __version__ = version("pattern-memory")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Pattern", "LifecycleManager", "RecallEngine", "RecallFilters", "ScopedStore"]

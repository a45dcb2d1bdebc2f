"""Handler registry for MCP tools.

Merges HANDLERS and VALIDATORS from all sub-modules into unified dicts.
"""

from typing import Callable, Dict

from pattern_memory.mcp.handlers.context import HANDLERS as _CONTEXT_H
from pattern_memory.mcp.handlers.context import VALIDATORS as _CONTEXT_V
from pattern_memory.mcp.handlers.memory import HANDLERS as _MEMORY_H
from pattern_memory.mcp.handlers.memory import VALIDATORS as _MEMORY_V

HANDLERS: Dict[str, Callable] = {
    **_MEMORY_H,
    **_CONTEXT_H,
}

VALIDATORS: Dict[str, Callable] = {
    **_MEMORY_V,
    **_CONTEXT_V,
}

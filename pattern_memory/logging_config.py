"""Logging setup.

stdout carries the MCP stdio transport, so every handler writes to stderr.
Components take a ``logger`` argument and fall back to their module logger;
nothing here installs a process-wide logger object of its own.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(debug: bool = False, level: Optional[int] = None) -> logging.Logger:
    """Configure the ``pattern_memory`` logger hierarchy and return its root."""
    root = logging.getLogger("pattern_memory")
    root.setLevel(level if level is not None else (logging.DEBUG if debug else logging.INFO))
    if not any(getattr(h, "_pattern_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._pattern_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.propagate = False
    return root

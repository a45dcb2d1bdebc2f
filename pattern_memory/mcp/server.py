"""
Pattern MCP Server - scoped memory operations for MCP clients.

Exposes the Pattern memory tools over the Model Context Protocol so agents
can store, recall and maintain private, personal, team and public memories.

Security Features:
- JSON Schema validation of every tool call before per-tool sanitization
- Errors rendered as ``Error [CODE]: message`` with no internal detail leaked
- Logging to stderr only; stdout carries the stdio transport

Usage:
    pattern mcp  # Start MCP server (stdio transport)
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from pattern_memory.config import PatternConfig, load_config
from pattern_memory.core import Pattern
from pattern_memory.logging_config import setup_logging
from pattern_memory.mcp.handlers import HANDLERS, VALIDATORS
from pattern_memory.mcp.tool_definitions import TOOLS
from pattern_memory.protocols import PatternError, ValidationError
from pattern_memory.session import open_pattern

logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = Server("pattern")

_SCHEMA_VALIDATORS: Dict[str, Draft7Validator] = {
    tool.name: Draft7Validator(tool.inputSchema) for tool in TOOLS
}

_pattern: Optional[Pattern] = None


def set_pattern(pattern: Optional[Pattern]) -> None:
    """Install the Pattern instance used by tool calls in this process."""
    global _pattern
    _pattern = pattern


def get_pattern() -> Pattern:
    if _pattern is None:
        raise RuntimeError("MCP server has no active Pattern session")
    return _pattern


# =============================================================================
# INPUT VALIDATION & SANITIZATION
# =============================================================================


def _check_schema(name: str, arguments: Dict[str, Any]) -> None:
    validator = _SCHEMA_VALIDATORS.get(name)
    if validator is None:
        return
    errors = sorted(validator.iter_errors(arguments), key=lambda err: list(err.path))
    if errors:
        first = errors[0]
        path = ".".join(str(part) for part in first.path) or "(root)"
        raise ValidationError(f"Schema validation failed at {path}: {first.message}")


def validate_tool_input(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and sanitize MCP tool inputs."""
    try:
        if not isinstance(name, str):
            raise ValueError(f"tool name must be a string, got {type(name).__name__}")
        if not name:
            raise ValueError("tool name must not be empty")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ValueError(f"arguments must be an object, got {type(arguments).__name__}")

        validator = VALIDATORS.get(name)
        if validator is None:
            raise ValueError(f"Unknown tool: {name}")
        _check_schema(name, arguments)
        return validator(arguments)

    except PatternError as e:
        logger.warning(f"Input validation failed for tool {name}: {e.message}")
        raise
    except (ValueError, TypeError) as e:
        logger.warning(f"Input validation failed for tool {name}: {e}")
        raise ValidationError(str(e)) from e


def handle_tool_error(e: Exception, tool_name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Render a failed tool call without leaking internals."""
    if isinstance(e, PatternError):
        logger.warning(f"Tool {tool_name} failed with {e.code}: {e.message}")
        return [TextContent(type="text", text=f"Error [{e.code}]: {e.message}")]

    elif isinstance(e, ValueError):
        logger.warning(f"Invalid input for tool {tool_name}: {e}")
        return [TextContent(type="text", text=f"Invalid input: {str(e)}")]

    elif isinstance(e, PermissionError):
        logger.warning(f"Permission denied for tool {tool_name}")
        return [TextContent(type="text", text="Access denied")]

    elif isinstance(e, FileNotFoundError):
        logger.warning(f"Resource not found for tool {tool_name}")
        return [TextContent(type="text", text="Resource not found")]

    else:
        argument_keys = list(arguments.keys()) if isinstance(arguments, dict) else []
        logger.error(
            f"Internal error in tool {tool_name}",
            extra={
                "tool_name": tool_name,
                "arguments_keys": argument_keys,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        return [TextContent(type="text", text="Internal server error")]


# =============================================================================
# MCP PROTOCOL HANDLERS
# =============================================================================


@mcp.list_tools()
async def list_tools() -> list[Tool]:
    """List available memory tools."""
    return list(TOOLS)


@mcp.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls with validation and error handling."""
    try:
        sanitized_args = validate_tool_input(name, arguments)
        p = get_pattern()

        handler = HANDLERS.get(name)
        if handler is None:
            logger.error(f"Unexpected tool name after validation: {name}")
            return [TextContent(type="text", text=f"Tool '{name}' is not available")]

        result = await handler(sanitized_args, p)
        return [TextContent(type="text", text=result)]

    except Exception as e:
        return handle_tool_error(e, name, arguments)


async def run_server(config: PatternConfig) -> None:
    """Run the MCP server until the client disconnects."""
    pattern = await open_pattern(config)
    set_pattern(pattern)
    logger.info(f"Pattern MCP server ready (backend={config.backend})")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await mcp.run(
                read_stream,
                write_stream,
                mcp.create_initialization_options(),
            )
    finally:
        set_pattern(None)
        await pattern.close()
        logger.info("Pattern MCP server stopped")


def main(config: Optional[PatternConfig] = None) -> None:
    """Entry point for the MCP server."""
    config = config or load_config()
    setup_logging(debug=config.debug)
    asyncio.run(run_server(config))


if __name__ == "__main__":
    main()

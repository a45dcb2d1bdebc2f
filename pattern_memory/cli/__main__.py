"""
Pattern CLI - command-line access to scoped agent memory.

Usage:
    pattern mcp
    pattern recall [--scope S]... [--category C]... [--limit N] [--search Q] [--json]
    pattern cleanup [--expire-only]
    pattern export [--output PATH] [--scope S] [--category C] [--since TS] [--include-expired]
    pattern import PATH [--overwrite] [--strict]
    pattern status [--json]

Global flags:
    --project ID    Project to work in (LOOMINAL_PROJECT_ID)
    --agent ID      Agent id (LOOMINAL_AGENT_ID)
    --db PATH       SQLite database path (PATTERN_DB_PATH)
    --debug         Verbose logging on stderr
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from pattern_memory.config import PatternConfig, load_config
from pattern_memory.core import Pattern
from pattern_memory.logging_config import setup_logging
from pattern_memory.protocols import PatternError
from pattern_memory.session import open_pattern
from pattern_memory.types import VALID_CATEGORIES, VALID_SCOPES, RecallResult

logger = logging.getLogger(__name__)


def format_recall(result: RecallResult) -> str:
    """Human-readable rendering of a recall result."""
    counts = result.counts
    total = counts.private + counts.personal + counts.team + counts.public
    lines = [
        f"Memories: {total} "
        f"(private {counts.private}, personal {counts.personal}, "
        f"team {counts.team}, public {counts.public})",
    ]
    if result.summary:
        lines.append("")
        lines.append(result.summary)
    return "\n".join(lines)


async def cmd_recall(args, p: Pattern) -> None:
    """Print memories visible to this agent."""
    result = await p.recall(
        scopes=args.scope,
        categories=args.category,
        limit=args.limit,
        search=args.search,
    )
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(format_recall(result))


async def cmd_cleanup(args, p: Pattern) -> None:
    result = await p.cleanup(expire_only=args.expire_only)
    print(f"Expired: {result.expired}")
    print(f"Deleted: {result.deleted}")
    for error in result.errors:
        print(f"Error: {error}")


async def cmd_export(args, p: Pattern) -> None:
    result = await p.export_memories(
        output_path=args.output,
        scope=args.scope,
        category=args.category,
        since=args.since,
        include_expired=args.include_expired,
    )
    print(f"Exported {result['exported']} memories to {result['filepath']}")


async def cmd_import(args, p: Pattern) -> None:
    result = await p.import_memories(
        args.path,
        overwrite_existing=args.overwrite,
        skip_invalid=not args.strict,
    )
    print(f"Imported: {result['imported']}")
    print(f"Skipped: {result['skipped']}")
    for error in result["errors"]:
        print(f"  {error}")


async def cmd_status(args, p: Pattern) -> None:
    health = p.health()
    if args.json:
        print(json.dumps(health, indent=2))
        return
    print(f"Status:   {health['status']}")
    print(f"Project:  {health['projectId']}")
    print(f"Agent:    {health['agentId']}")
    if health["isSubagent"]:
        print(f"Parent:   {health['parentId']}")


COMMANDS = {
    "recall": cmd_recall,
    "cleanup": cmd_cleanup,
    "export": cmd_export,
    "import": cmd_import,
    "status": cmd_status,
}


async def run_command(args, config: PatternConfig) -> None:
    p = await open_pattern(config)
    try:
        await COMMANDS[args.command](args, p)
    finally:
        await p.close()


def cmd_mcp(config: PatternConfig) -> None:
    """Start the MCP server on stdio."""
    from pattern_memory.mcp.server import main as mcp_main

    mcp_main(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pattern",
        description="Scoped memory for agents",
    )
    parser.add_argument("--project", "-p", help="Project ID", default=None)
    parser.add_argument("--agent", "-a", help="Agent ID", default=None)
    parser.add_argument("--db", help="SQLite database path", default=None)
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("mcp", help="Start MCP server (stdio transport)")

    p_recall = subparsers.add_parser("recall", help="Recall memories")
    p_recall.add_argument("--scope", "-s", action="append", choices=list(VALID_SCOPES))
    p_recall.add_argument("--category", "-c", action="append", choices=list(VALID_CATEGORIES))
    p_recall.add_argument("--limit", "-l", type=int, default=None)
    p_recall.add_argument("--search", "-q", default=None, help="Text to search for")
    p_recall.add_argument("--json", "-j", action="store_true")

    p_cleanup = subparsers.add_parser("cleanup", help="Expire and trim memories")
    p_cleanup.add_argument("--expire-only", action="store_true",
                           help="Only remove expired memories")

    p_export = subparsers.add_parser("export", help="Export memories to JSON")
    p_export.add_argument("--output", "-o", default=None, help="Output file path")
    p_export.add_argument("--scope", choices=list(VALID_SCOPES), default=None)
    p_export.add_argument("--category", choices=list(VALID_CATEGORIES), default=None)
    p_export.add_argument("--since", default=None, help="ISO 8601 timestamp")
    p_export.add_argument("--include-expired", action="store_true")

    p_import = subparsers.add_parser("import", help="Import memories from JSON")
    p_import.add_argument("path", help="Backup file to import")
    p_import.add_argument("--overwrite", action="store_true",
                          help="Overwrite memories that already exist")
    p_import.add_argument("--strict", action="store_true",
                          help="Fail on the first invalid entry")

    p_status = subparsers.add_parser("status", help="Show store and session status")
    p_status.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(
            project_id=args.project,
            agent_id=args.agent,
            db_path=args.db,
            debug=True if args.debug else None,
        )
    except (ValueError, TypeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(debug=config.debug, level=None if config.debug else logging.WARNING)

    if args.command == "mcp":
        cmd_mcp(config)
        return

    try:
        asyncio.run(run_command(args, config))
    except PatternError as e:
        logger.error(f"[{e.code}] {e.message}")
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""MCP tool schema definitions for Pattern memory operations.

Each Tool() defines the name, description, and JSON Schema for one MCP tool.
Validators and handlers live in pattern_memory.mcp.handlers.
"""

from mcp.types import Tool

from pattern_memory.types import INDIVIDUAL_CATEGORIES, SHARED_CATEGORIES, VALID_CATEGORIES

VALID_SCOPES_WITH_ALIAS = ["private", "personal", "team", "public", "shared"]

METADATA_SCHEMA = {
    "type": "object",
    "description": "Optional metadata for the memory",
    "properties": {
        "tags": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Tags for categorization (max 10 tags, 50 chars each)",
        },
        "priority": {
            "type": "integer",
            "enum": [1, 2, 3],
            "description": "Priority level: 1=high, 2=medium, 3=low",
        },
        "relatedTo": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Related memory IDs",
        },
        "source": {"type": "string", "description": "Source of this memory"},
    },
}

_MEMORY_ENTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "content": {"type": "string"},
        "scope": {"type": "string", "enum": VALID_SCOPES_WITH_ALIAS},
        "category": {"type": "string", "enum": list(VALID_CATEGORIES)},
        "metadata": METADATA_SCHEMA,
    },
    "required": ["content"],
}

TOOLS = [
    Tool(
        name="remember",
        description="Store a memory. Private memories are visible only to you in this project, personal memories follow you across projects, team memories are shared with the project, public memories with everyone. 'recent' and 'tasks' expire after 24 hours.",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The content to remember (max 32KB)",
                },
                "scope": {
                    "type": "string",
                    "enum": VALID_SCOPES_WITH_ALIAS,
                    "description": "Visibility scope (default: private). 'shared' is an alias for 'team'.",
                    "default": "private",
                },
                "category": {
                    "type": "string",
                    "enum": list(VALID_CATEGORIES),
                    "description": f"Memory category (default: recent). Private/personal: {', '.join(INDIVIDUAL_CATEGORIES)}. Team/public: {', '.join(SHARED_CATEGORIES)}.",
                    "default": "recent",
                },
                "metadata": METADATA_SCHEMA,
            },
            "required": ["content"],
        },
    ),
    Tool(
        name="remember-task",
        description="Remember a task for this session (private, expires after 24 hours).",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Task description to remember (max 32KB)",
                },
                "metadata": METADATA_SCHEMA,
            },
            "required": ["content"],
        },
    ),
    Tool(
        name="remember-learning",
        description="Remember a learning or insight (private, recent). Use commit-insight to keep it permanently.",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Learning or insight to remember (max 32KB)",
                },
                "metadata": METADATA_SCHEMA,
            },
            "required": ["content"],
        },
    ),
    Tool(
        name="remember-bulk",
        description="Store up to 100 memories at once. By default all entries are validated before any is stored.",
        inputSchema={
            "type": "object",
            "properties": {
                "memories": {
                    "type": "array",
                    "items": _MEMORY_ENTRY_SCHEMA,
                    "description": "Memories to store",
                },
                "stopOnError": {
                    "type": "boolean",
                    "description": "Stop at the first failure (default: false)",
                    "default": False,
                },
                "validate": {
                    "type": "boolean",
                    "description": "Validate every entry before storing any (default: true)",
                    "default": True,
                },
            },
            "required": ["memories"],
        },
    ),
    Tool(
        name="commit-insight",
        description="Promote a 'recent' or 'tasks' memory to permanent 'longterm' storage, removing its expiry.",
        inputSchema={
            "type": "object",
            "properties": {
                "memoryId": {
                    "type": "string",
                    "description": "UUID of the memory to promote",
                },
                "newContent": {
                    "type": "string",
                    "description": "Optional: Update the content when promoting",
                },
            },
            "required": ["memoryId"],
        },
    ),
    Tool(
        name="core-memory",
        description="Store an identity-defining memory. Core memories follow you across projects, never expire, and are limited to 100.",
        inputSchema={
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Core identity content to remember (max 32KB)",
                },
                "metadata": METADATA_SCHEMA,
            },
            "required": ["content"],
        },
    ),
    Tool(
        name="forget",
        description="Delete a memory. Shared memories can only be deleted by their creator; core memories require force.",
        inputSchema={
            "type": "object",
            "properties": {
                "memoryId": {
                    "type": "string",
                    "description": "UUID of the memory to delete",
                },
                "force": {
                    "type": "boolean",
                    "description": "Required for deleting core memories",
                    "default": False,
                },
            },
            "required": ["memoryId"],
        },
    ),
    Tool(
        name="forget-bulk",
        description="Delete up to 100 memories at once.",
        inputSchema={
            "type": "object",
            "properties": {
                "memoryIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "UUIDs of the memories to delete",
                },
                "stopOnError": {
                    "type": "boolean",
                    "description": "Stop at the first failure (default: false)",
                    "default": False,
                },
                "force": {
                    "type": "boolean",
                    "description": "Allow deleting core memories",
                    "default": False,
                },
            },
            "required": ["memoryIds"],
        },
    ),
    Tool(
        name="recall-context",
        description="Recall memories ranked by importance (core, longterm, shared, recent, tasks) with a summary of at most 4KB. Call at session start.",
        inputSchema={
            "type": "object",
            "properties": {
                "scopes": {
                    "type": "array",
                    "items": {"type": "string", "enum": ["private", "personal", "team", "public"]},
                    "description": "Scopes to search (default: all)",
                },
                "categories": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(VALID_CATEGORIES)},
                    "description": "Filter by categories. Empty array returns all categories.",
                },
                "limit": {
                    "type": "integer",
                    "description": "Max memories to return (default: 50, max: 200)",
                    "default": 50,
                },
                "since": {
                    "type": "string",
                    "description": "ISO 8601 timestamp - only return memories updated after this time",
                },
                "tags": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Only memories carrying all of these tags",
                },
                "minPriority": {"type": "integer", "enum": [1, 2, 3]},
                "maxPriority": {"type": "integer", "enum": [1, 2, 3]},
                "createdAfter": {"type": "string", "description": "ISO 8601 timestamp"},
                "createdBefore": {"type": "string", "description": "ISO 8601 timestamp"},
                "updatedAfter": {"type": "string", "description": "ISO 8601 timestamp"},
                "updatedBefore": {"type": "string", "description": "ISO 8601 timestamp"},
                "search": {
                    "type": "string",
                    "description": "Case-insensitive text search in content",
                },
            },
        },
    ),
    Tool(
        name="share-learning",
        description="Share a private 'longterm' or 'core' memory with the team.",
        inputSchema={
            "type": "object",
            "properties": {
                "memoryId": {
                    "type": "string",
                    "description": "UUID of the private memory to share",
                },
                "category": {
                    "type": "string",
                    "enum": list(SHARED_CATEGORIES),
                    "description": "Target shared category. Default: learnings",
                    "default": "learnings",
                },
                "keepOriginal": {
                    "type": "boolean",
                    "description": "Keep the private copy (default: false)",
                    "default": False,
                },
            },
            "required": ["memoryId"],
        },
    ),
    Tool(
        name="cleanup",
        description="Remove expired memories and enforce storage limits for this project.",
        inputSchema={
            "type": "object",
            "properties": {
                "expireOnly": {
                    "type": "boolean",
                    "description": "If true, only expire TTL memories without enforcing limits. Default: false",
                    "default": False,
                },
            },
        },
    ),
    Tool(
        name="export-memories",
        description="Export memories to a JSON backup file.",
        inputSchema={
            "type": "object",
            "properties": {
                "outputPath": {
                    "type": "string",
                    "description": "Optional file path for export (default: memories-backup-TIMESTAMP.json)",
                },
                "scope": {
                    "type": "string",
                    "enum": ["private", "personal", "team", "public"],
                    "description": "Filter by scope",
                },
                "category": {
                    "type": "string",
                    "enum": list(VALID_CATEGORIES),
                    "description": "Filter by category",
                },
                "since": {
                    "type": "string",
                    "description": "ISO 8601 timestamp - only export memories updated after this date",
                },
                "includeExpired": {
                    "type": "boolean",
                    "description": "Include expired memories (default: false)",
                    "default": False,
                },
            },
        },
    ),
    Tool(
        name="import-memories",
        description="Import memories from a JSON backup file.",
        inputSchema={
            "type": "object",
            "properties": {
                "inputPath": {
                    "type": "string",
                    "description": "Path to JSON backup file",
                },
                "overwriteExisting": {
                    "type": "boolean",
                    "description": "Overwrite if memory ID already exists (default: false)",
                    "default": False,
                },
                "skipInvalid": {
                    "type": "boolean",
                    "description": "Skip invalid entries instead of failing (default: true)",
                    "default": True,
                },
            },
            "required": ["inputPath"],
        },
    ),
    Tool(
        name="pattern_health",
        description="Report store connectivity and the current session's identity.",
        inputSchema={"type": "object", "properties": {}},
    ),
]

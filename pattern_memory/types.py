"""
Shared memory types for pattern_memory.

A Memory is the only record the system stores. Every component, from the
key codec up to the MCP handlers, speaks in terms of the dataclasses and
enums defined here. Serialized records use camelCase field names so they
stay readable by other clients of the same keyed store.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pattern_memory.protocols import InvalidCategoryError, ValidationError

# === Shared Utility Functions ===


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render an ISO 8601 UTC timestamp with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Raises:
        ValidationError: If the value is not a parseable timestamp.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field_name} must be an ISO 8601 timestamp")
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                f"{field_name} is not a valid ISO 8601 timestamp: {value!r}"
            ) from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_memory_id() -> str:
    return str(uuid.uuid4())


# === Enums ===


class Scope(str, Enum):
    """Visibility class of a memory."""

    PRIVATE = "private"  # this agent, this project
    PERSONAL = "personal"  # this agent, every project
    TEAM = "team"  # every agent, this project
    PUBLIC = "public"  # every agent, every project


class MemoryCategory(str, Enum):
    # Individual categories
    RECENT = "recent"
    TASKS = "tasks"
    LONGTERM = "longterm"
    CORE = "core"
    # Shared categories
    DECISIONS = "decisions"
    ARCHITECTURE = "architecture"
    LEARNINGS = "learnings"


class ScopeClass(str, Enum):
    """Key-level grouping of scopes; a key alone only carries this much."""

    PRIVATE = "private"
    SHARED = "shared"


# === Constants ===

VALID_SCOPES = tuple(s.value for s in Scope)
VALID_CATEGORIES = tuple(c.value for c in MemoryCategory)

INDIVIDUAL_SCOPES = frozenset({Scope.PRIVATE.value, Scope.PERSONAL.value})
SHARED_SCOPES = frozenset({Scope.TEAM.value, Scope.PUBLIC.value})
PROJECT_SCOPES = frozenset({Scope.PRIVATE.value, Scope.TEAM.value})

INDIVIDUAL_CATEGORIES = (
    MemoryCategory.RECENT.value,
    MemoryCategory.TASKS.value,
    MemoryCategory.LONGTERM.value,
    MemoryCategory.CORE.value,
)
SHARED_CATEGORIES = (
    MemoryCategory.DECISIONS.value,
    MemoryCategory.ARCHITECTURE.value,
    MemoryCategory.LEARNINGS.value,
)

# 24 hours for short-lived working memory
RECENT_TTL_SECONDS = 86400
TTL_SECONDS: Dict[str, int] = {
    MemoryCategory.RECENT.value: RECENT_TTL_SECONDS,
    MemoryCategory.TASKS.value: RECENT_TTL_SECONDS,
}

MAX_CONTENT_BYTES = 32 * 1024
MAX_SUMMARY_BYTES = 4096
MAX_TAGS = 10
MAX_TAG_LENGTH = 50

CATEGORY_LIMITS: Dict[str, int] = {
    MemoryCategory.RECENT.value: 1000,
    MemoryCategory.TASKS.value: 500,
    MemoryCategory.CORE.value: 100,
}
MAX_CORE_MEMORIES = CATEGORY_LIMITS[MemoryCategory.CORE.value]

MEMORY_SCHEMA_VERSION = 1

# Older clients wrote team memories with the scope name "shared".
LEGACY_SCOPE_ALIASES = {"shared": Scope.TEAM.value}


def scope_class_for(scope: str) -> ScopeClass:
    if scope in SHARED_SCOPES:
        return ScopeClass.SHARED
    if scope in INDIVIDUAL_SCOPES:
        return ScopeClass.PRIVATE
    raise ValidationError(f"Invalid scope: {scope!r}. Must be one of {list(VALID_SCOPES)}")


def normalize_scope(scope: Any) -> str:
    """Return the canonical scope name, mapping legacy aliases."""
    if isinstance(scope, Scope):
        return scope.value
    if not isinstance(scope, str):
        raise ValidationError(f"scope must be a string, got {type(scope).__name__}")
    scope = LEGACY_SCOPE_ALIASES.get(scope, scope)
    if scope not in VALID_SCOPES:
        raise ValidationError(f"Invalid scope: {scope!r}. Must be one of {list(VALID_SCOPES)}")
    return scope


def validate_scope_category(scope: Any, category: Any) -> None:
    """Check that a category belongs to the class of its scope.

    Raises:
        ValidationError: If the scope is unknown.
        InvalidCategoryError: If the category is unknown or crosses classes.
    """
    scope = normalize_scope(scope)
    if isinstance(category, MemoryCategory):
        category = category.value
    if category not in VALID_CATEGORIES:
        raise InvalidCategoryError(
            f"Invalid category: {category!r}. Must be one of {list(VALID_CATEGORIES)}",
            details={"category": category},
        )
    if scope in SHARED_SCOPES and category not in SHARED_CATEGORIES:
        raise InvalidCategoryError(
            f"Invalid category '{category}' for {scope} scope. "
            f"Must be one of: {', '.join(SHARED_CATEGORIES)}",
            details={"scope": scope, "category": category},
        )
    if scope in INDIVIDUAL_SCOPES and category not in INDIVIDUAL_CATEGORIES:
        raise InvalidCategoryError(
            f"Invalid category '{category}' for {scope} scope. "
            f"Must be one of: {', '.join(INDIVIDUAL_CATEGORIES)}",
            details={"scope": scope, "category": category},
        )


def get_ttl(category: str) -> Optional[int]:
    """TTL in seconds for a category, or None if it never expires."""
    return TTL_SECONDS.get(category)


# === Dataclasses ===


@dataclass
class MemoryMetadata:
    tags: Optional[List[str]] = None
    priority: Optional[int] = None  # 1 (highest) .. 3 (lowest)
    related_to: Optional[List[str]] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.tags is not None:
            data["tags"] = list(self.tags)
        if self.priority is not None:
            data["priority"] = self.priority
        if self.related_to is not None:
            data["relatedTo"] = list(self.related_to)
        if self.source is not None:
            data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["MemoryMetadata"]:
        if not data:
            return None
        return cls(
            tags=data.get("tags"),
            priority=data.get("priority"),
            related_to=data.get("relatedTo"),
            source=data.get("source"),
        )


@dataclass
class Memory:
    """A single stored memory.

    ``scope`` is carried on the record itself: a decoded key cannot tell
    team from public, or private from personal.
    """

    id: str
    agent_id: str
    project_id: str
    scope: str
    category: str
    content: str
    created_at: datetime
    updated_at: datetime
    metadata: Optional[MemoryMetadata] = None
    expires_at: Optional[datetime] = None
    version: int = MEMORY_SCHEMA_VERSION

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "agentId": self.agent_id,
            "projectId": self.project_id,
            "scope": self.scope,
            "category": self.category,
            "content": self.content,
        }
        if self.metadata is not None:
            meta = self.metadata.to_dict()
            if meta:
                data["metadata"] = meta
        data["createdAt"] = format_timestamp(self.created_at)
        data["updatedAt"] = format_timestamp(self.updated_at)
        if self.expires_at is not None:
            data["expiresAt"] = format_timestamp(self.expires_at)
        data["version"] = self.version
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Memory":
        """Build a Memory from its serialized form.

        Raises:
            ValidationError: If a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValidationError(f"memory record must be an object, got {type(data).__name__}")
        missing = [
            name
            for name in ("id", "agentId", "projectId", "scope", "category", "content", "createdAt")
            if name not in data
        ]
        if missing:
            raise ValidationError(f"memory record missing fields: {', '.join(missing)}")
        created_at = parse_timestamp(data["createdAt"], "createdAt")
        updated_raw = data.get("updatedAt")
        expires_raw = data.get("expiresAt")
        return cls(
            id=data["id"],
            agent_id=data["agentId"],
            project_id=data["projectId"],
            scope=normalize_scope(data["scope"]),
            category=data["category"],
            content=data["content"],
            metadata=MemoryMetadata.from_dict(data.get("metadata")),
            created_at=created_at,
            updated_at=parse_timestamp(updated_raw, "updatedAt") if updated_raw else created_at,
            expires_at=parse_timestamp(expires_raw, "expiresAt") if expires_raw else None,
            version=int(data.get("version", MEMORY_SCHEMA_VERSION)),
        )


@dataclass
class RecallCounts:
    private: int = 0
    personal: int = 0
    team: int = 0
    public: int = 0
    expired: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "private": self.private,
            "personal": self.personal,
            "team": self.team,
            "public": self.public,
            "expired": self.expired,
        }


@dataclass
class RecallResult:
    private: List[Memory] = field(default_factory=list)
    personal: List[Memory] = field(default_factory=list)
    team: List[Memory] = field(default_factory=list)
    public: List[Memory] = field(default_factory=list)
    summary: str = ""
    counts: RecallCounts = field(default_factory=RecallCounts)

    def by_scope(self, scope: str) -> List[Memory]:
        return getattr(self, normalize_scope(scope))

    def all(self) -> List[Memory]:
        return self.private + self.personal + self.team + self.public

    def to_dict(self) -> Dict[str, Any]:
        return {
            "private": [m.to_dict() for m in self.private],
            "personal": [m.to_dict() for m in self.personal],
            "team": [m.to_dict() for m in self.team],
            "public": [m.to_dict() for m in self.public],
            "summary": self.summary,
            "counts": self.counts.to_dict(),
        }


@dataclass
class CleanupResult:
    expired: int = 0
    deleted: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"expired": self.expired, "deleted": self.deleted, "errors": list(self.errors)}


def expiry_for(category: str, now: datetime) -> Optional[datetime]:
    ttl = get_ttl(category)
    if ttl is None:
        return None
    return now + timedelta(seconds=ttl)

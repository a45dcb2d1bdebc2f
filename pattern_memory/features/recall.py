"""Context recall.

Gathers the memories an agent can see, filters them, ranks them, and builds
a compact markdown summary that fits in a prompt.

Ranking puts durable knowledge first::

    core (1) > longterm (2) > decisions/architecture/learnings (3) > recent (4) > tasks (5)

and within a rank, the most recently updated memory wins.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from pattern_memory.protocols import InvalidCategoryError, ValidationError
from pattern_memory.storage.keys import SHARED_PREFIX, personal_prefix, private_prefix
from pattern_memory.storage.router import validate_routing
from pattern_memory.storage.scoped import ScopedStore
from pattern_memory.types import (
    MAX_SUMMARY_BYTES,
    VALID_CATEGORIES,
    VALID_SCOPES,
    Memory,
    MemoryCategory,
    RecallCounts,
    RecallResult,
    Scope,
    normalize_scope,
    parse_timestamp,
    utc_now,
)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
DEFAULT_PRIORITY = 2

_CATEGORY_PRIORITY: Dict[str, int] = {
    MemoryCategory.CORE.value: 1,
    MemoryCategory.LONGTERM.value: 2,
    MemoryCategory.DECISIONS.value: 3,
    MemoryCategory.ARCHITECTURE.value: 3,
    MemoryCategory.LEARNINGS.value: 3,
    MemoryCategory.RECENT.value: 4,
    MemoryCategory.TASKS.value: 5,
}


def category_priority(category: str) -> int:
    return _CATEGORY_PRIORITY.get(category, 6)


def effective_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(1, int(limit)), MAX_LIMIT)


def _optional_time(value, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return parse_timestamp(value, field_name)


def _check_priority(value, field_name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value not in (1, 2, 3):
        raise ValidationError(f"{field_name} must be 1, 2 or 3, got {value!r}")
    return value


@dataclass
class RecallFilters:
    """Recall options. Timestamps may be given as ISO strings or datetimes."""

    scopes: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    limit: Optional[int] = None
    since: Optional[object] = None
    tags: Optional[List[str]] = None
    min_priority: Optional[int] = None
    max_priority: Optional[int] = None
    created_after: Optional[object] = None
    created_before: Optional[object] = None
    updated_after: Optional[object] = None
    updated_before: Optional[object] = None
    search: Optional[str] = None


@dataclass
class _ResolvedFilters:
    scopes: List[str]
    categories: List[str]
    limit: int
    since: Optional[datetime]
    tags: List[str]
    min_priority: Optional[int]
    max_priority: Optional[int]
    created_after: Optional[datetime]
    created_before: Optional[datetime]
    updated_after: Optional[datetime]
    updated_before: Optional[datetime]
    search: Optional[str]
    applied: List[str] = field(default_factory=list)


def resolve_filters(filters: Optional[RecallFilters]) -> _ResolvedFilters:
    """Validate and normalize filters. Raises before any store access."""
    filters = filters or RecallFilters()
    scopes = [normalize_scope(s) for s in filters.scopes] if filters.scopes else list(VALID_SCOPES)
    categories = list(filters.categories or [])
    for category in categories:
        if category not in VALID_CATEGORIES:
            raise InvalidCategoryError(
                f"Invalid category: {category!r}. Must be one of {list(VALID_CATEGORIES)}"
            )
    resolved = _ResolvedFilters(
        scopes=scopes,
        categories=categories,
        limit=effective_limit(filters.limit),
        since=_optional_time(filters.since, "since"),
        tags=list(filters.tags or []),
        min_priority=_check_priority(filters.min_priority, "minPriority"),
        max_priority=_check_priority(filters.max_priority, "maxPriority"),
        created_after=_optional_time(filters.created_after, "createdAfter"),
        created_before=_optional_time(filters.created_before, "createdBefore"),
        updated_after=_optional_time(filters.updated_after, "updatedAfter"),
        updated_before=_optional_time(filters.updated_before, "updatedBefore"),
        search=filters.search or None,
    )
    if (
        resolved.min_priority is not None
        and resolved.max_priority is not None
        and resolved.min_priority > resolved.max_priority
    ):
        raise ValidationError("minPriority must be <= maxPriority")
    return resolved


def _in_range(value: datetime, after: Optional[datetime], before: Optional[datetime]) -> bool:
    if after is not None and value < after:
        return False
    if before is not None and value > before:
        return False
    return True


def apply_filters(memories: List[Memory], f: _ResolvedFilters) -> List[Memory]:
    """Apply every filter in a fixed order. All filters must pass."""
    result = memories
    if f.categories:
        result = [m for m in result if m.category in f.categories]
    if f.since is not None:
        result = [m for m in result if m.updated_at > f.since]
    if f.tags:
        result = [
            m
            for m in result
            if all(tag in ((m.metadata and m.metadata.tags) or []) for tag in f.tags)
        ]
    if f.min_priority is not None or f.max_priority is not None:
        low = f.min_priority if f.min_priority is not None else 1
        high = f.max_priority if f.max_priority is not None else 3
        result = [
            m
            for m in result
            if low
            <= (
                m.metadata.priority
                if m.metadata and m.metadata.priority is not None
                else DEFAULT_PRIORITY
            )
            <= high
        ]
    if f.created_after is not None or f.created_before is not None:
        result = [m for m in result if _in_range(m.created_at, f.created_after, f.created_before)]
    if f.updated_after is not None or f.updated_before is not None:
        result = [m for m in result if _in_range(m.updated_at, f.updated_after, f.updated_before)]
    if f.search:
        needle = f.search.lower()
        result = [m for m in result if needle in m.content.lower()]
    return result


def rank(memories: List[Memory]) -> List[Memory]:
    # Stable sort twice: newest first, then by category rank.
    ordered = sorted(memories, key=lambda m: m.updated_at, reverse=True)
    return sorted(ordered, key=lambda m: category_priority(m.category))


def _truncate_utf8(text: str, max_bytes: int) -> str:
    """Longest prefix of ``text`` that encodes to at most ``max_bytes``."""
    if max_bytes <= 0:
        return ""
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def generate_summary(memories: List[Memory], max_bytes: int = MAX_SUMMARY_BYTES) -> str:
    """Render memories as ``## {category}`` sections within ``max_bytes``.

    When the next entry does not fit, a truncated fragment ending in ``...``
    is added if there is room for more than the header plus 20 bytes.
    """
    parts: List[str] = []
    used = 0
    for memory in memories:
        header = f"## {memory.category}\n"
        body = f"{memory.content}\n\n"
        header_bytes = len(header.encode("utf-8"))
        entry_bytes = header_bytes + len(body.encode("utf-8"))
        if used + entry_bytes > max_bytes:
            remaining = max_bytes - used
            if remaining > header_bytes + 20:
                # 4 bytes reserved for the "...\n" marker
                parts.append(header + _truncate_utf8(body, remaining - header_bytes - 4) + "...\n")
            break
        parts.append(header + body)
        used += entry_bytes
    return "".join(parts).strip()


class RecallEngine:
    def __init__(
        self,
        store: ScopedStore,
        logger: Optional[logging.Logger] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self._now = now_fn

    async def _fetch(
        self, scope: str, project_id: str, agent_id: str, parent_id: Optional[str]
    ) -> List[Memory]:
        if scope == Scope.PRIVATE.value:
            memories = await self.store.list(private_prefix(agent_id), scope, project_id, agent_id)
            if parent_id:
                parent = await self.store.list(
                    private_prefix(parent_id), scope, project_id, parent_id
                )
                # Parent core memories stay invisible to sub-agents.
                inherited = [m for m in parent if m.category != MemoryCategory.CORE.value]
                self.logger.debug(
                    f"Inherited {len(inherited)} of {len(parent)} parent memories from {parent_id}"
                )
                memories = memories + inherited
            return memories
        if scope == Scope.PERSONAL.value:
            return await self.store.list(personal_prefix(agent_id), scope, project_id, agent_id)
        return await self.store.list(SHARED_PREFIX, scope, project_id, agent_id)

    async def recall(
        self,
        project_id: str,
        agent_id: str,
        filters: Optional[RecallFilters] = None,
        parent_id: Optional[str] = None,
    ) -> RecallResult:
        """Recall memories visible to ``agent_id``.

        ``parent_id`` is set for sub-agents: the parent's private memories
        are merged in, minus its core memories.

        Raises:
            ValidationError: On malformed filters or routing context.
            BucketNotInitialized: If the project bucket was never opened.
        """
        f = resolve_filters(filters)
        for scope in f.scopes:
            validate_routing(scope, project_id, agent_id)
        if parent_id:
            validate_routing(Scope.PRIVATE.value, project_id, parent_id)

        now = self._now()
        fetched: List[Tuple[str, Memory]] = []
        for scope in VALID_SCOPES:
            if scope not in f.scopes:
                continue
            memories = await self._fetch(scope, project_id, agent_id, parent_id)
            self.logger.debug(f"Fetched {len(memories)} {scope} memories")
            fetched.extend((scope, m) for m in memories)

        active = []
        expired = 0
        for scope, memory in fetched:
            if memory.is_expired(now):
                expired += 1
                continue
            # The bucket a memory came from decides its scope.
            memory.scope = scope
            active.append(memory)

        selected = rank(apply_filters(active, f))[: f.limit]

        result = RecallResult()
        for memory in selected:
            result.by_scope(memory.scope).append(memory)
        result.summary = generate_summary(selected)
        result.counts = RecallCounts(
            private=len(result.private),
            personal=len(result.personal),
            team=len(result.team),
            public=len(result.public),
            expired=expired,
        )
        self.logger.info(
            f"Recalled {len(selected)} memories "
            f"(private={result.counts.private} personal={result.counts.personal} "
            f"team={result.counts.team} public={result.counts.public} expired={expired})"
        )
        return result

"""Memory write operations for Pattern."""

from typing import Any, Dict, List, Optional, Union

from pattern_memory.core.validation import validate_content, validate_memory_id, validate_metadata
from pattern_memory.protocols import (
    CoreProtected,
    MemoryNotFound,
    PatternError,
    StorageFull,
    ValidationError,
)
from pattern_memory.security.content_scanner import warn_if_sensitive
from pattern_memory.storage.keys import storage_key
from pattern_memory.types import (
    INDIVIDUAL_CATEGORIES,
    MAX_CORE_MEMORIES,
    Memory,
    MemoryCategory,
    MemoryMetadata,
    Scope,
    expiry_for,
    format_timestamp,
    get_ttl,
    new_memory_id,
    normalize_scope,
    validate_scope_category,
)

MAX_BULK_MEMORIES = 100

MetadataInput = Union[None, MemoryMetadata, Dict[str, Any]]


class WritersMixin:
    """Memory write operations for Pattern."""

    def _prepare(
        self,
        content: Any,
        scope: Any,
        category: Any,
        metadata: MetadataInput,
    ):
        """Validate a write and return (content, scope, category, metadata)."""
        content = validate_content(content)
        scope = normalize_scope(scope)
        if isinstance(category, MemoryCategory):
            category = category.value
        validate_scope_category(scope, category)
        return content, scope, category, validate_metadata(metadata)

    def _build_memory(
        self,
        content: str,
        scope: str,
        category: str,
        metadata: Optional[MemoryMetadata],
        memory_id: Optional[str] = None,
    ) -> Memory:
        now = self._now()
        return Memory(
            id=memory_id or new_memory_id(),
            agent_id=self.agent_id,
            project_id=self.project_id,
            scope=scope,
            category=category,
            content=content,
            metadata=metadata,
            created_at=now,
            updated_at=now,
            expires_at=expiry_for(category, now),
        )

    async def _count_core_memories(self) -> int:
        """Core keys this agent holds in its personal and private scopes together."""
        total = 0
        for scope in (Scope.PERSONAL.value, Scope.PRIVATE.value):
            prefix = storage_key(scope, self.agent_id, MemoryCategory.CORE.value, "")
            total += len(await self.store.keys(prefix, scope, self.project_id, self.agent_id))
        return total

    async def _check_core_capacity(self) -> None:
        count = await self._count_core_memories()
        if count >= MAX_CORE_MEMORIES:
            raise StorageFull(
                f"Maximum number of core memories ({MAX_CORE_MEMORIES}) reached "
                f"for agent {self.agent_id}",
                details={
                    "currentCount": count,
                    "maxCount": MAX_CORE_MEMORIES,
                    "agentId": self.agent_id,
                },
            )

    async def _store(self, memory: Memory) -> None:
        if self.content_scanning:
            warn_if_sensitive(memory.content, memory.id, log=self.logger)
        key = storage_key(memory.scope, memory.agent_id, memory.category, memory.id)
        await self.store.set(key, memory, ttl_seconds=get_ttl(memory.category))

    # =========================================================================
    # SINGLE WRITES
    # =========================================================================

    async def remember(
        self,
        content: str,
        scope: str = Scope.PRIVATE.value,
        category: str = MemoryCategory.RECENT.value,
        metadata: MetadataInput = None,
    ) -> Dict[str, Any]:
        """Store a memory.

        ``recent`` and ``tasks`` memories expire after 24 hours. The legacy
        scope name ``shared`` is accepted as ``team``.

        Returns:
            ``{"memoryId": ..., "expiresAt": ...}``; ``expiresAt`` only for
            expiring categories.
        """
        content, scope, category, metadata = self._prepare(content, scope, category, metadata)
        if category == MemoryCategory.CORE.value:
            await self._check_core_capacity()
        memory = self._build_memory(content, scope, category, metadata)
        await self._store(memory)
        self.logger.info(f"Stored {scope}/{category} memory {memory.id}")
        result: Dict[str, Any] = {"memoryId": memory.id}
        if memory.expires_at is not None:
            result["expiresAt"] = format_timestamp(memory.expires_at)
        return result

    async def remember_task(self, content: str, metadata: MetadataInput = None) -> Dict[str, Any]:
        """Store a private task memory (24h TTL)."""
        return await self.remember(
            content, Scope.PRIVATE.value, MemoryCategory.TASKS.value, metadata
        )

    async def remember_learning(
        self, content: str, metadata: MetadataInput = None
    ) -> Dict[str, Any]:
        """Store a private recent memory for an insight worth reviewing later."""
        return await self.remember(
            content, Scope.PRIVATE.value, MemoryCategory.RECENT.value, metadata
        )

    async def core_memory(self, content: str, metadata: MetadataInput = None) -> Dict[str, Any]:
        """Store an identity-defining memory.

        Core memories live in personal scope so they follow the agent across
        projects, never expire, and are capped at 100 per agent.

        Raises:
            StorageFull: If the agent already has 100 core memories.
        """
        content, scope, category, metadata = self._prepare(
            content, Scope.PERSONAL.value, MemoryCategory.CORE.value, metadata
        )
        await self._check_core_capacity()
        memory = self._build_memory(content, scope, category, metadata)
        await self._store(memory)
        self.logger.info(f"Stored core memory {memory.id}")
        return {"memoryId": memory.id}

    # =========================================================================
    # PROMOTION
    # =========================================================================

    async def _find_individual(self, memory_id: str):
        """Find one of this agent's private or personal memories by id.

        Returns (memory, key) or (None, None).
        """
        for scope in (Scope.PRIVATE.value, Scope.PERSONAL.value):
            for category in INDIVIDUAL_CATEGORIES:
                key = storage_key(scope, self.agent_id, category, memory_id)
                memory = await self.store.get(key, scope, self.project_id, self.agent_id)
                if memory is not None:
                    memory.scope = scope
                    return memory, key
        return None, None

    async def commit_insight(
        self, memory_id: str, new_content: Optional[str] = None
    ) -> Dict[str, Any]:
        """Promote a ``recent`` or ``tasks`` memory to ``longterm``.

        The expiry is dropped and the content optionally replaced. The memory
        keeps its id and scope; only its key changes.

        Raises:
            MemoryNotFound: If no such private or personal memory exists.
            ValidationError: If the memory is already ``longterm``.
            CoreProtected: If the memory is ``core``.
        """
        memory_id = validate_memory_id(memory_id)
        if new_content is not None:
            new_content = validate_content(new_content)

        memory, old_key = await self._find_individual(memory_id)
        if memory is None:
            raise MemoryNotFound(
                f"Memory with ID '{memory_id}' not found in 'recent' or 'tasks' categories",
                details={"memoryId": memory_id},
            )
        if memory.category == MemoryCategory.LONGTERM.value:
            raise ValidationError(
                "Memory is already in 'longterm' category",
                details={"memoryId": memory_id, "category": memory.category},
            )
        if memory.category == MemoryCategory.CORE.value:
            raise CoreProtected(
                "Memory is in 'core' category and cannot be modified",
                details={"memoryId": memory_id, "category": memory.category},
            )

        previous = memory.category
        memory.category = MemoryCategory.LONGTERM.value
        memory.updated_at = self._now()
        memory.expires_at = None
        if new_content is not None:
            memory.content = new_content

        new_key = storage_key(memory.scope, memory.agent_id, memory.category, memory.id)
        # The old key is removed only after the new one is written.
        await self._store(memory)
        await self.store.delete(old_key, memory.scope, self.project_id, self.agent_id)
        self.logger.info(f"Committed memory {memory_id} from {previous} to longterm ({new_key})")
        return {"memoryId": memory_id, "previousCategory": previous}

    # =========================================================================
    # BULK
    # =========================================================================

    async def remember_bulk(
        self,
        memories: List[Dict[str, Any]],
        stop_on_error: bool = False,
        validate: bool = True,
    ) -> Dict[str, Any]:
        """Store several memories.

        Each entry is a dict with ``content`` and optional ``scope``,
        ``category`` and ``metadata``.

        With ``validate`` every entry is checked first and nothing is stored
        if any entry is invalid.

        Raises:
            ValidationError: If the batch is empty, too large, or (with
                ``validate``) contains invalid entries.
        """
        if not isinstance(memories, list) or not memories:
            raise ValidationError("memories must be a non-empty array")
        if len(memories) > MAX_BULK_MEMORIES:
            raise ValidationError(
                f"Too many memories (max {MAX_BULK_MEMORIES}, got {len(memories)})"
            )

        def _fields(entry):
            if not isinstance(entry, dict):
                raise ValidationError("Each memory must be an object")
            return (
                entry.get("content"),
                entry.get("scope") or Scope.PRIVATE.value,
                entry.get("category") or MemoryCategory.RECENT.value,
                entry.get("metadata"),
            )

        if validate:
            problems = []
            for index, entry in enumerate(memories):
                try:
                    self._prepare(*_fields(entry))
                except PatternError as e:
                    problems.append({"index": index, "error": str(e)})
            if problems:
                raise ValidationError(
                    f"Validation failed for {len(problems)} memories: "
                    + "; ".join(f"[{p['index']}] {p['error']}" for p in problems),
                    details={"errors": problems},
                )

        stored_ids: List[str] = []
        errors: List[Dict[str, Any]] = []
        for index, entry in enumerate(memories):
            try:
                result = await self.remember(*_fields(entry))
                stored_ids.append(result["memoryId"])
            except PatternError as e:
                errors.append({"index": index, "error": str(e)})
                self.logger.warning(f"Bulk remember failed at index {index}: {e}")
                if stop_on_error:
                    break

        self.logger.info(f"Bulk remember stored {len(stored_ids)}, failed {len(errors)}")
        return {
            "stored": len(stored_ids),
            "failed": len(errors),
            "errors": errors,
            "memoryIds": stored_ids,
        }

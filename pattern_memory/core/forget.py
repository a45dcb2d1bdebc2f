"""Memory deletion for Pattern."""

from typing import Any, Dict, List, Optional, Tuple

from pattern_memory.core.validation import validate_memory_id
from pattern_memory.protocols import (
    AccessDenied,
    CoreProtected,
    MemoryNotFound,
    PatternError,
    ValidationError,
)
from pattern_memory.storage.keys import storage_key
from pattern_memory.types import (
    INDIVIDUAL_CATEGORIES,
    SHARED_CATEGORIES,
    SHARED_SCOPES,
    Memory,
    MemoryCategory,
    Scope,
)

MAX_BULK_FORGET = 100

# Search order: own memories first, then shared ones.
_SEARCH_ORDER: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (Scope.PRIVATE.value, INDIVIDUAL_CATEGORIES),
    (Scope.PERSONAL.value, INDIVIDUAL_CATEGORIES),
    (Scope.TEAM.value, SHARED_CATEGORIES),
    (Scope.PUBLIC.value, SHARED_CATEGORIES),
)


class ForgetMixin:
    """Delete memories, honouring ownership and core protection."""

    async def find_memory(self, memory_id: str) -> Optional[Tuple[Memory, str]]:
        """Locate a memory visible to this agent.

        Returns:
            ``(memory, key)`` with ``memory.scope`` set to the scope it was
            found in, or None.
        """
        memory_id = validate_memory_id(memory_id)
        for scope, categories in _SEARCH_ORDER:
            for category in categories:
                key = storage_key(scope, self.agent_id, category, memory_id)
                memory = await self.store.get(key, scope, self.project_id, self.agent_id)
                if memory is not None:
                    memory.scope = scope
                    return memory, key
        return None

    async def forget(self, memory_id: str, force: bool = False) -> Dict[str, Any]:
        """Delete a memory.

        Args:
            memory_id: Id of the memory to delete.
            force: Required to delete ``core`` memories.

        Returns:
            ``{"deleted": True, "category": <original category>}``

        Raises:
            MemoryNotFound: If no visible memory has this id.
            AccessDenied: If a shared memory belongs to another agent.
            CoreProtected: If the memory is ``core`` and ``force`` is not set.
        """
        found = await self.find_memory(memory_id)
        if found is None:
            raise MemoryNotFound(
                f"Memory with ID '{memory_id}' not found", details={"memoryId": memory_id}
            )
        memory, key = found

        if memory.scope in SHARED_SCOPES and memory.agent_id != self.agent_id:
            raise AccessDenied(
                f"Cannot delete {memory.scope} memory created by another agent",
                details={"memoryId": memory.id, "owner": memory.agent_id},
            )
        if memory.category == MemoryCategory.CORE.value and not force:
            raise CoreProtected(
                "Core memories require force=true to delete",
                details={"memoryId": memory.id, "category": memory.category},
            )

        deleted = await self.store.delete(key, memory.scope, self.project_id, self.agent_id)
        if not deleted:
            # Expired or removed between lookup and delete
            raise MemoryNotFound(
                f"Memory with ID '{memory_id}' not found", details={"memoryId": memory_id}
            )
        self.logger.info(f"Forgot {memory.scope}/{memory.category} memory {memory.id}")
        return {"deleted": True, "category": memory.category}

    async def forget_bulk(
        self, memory_ids: List[str], stop_on_error: bool = False, force: bool = False
    ) -> Dict[str, Any]:
        """Delete several memories. Failures are collected per id."""
        if not isinstance(memory_ids, list) or not memory_ids:
            raise ValidationError("memoryIds must be a non-empty array")
        if len(memory_ids) > MAX_BULK_FORGET:
            raise ValidationError(
                f"Too many memory IDs (max {MAX_BULK_FORGET}, got {len(memory_ids)})"
            )

        deleted = 0
        errors: List[Dict[str, str]] = []
        for memory_id in memory_ids:
            try:
                await self.forget(memory_id, force=force)
                deleted += 1
            except PatternError as e:
                errors.append({"memoryId": str(memory_id), "error": str(e)})
                self.logger.warning(f"Bulk forget failed for {memory_id}: {e}")
                if stop_on_error:
                    break

        return {"deleted": deleted, "failed": len(errors), "errors": errors}

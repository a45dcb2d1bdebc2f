"""Retention enforcement for a project's private memories.

Two phases over everything under ``agents/`` in the project bucket:

1. Expire: delete memories whose ``expiresAt`` has passed.
2. Limits: trim ``recent`` to 1000 and ``tasks`` to 500, oldest first by
   ``createdAt``. ``core`` is never trimmed; going over 100 is only reported.

Cleanup reports problems instead of raising them, so a single bad delete
cannot stop the rest of the pass.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pattern_memory.storage.keys import AGENTS_PREFIX, storage_key
from pattern_memory.storage.router import validate_routing
from pattern_memory.storage.scoped import ScopedStore
from pattern_memory.types import (
    CATEGORY_LIMITS,
    CleanupResult,
    Memory,
    MemoryCategory,
    Scope,
    utc_now,
)

# Categories trimmed automatically when over their limit
EVICTABLE_CATEGORIES = (MemoryCategory.RECENT.value, MemoryCategory.TASKS.value)


def _oldest_first(memories: List[Memory]) -> List[Memory]:
    return sorted(memories, key=lambda m: (m.created_at, m.id))


class LifecycleManager:
    def __init__(
        self,
        store: ScopedStore,
        logger: Optional[logging.Logger] = None,
        now_fn: Callable[[], datetime] = utc_now,
        limits: Optional[Dict[str, int]] = None,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self._now = now_fn
        self.limits = dict(CATEGORY_LIMITS if limits is None else limits)

    async def _delete(
        self, memory: Memory, project_id: str, errors: List[str], action: str
    ) -> bool:
        key = storage_key(Scope.PRIVATE.value, memory.agent_id, memory.category, memory.id)
        try:
            deleted = await self.store.delete(key, Scope.PRIVATE.value, project_id, memory.agent_id)
        except Exception as e:
            message = f"Failed to {action} memory {memory.id}: {e}"
            self.logger.error(message)
            errors.append(message)
            return False
        if deleted:
            self.logger.debug(f"{action.capitalize()}d memory {memory.id} ({memory.category})")
        return deleted

    async def run(self, project_id: str, expire_only: bool = False) -> CleanupResult:
        """Run a cleanup pass over ``project_id``.

        Raises:
            ValidationError: If ``project_id`` is missing or malformed.
        """
        validate_routing(Scope.TEAM.value, project_id, None)
        result = CleanupResult()
        self.logger.info(f"Starting cleanup for project {project_id} (expire_only={expire_only})")

        try:
            # Every agent's private memories share the project bucket.
            memories = await self.store.list(AGENTS_PREFIX, Scope.TEAM.value, project_id, None)
        except Exception as e:
            message = f"Failed to list memories for cleanup: {e}"
            self.logger.error(message)
            result.errors.append(message)
            return result

        now = self._now()
        expired = _oldest_first([m for m in memories if m.is_expired(now)])
        for memory in expired:
            if await self._delete(memory, project_id, result.errors, "expire"):
                result.expired += 1
        self.logger.info(f"Expired {result.expired} memories")

        if not expire_only:
            expired_ids = {m.id for m in expired}
            by_category: Dict[str, List[Memory]] = defaultdict(list)
            for memory in memories:
                if memory.id not in expired_ids:
                    by_category[memory.category].append(memory)

            for category in EVICTABLE_CATEGORIES:
                limit = self.limits.get(category)
                active = by_category.get(category, [])
                if limit is None or len(active) <= limit:
                    continue
                excess = len(active) - limit
                for memory in _oldest_first(active)[:excess]:
                    if await self._delete(memory, project_id, result.errors, "delete"):
                        result.deleted += 1
                self.logger.info(f"Enforced {category} limit of {limit}: {excess} over")

            core_limit = self.limits.get(MemoryCategory.CORE.value)
            core_count = len(by_category.get(MemoryCategory.CORE.value, []))
            if core_limit is not None and core_count > core_limit:
                message = (
                    f"Core memory limit exceeded: {core_count} memories "
                    f"(limit: {core_limit}, excess: {core_count - core_limit}). "
                    "Core memories cannot be auto-deleted."
                )
                self.logger.error(message)
                result.errors.append(message)

        self.logger.info(
            f"Cleanup completed: expired={result.expired} deleted={result.deleted} "
            f"errors={len(result.errors)}"
        )
        return result

"""Pattern class - main interface for memory operations.

This module defines the Pattern class skeleton, which inherits from the
operation mixins and wires them to one ScopedStore, RecallEngine and
LifecycleManager.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pattern_memory.core.forget import ForgetMixin
from pattern_memory.core.transfer import TransferMixin
from pattern_memory.core.writers import WritersMixin
from pattern_memory.features.lifecycle import LifecycleManager
from pattern_memory.features.recall import RecallEngine, RecallFilters
from pattern_memory.protocols import KeyValueClient
from pattern_memory.storage.router import validate_routing
from pattern_memory.storage.scoped import ScopedStore
from pattern_memory.types import CleanupResult, RecallResult, Scope, utc_now

logger = logging.getLogger(__name__)


class Pattern(
    WritersMixin,
    ForgetMixin,
    TransferMixin,
):
    """Memory operations for one agent in one project.

    Args:
        client: Connected or connectable keyed store.
        project_id: Project the session works in.
        agent_id: The calling agent.
        parent_id: Parent agent when running as a sub-agent.
        content_scanning: Log a warning when content looks like a secret.
        logger: Logger for this instance and the components it creates.
        now_fn: Clock used for timestamps, expiry checks and cleanup.
    """

    def __init__(
        self,
        client: KeyValueClient,
        project_id: str,
        agent_id: str,
        parent_id: Optional[str] = None,
        content_scanning: bool = True,
        logger: Optional[logging.Logger] = None,
        now_fn: Callable[[], datetime] = utc_now,
    ):
        validate_routing(Scope.PRIVATE.value, project_id, agent_id)
        self.client = client
        self.project_id = project_id
        self.agent_id = agent_id
        self.parent_id = parent_id
        self.content_scanning = content_scanning
        self.logger = logger or logging.getLogger(__name__)
        self._now = now_fn
        self.store = ScopedStore(client, logger=self.logger.getChild("store"))
        self.recall_engine = RecallEngine(
            self.store, logger=self.logger.getChild("recall"), now_fn=now_fn
        )
        self.lifecycle = LifecycleManager(
            self.store, logger=self.logger.getChild("lifecycle"), now_fn=now_fn
        )
        self._opened = False

    @property
    def is_subagent(self) -> bool:
        return self.parent_id is not None

    async def open(self) -> "Pattern":
        """Connect and open the project bucket. Safe to call more than once."""
        if not self.client.is_connected():
            await self.client.connect()
        if not self._opened:
            await self.store.ensure(Scope.PRIVATE.value, self.project_id, self.agent_id)
            self._opened = True
            self.logger.debug(f"Opened project {self.project_id} for agent {self.agent_id}")
        return self

    async def close(self) -> None:
        await self.client.close()
        self.store.router.reset()
        self._opened = False

    async def __aenter__(self) -> "Pattern":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # READ / MAINTENANCE
    # =========================================================================

    async def recall(
        self,
        scopes: Optional[List[str]] = None,
        categories: Optional[List[str]] = None,
        limit: Optional[int] = None,
        since: Optional[str] = None,
        tags: Optional[List[str]] = None,
        min_priority: Optional[int] = None,
        max_priority: Optional[int] = None,
        created_after: Optional[str] = None,
        created_before: Optional[str] = None,
        updated_after: Optional[str] = None,
        updated_before: Optional[str] = None,
        search: Optional[str] = None,
    ) -> RecallResult:
        """Recall memories visible to this agent, ranked and summarized."""
        filters = RecallFilters(
            scopes=scopes,
            categories=categories,
            limit=limit,
            since=since,
            tags=tags,
            min_priority=min_priority,
            max_priority=max_priority,
            created_after=created_after,
            created_before=created_before,
            updated_after=updated_after,
            updated_before=updated_before,
            search=search,
        )
        return await self.recall_engine.recall(
            self.project_id, self.agent_id, filters, parent_id=self.parent_id
        )

    async def cleanup(self, expire_only: bool = False) -> CleanupResult:
        """Expire and trim this project's private memories."""
        return await self.lifecycle.run(self.project_id, expire_only=expire_only)

    def health(self) -> Dict[str, Any]:
        connected = self.client.is_connected()
        return {
            "status": "healthy" if connected and self._opened else "degraded",
            "connected": connected,
            "projectBucketOpen": self._opened,
            "agentId": self.agent_id,
            "projectId": self.project_id,
            "isSubagent": self.is_subagent,
            "parentId": self.parent_id,
        }

"""Scope-aware memory store.

ScopedStore is the only component that touches buckets directly. It turns
Memory records into JSON bytes and back, and picks the bucket through the
BucketRouter. Isolation between scopes is structural: each scope class reads
and writes a different physical bucket.

Project buckets must be opened with ``ensure`` before reads, since a missing
project bucket usually means the session was never started. User and global
buckets do not depend on the session's project, so they are provisioned on
first use.
"""

import json
import logging
from typing import List, Optional

from pattern_memory.protocols import BackendError, KeyValueClient, PatternError
from pattern_memory.storage.router import (
    BucketHandle,
    BucketKind,
    BucketRouter,
    bucket_kind,
    validate_routing,
)
from pattern_memory.types import Memory


def encode_memory(memory: Memory) -> bytes:
    return json.dumps(memory.to_dict(), ensure_ascii=False).encode("utf-8")


def decode_memory(raw: bytes) -> Memory:
    return Memory.from_dict(json.loads(raw.decode("utf-8")))


class ScopedStore:
    def __init__(
        self,
        client: KeyValueClient,
        router: Optional[BucketRouter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)
        self.router = router or BucketRouter(client, logger=self.logger)

    async def ensure(
        self, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> BucketHandle:
        """Open (creating if necessary) the bucket backing ``scope``."""
        return await self.router.resolve(scope, project_id, agent_id)

    async def _handle(
        self, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> BucketHandle:
        scope = validate_routing(scope, project_id, agent_id)
        if bucket_kind(scope) is BucketKind.PROJECT:
            return self.router.lookup(scope, project_id, agent_id)
        return await self.router.resolve(scope, project_id, agent_id)

    async def get(
        self, key: str, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> Optional[Memory]:
        handle = await self._handle(scope, project_id, agent_id)
        try:
            raw = await handle.bucket.get(key)
        except PatternError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to get {key} from {handle.name}: {e}") from e
        if raw is None:
            return None
        try:
            return decode_memory(raw)
        except (ValueError, UnicodeDecodeError) as e:
            self.logger.warning(f"Undecodable memory at {handle.name}/{key}: {e}")
            return None

    async def set(self, key: str, memory: Memory, ttl_seconds: Optional[int] = None) -> None:
        """Write ``memory`` to the bucket selected by its own scope."""
        handle = await self.router.resolve(memory.scope, memory.project_id, memory.agent_id)
        try:
            await handle.bucket.put(key, encode_memory(memory), ttl_seconds=ttl_seconds)
        except PatternError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to store {key} in {handle.name}: {e}") from e
        self.logger.debug(
            f"Stored memory {memory.id}",
            extra={"bucket": handle.name, "key": key, "scope": memory.scope},
        )

    async def delete(
        self, key: str, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> bool:
        handle = await self._handle(scope, project_id, agent_id)
        try:
            return await handle.bucket.delete(key)
        except PatternError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to delete {key} from {handle.name}: {e}") from e

    async def keys(
        self, prefix: str, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> List[str]:
        handle = await self._handle(scope, project_id, agent_id)
        entries = await self._list_entries(handle, prefix)
        return [key for key, _ in entries]

    async def list(
        self, prefix: str, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> List[Memory]:
        """Decode every entry under ``prefix``. Bad entries are logged and skipped."""
        handle = await self._handle(scope, project_id, agent_id)
        memories = []
        for key, raw in await self._list_entries(handle, prefix):
            try:
                memories.append(decode_memory(raw))
            except (ValueError, UnicodeDecodeError) as e:
                self.logger.warning(f"Skipping undecodable memory at {handle.name}/{key}: {e}")
        return memories

    async def _list_entries(self, handle: BucketHandle, prefix: str):
        try:
            return await handle.bucket.list_by_prefix(prefix)
        except PatternError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to list {prefix!r} in {handle.name}: {e}") from e

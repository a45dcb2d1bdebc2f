"""In-process keyed store.

Holds buckets in plain dicts. Used by tests and by ``backend = "memory"``
for throwaway sessions. TTLs are measured against an injectable clock so
purging can be driven from tests; a key is purged once its TTL plus the
expiry grace has passed.
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from pattern_memory.protocols import EXPIRY_GRACE_SECONDS, BackendError, Entry

logger = logging.getLogger(__name__)


class InMemoryBucket:
    def __init__(self, name: str, clock: Callable[[], float], grace: float = 0.0):
        self.name = name
        self._clock = clock
        self._grace = grace
        # key -> (value, deadline or None)
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[bytes]:
        item = self._data.get(key)
        if item is None:
            return None
        value, deadline = item
        if deadline is not None and deadline <= self._clock():
            del self._data[key]
            return None
        return value

    async def get(self, key: str) -> Optional[bytes]:
        return self._live(key)

    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        deadline = self._clock() + ttl_seconds + self._grace if ttl_seconds else None
        self._data[key] = (bytes(value), deadline)

    async def delete(self, key: str) -> bool:
        if self._live(key) is None:
            return False
        del self._data[key]
        return True

    async def list_by_prefix(self, prefix: str) -> List[Entry]:
        entries = []
        for key in sorted(self._data):
            if not key.startswith(prefix):
                continue
            value = self._live(key)
            if value is not None:
                entries.append((key, value))
        return entries

    def __len__(self) -> int:
        return sum(1 for key in list(self._data) if self._live(key) is not None)


class InMemoryKeyValueClient:
    """Dict-backed implementation of the KeyValueClient protocol."""

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        expiry_grace: float = EXPIRY_GRACE_SECONDS,
    ):
        self._clock = clock or time.monotonic
        self.expiry_grace = expiry_grace
        self._buckets: Dict[str, InMemoryBucket] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def _require_connected(self) -> None:
        if not self._connected:
            raise BackendError("Not connected to keyed store")

    async def create_bucket_if_absent(self, name: str) -> InMemoryBucket:
        self._require_connected()
        bucket = self._buckets.get(name)
        if bucket is None:
            logger.debug(f"Creating bucket {name}")
            bucket = InMemoryBucket(name, self._clock, self.expiry_grace)
            self._buckets[name] = bucket
        return bucket

    async def open_bucket(self, name: str) -> Optional[InMemoryBucket]:
        self._require_connected()
        return self._buckets.get(name)

    def bucket_names(self) -> List[str]:
        return sorted(self._buckets)

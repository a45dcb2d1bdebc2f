"""Pattern storage layer.

Key layout, scope routing, and the keyed-store adapters. Local-first:
SQLite by default, in-process dicts for tests and throwaway sessions.
"""

from pattern_memory.config import PatternConfig
from pattern_memory.protocols import KeyValueBucket, KeyValueClient

from .keys import DecodedKey, decode_key, encode_key, storage_key
from .memory_kv import InMemoryKeyValueClient
from .router import BucketHandle, BucketKind, BucketRouter
from .scoped import ScopedStore
from .sqlite_kv import SQLiteKeyValueClient


def create_client(config: PatternConfig) -> KeyValueClient:
    """Build the keyed-store client selected by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryKeyValueClient()
    return SQLiteKeyValueClient(config.db_path)


__all__ = [
    "BucketHandle",
    "BucketKind",
    "BucketRouter",
    "DecodedKey",
    "InMemoryKeyValueClient",
    "KeyValueBucket",
    "KeyValueClient",
    "SQLiteKeyValueClient",
    "ScopedStore",
    "create_client",
    "decode_key",
    "encode_key",
    "storage_key",
]

"""
pattern_memory Protocol Definitions
====================================

Interface contracts between the memory layers and the external keyed store,
plus the error taxonomy every layer raises.

Components and their roles:
- KeyValueClient: connection to a keyed store. Creates and opens buckets.
- KeyValueBucket: one physical partition. get/put/delete/list-by-prefix.
- BucketRouter:   maps a (scope, project, agent) triple to a bucket handle.
- ScopedStore:    reads and writes Memory records through the router.

Error handling philosophy:
- Input validation raises before any store I/O is attempted
- Every domain error is a PatternError carrying a stable ``code``
- ValidationError is also a ValueError so generic callers can catch it
- Store failures are wrapped in BackendError with the original as __cause__
- List-oriented operations skip and log bad items instead of failing
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

# =============================================================================
# ERRORS
# =============================================================================


class PatternError(Exception):
    """Base for all memory-layer errors."""

    code = "PATTERN_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(PatternError, ValueError):
    """Input failed validation. Raised before any I/O."""

    code = "VALIDATION_ERROR"


class KeyFormatError(ValidationError):
    """A storage key does not match a known layout."""

    code = "VALIDATION_ERROR"


class InvalidCategoryError(PatternError, ValueError):
    """Category is unknown or does not belong to the scope's class."""

    code = "INVALID_CATEGORY"


class MemoryNotFound(PatternError):
    code = "MEMORY_NOT_FOUND"


class AccessDenied(PatternError):
    """Caller does not own the memory it tried to modify."""

    code = "ACCESS_DENIED"


class CoreProtected(PatternError):
    """Core memories can only be removed with an explicit override."""

    code = "CORE_PROTECTED"


class StorageFull(PatternError):
    code = "STORAGE_FULL"


class BucketNotInitialized(PatternError):
    """A project bucket was used before it was opened."""

    code = "BUCKET_NOT_INITIALIZED"


class BackendError(PatternError):
    """The keyed store failed. The original exception is chained."""

    code = "BACKEND_ERROR"


class IdentityNotFound(PatternError):
    code = "IDENTITY_NOT_FOUND"


# =============================================================================
# KEYED STORE PROTOCOLS
# =============================================================================

# (key, raw value) pairs returned by prefix listing
Entry = Tuple[str, bytes]

# Seconds a store keeps an entry after its TTL passes. Records are expired
# by their own expiresAt; the store purges them only after this grace.
EXPIRY_GRACE_SECONDS = 7 * 86400


@runtime_checkable
class KeyValueBucket(Protocol):
    """One bucket of a keyed store.

    Implementations provide per-key atomicity and prefix listing. A TTL only
    bounds how long the store keeps a key: it stays visible to get, list and
    delete until ``ttl_seconds`` plus the store's expiry grace has passed.
    """

    name: str

    async def get(self, key: str) -> Optional[bytes]: ...

    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        ...

    async def list_by_prefix(self, prefix: str) -> List[Entry]: ...


@runtime_checkable
class KeyValueClient(Protocol):
    """Connection to a keyed store."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    def is_connected(self) -> bool: ...

    async def create_bucket_if_absent(self, name: str) -> KeyValueBucket:
        """Create a bucket, or return the existing one. Idempotent."""
        ...

    async def open_bucket(self, name: str) -> Optional[KeyValueBucket]:
        """Return an existing bucket, or None."""
        ...

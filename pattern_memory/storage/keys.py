"""Storage key layout.

Keys have two shapes::

    shared/{category}/{memoryId}             team and public scopes
    agents/{agentId}/{category}/{memoryId}   private and personal scopes

Personal memories share the user bucket with other tools, so their keys are
stored under an extra ``pattern.`` prefix. The codec never guesses the exact
scope: only the bucket a key was read from can tell team from public or
private from personal.
"""

from dataclasses import dataclass
from typing import Optional

from pattern_memory.protocols import KeyFormatError
from pattern_memory.types import Scope, ScopeClass, scope_class_for

SHARED_PREFIX = "shared/"
AGENTS_PREFIX = "agents/"
USER_BUCKET_KEY_PREFIX = "pattern."


@dataclass(frozen=True)
class DecodedKey:
    agent_id: Optional[str]
    category: str
    memory_id: str
    is_shared: bool

    @property
    def scope_class(self) -> ScopeClass:
        return ScopeClass.SHARED if self.is_shared else ScopeClass.PRIVATE


def encode_key(agent_id: str, category: str, memory_id: str, scope_class) -> str:
    """Build the bucket-relative key for a memory."""
    if ScopeClass(scope_class) is ScopeClass.SHARED:
        return f"{SHARED_PREFIX}{category}/{memory_id}"
    return f"{AGENTS_PREFIX}{agent_id}/{category}/{memory_id}"


def decode_key(key: str) -> DecodedKey:
    """Split a key back into its parts.

    A ``pattern.`` prefix from the user bucket is stripped from ``agents/``
    keys; shared keys never carry it.

    Raises:
        KeyFormatError: If the key has the wrong number of segments, an
            unknown leading segment, or an empty segment.
    """
    if not isinstance(key, str):
        raise KeyFormatError(f"Invalid key format: {key!r}")
    raw = key
    if key.startswith(USER_BUCKET_KEY_PREFIX):
        key = key[len(USER_BUCKET_KEY_PREFIX) :]
        if not key.startswith(AGENTS_PREFIX):
            raise KeyFormatError(f"Invalid key format: {raw}", details={"key": raw})
    parts = key.split("/")
    if any(not part for part in parts):
        raise KeyFormatError(f"Invalid key format: {raw}", details={"key": raw})

    if parts[0] == "shared" and len(parts) == 3:
        return DecodedKey(agent_id=None, category=parts[1], memory_id=parts[2], is_shared=True)
    if parts[0] == "agents" and len(parts) == 4:
        return DecodedKey(agent_id=parts[1], category=parts[2], memory_id=parts[3], is_shared=False)
    raise KeyFormatError(f"Invalid key format: {raw}", details={"key": raw})


def storage_key(scope: str, agent_id: str, category: str, memory_id: str) -> str:
    """Key as written to the scope's bucket."""
    key = encode_key(agent_id, category, memory_id, scope_class_for(scope))
    if scope == Scope.PERSONAL.value:
        return USER_BUCKET_KEY_PREFIX + key
    return key


def private_prefix(agent_id: str) -> str:
    return f"{AGENTS_PREFIX}{agent_id}/"


def personal_prefix(agent_id: str) -> str:
    return f"{USER_BUCKET_KEY_PREFIX}{AGENTS_PREFIX}{agent_id}/"


def scope_prefix(scope: str, agent_id: str) -> str:
    """Listing prefix that covers every memory of ``scope`` visible to ``agent_id``."""
    if scope == Scope.PRIVATE.value:
        return private_prefix(agent_id)
    if scope == Scope.PERSONAL.value:
        return personal_prefix(agent_id)
    return SHARED_PREFIX

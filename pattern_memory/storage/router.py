"""Scope to bucket routing.

One function decides where a memory lives::

    private, team  -> project bucket   loom-pattern-{projectId}
    personal       -> user bucket      loom-user-{agentId}
    public         -> global bucket    loom-global-pattern

``resolve`` provisions the bucket on first use and caches the handle for the
lifetime of the router. ``lookup`` only consults the cache.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from pattern_memory.protocols import (
    BackendError,
    BucketNotInitialized,
    KeyValueBucket,
    KeyValueClient,
    PatternError,
    ValidationError,
)
from pattern_memory.types import PROJECT_SCOPES, Scope, normalize_scope

BUCKET_PREFIX = "loom"
GLOBAL_BUCKET = f"{BUCKET_PREFIX}-global-pattern"


class BucketKind(str, Enum):
    PROJECT = "project"
    USER = "user"
    GLOBAL = "global"


_KIND_BY_SCOPE = {
    Scope.PRIVATE.value: BucketKind.PROJECT,
    Scope.TEAM.value: BucketKind.PROJECT,
    Scope.PERSONAL.value: BucketKind.USER,
    Scope.PUBLIC.value: BucketKind.GLOBAL,
}


@dataclass(frozen=True)
class BucketHandle:
    """A resolved bucket plus the kind of partition it is."""

    kind: BucketKind
    name: str
    bucket: KeyValueBucket


def project_bucket_name(project_id: str) -> str:
    return f"{BUCKET_PREFIX}-pattern-{project_id}"


def user_bucket_name(agent_id: str) -> str:
    return f"{BUCKET_PREFIX}-user-{agent_id}"


def bucket_kind(scope: str) -> BucketKind:
    return _KIND_BY_SCOPE[normalize_scope(scope)]


def _check_identifier(value: Optional[str], field_name: str) -> str:
    if not value or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    if "/" in value or any(ch.isspace() for ch in value):
        raise ValidationError(f"{field_name} must not contain '/' or whitespace: {value!r}")
    return value


def validate_routing(scope: str, project_id: Optional[str], agent_id: Optional[str]) -> str:
    """Check the routing context before any I/O. Returns the canonical scope.

    Raises:
        ValidationError: If a required project or agent id is missing.
    """
    scope = normalize_scope(scope)
    if scope in PROJECT_SCOPES:
        _check_identifier(project_id, "project_id")
    if scope in (Scope.PRIVATE.value, Scope.PERSONAL.value):
        _check_identifier(agent_id, "agent_id")
    return scope


def bucket_name_for(scope: str, project_id: Optional[str], agent_id: Optional[str]) -> str:
    scope = validate_routing(scope, project_id, agent_id)
    kind = _KIND_BY_SCOPE[scope]
    if kind is BucketKind.PROJECT:
        return project_bucket_name(project_id)
    if kind is BucketKind.USER:
        return user_bucket_name(agent_id)
    return GLOBAL_BUCKET


class BucketRouter:
    """Resolves scopes to bucket handles, provisioning on first use.

    The cache is not locked: two concurrent first resolutions both call the
    store's idempotent create, and the later one wins the cache slot.
    """

    def __init__(self, client: KeyValueClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)
        self._handles: Dict[str, BucketHandle] = {}

    @staticmethod
    def _cache_key(kind: BucketKind, name: str) -> str:
        return f"{kind.value}:{name}"

    def _locate(self, scope, project_id, agent_id) -> Tuple[BucketKind, str]:
        name = bucket_name_for(scope, project_id, agent_id)
        return bucket_kind(scope), name

    async def resolve(
        self, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> BucketHandle:
        """Return the handle for ``scope``, creating the bucket if needed."""
        kind, name = self._locate(scope, project_id, agent_id)
        cache_key = self._cache_key(kind, name)
        handle = self._handles.get(cache_key)
        if handle is not None:
            return handle
        try:
            bucket = await self.client.create_bucket_if_absent(name)
        except PatternError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to provision bucket {name}: {e}") from e
        handle = BucketHandle(kind=kind, name=name, bucket=bucket)
        self._handles[cache_key] = handle
        self.logger.debug(f"Provisioned {kind.value} bucket {name}")
        return handle

    def lookup(
        self, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> BucketHandle:
        """Return a cached handle.

        Raises:
            BucketNotInitialized: If ``resolve`` has not run for this bucket.
        """
        kind, name = self._locate(scope, project_id, agent_id)
        handle = self._handles.get(self._cache_key(kind, name))
        if handle is None:
            raise BucketNotInitialized(
                f"{kind.value.capitalize()} bucket {name} not initialized",
                details={"bucket": name, "scope": normalize_scope(scope)},
            )
        return handle

    def is_initialized(
        self, scope: str, project_id: Optional[str], agent_id: Optional[str]
    ) -> bool:
        kind, name = self._locate(scope, project_id, agent_id)
        return self._cache_key(kind, name) in self._handles

    def reset(self) -> None:
        self._handles.clear()

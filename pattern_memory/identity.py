"""Agent identity.

An external launcher writes the agent's identity into the project's identity
bucket (``loom-identity-{projectId}``) when it starts::

    root               {"agentId", "hostname", "projectPath", "createdAt"}
    subagent/{type}    {"agentId", "parentId", "subagentType", "createdAt"}

The launcher and this process start concurrently, so the first reads may
miss. :class:`IdentityLoader` retries under an explicit :class:`RetryPolicy`.
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from pattern_memory.protocols import (
    IdentityNotFound,
    KeyValueBucket,
    KeyValueClient,
    ValidationError,
)
from pattern_memory.types import format_timestamp, utc_now

IDENTITY_BUCKET_PREFIX = "loom-identity-"
ROOT_KEY = "root"
SUBAGENT_KEY_PREFIX = "subagent/"


class IdentityKind(str, Enum):
    ROOT = "root"
    SUBAGENT = "subagent"


@dataclass(frozen=True)
class AgentIdentity:
    """Root or sub-agent identity, told apart by ``kind``.

    Root identities carry ``hostname`` and ``project_path``; sub-agent
    identities carry ``parent_id`` and ``subagent_type``.
    """

    kind: IdentityKind
    agent_id: str
    created_at: str
    hostname: Optional[str] = None
    project_path: Optional[str] = None
    parent_id: Optional[str] = None
    subagent_type: Optional[str] = None

    @property
    def is_subagent(self) -> bool:
        return self.kind is IdentityKind.SUBAGENT

    @classmethod
    def root(cls, agent_id: str, hostname: str = "", project_path: str = "", created_at=None):
        return cls(
            kind=IdentityKind.ROOT,
            agent_id=agent_id,
            hostname=hostname,
            project_path=project_path,
            created_at=created_at or format_timestamp(utc_now()),
        )

    @classmethod
    def subagent(cls, agent_id: str, parent_id: str, subagent_type: str, created_at=None):
        return cls(
            kind=IdentityKind.SUBAGENT,
            agent_id=agent_id,
            parent_id=parent_id,
            subagent_type=subagent_type,
            created_at=created_at or format_timestamp(utc_now()),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.is_subagent:
            return {
                "agentId": self.agent_id,
                "parentId": self.parent_id,
                "subagentType": self.subagent_type,
                "createdAt": self.created_at,
            }
        return {
            "agentId": self.agent_id,
            "hostname": self.hostname,
            "projectPath": self.project_path,
            "createdAt": self.created_at,
        }


def derive_subagent_id(root_agent_id: str, subagent_type: str) -> str:
    """Deterministic sub-agent id: first 32 hex chars of sha256(root + type)."""
    return hashlib.sha256(f"{root_agent_id}{subagent_type}".encode("utf-8")).hexdigest()[:32]


def identity_bucket_name(project_id: str) -> str:
    return f"{IDENTITY_BUCKET_PREFIX}{project_id}"


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, IdentityNotFound)


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry an operation.

    Delay before attempt ``n + 1`` is ``n * base_delay`` seconds.
    """

    max_attempts: int = 10
    base_delay: float = 0.1
    is_retryable: Callable[[Exception], bool] = _is_not_found

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        return attempt * self.base_delay

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> Any:
        """Call ``operation`` until it succeeds, fails terminally, or attempts run out."""
        log = logger or logging.getLogger(__name__)
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    raise
                delay = self.delay_for(attempt)
                log.debug(
                    f"Attempt {attempt}/{self.max_attempts} failed ({e}), retrying in {delay:.2f}s"
                )
                await sleep(delay)
        raise RuntimeError("unreachable")  # pragma: no cover


class IdentityLoader:
    def __init__(
        self,
        client: KeyValueClient,
        project_id: str,
        subagent_type: Optional[str] = None,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.project_id = project_id
        self.subagent_type = subagent_type
        self.retry = retry or RetryPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

    async def _bucket(self) -> KeyValueBucket:
        name = identity_bucket_name(self.project_id)
        bucket = await self.client.open_bucket(name)
        if bucket is None:
            raise IdentityNotFound(
                "Identity not found - identity bucket does not exist yet",
                details={"bucket": name},
            )
        return bucket

    @staticmethod
    async def _read(bucket: KeyValueBucket, key: str) -> Optional[Dict[str, Any]]:
        raw = await bucket.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise ValidationError(f"Identity record {key} is not valid JSON: {e}") from e

    async def _load_once(self) -> AgentIdentity:
        bucket = await self._bucket()
        root = await self._read(bucket, ROOT_KEY)
        if not root or not root.get("agentId"):
            raise IdentityNotFound("Identity not found - root identity has not been written")

        if self.subagent_type is None:
            identity = AgentIdentity.root(
                agent_id=root["agentId"],
                hostname=root.get("hostname", ""),
                project_path=root.get("projectPath", ""),
                created_at=root.get("createdAt"),
            )
            self.logger.info(f"Loaded root identity {identity.agent_id}")
            return identity

        if not self.subagent_type.strip():
            raise ValidationError("LOOMINAL_SUBAGENT_TYPE is set but empty")

        record = await self._read(bucket, f"{SUBAGENT_KEY_PREFIX}{self.subagent_type}")
        if record and record.get("agentId"):
            identity = AgentIdentity.subagent(
                agent_id=record["agentId"],
                parent_id=record.get("parentId", root["agentId"]),
                subagent_type=record.get("subagentType", self.subagent_type),
                created_at=record.get("createdAt"),
            )
        else:
            self.logger.warning(
                f"Sub-agent identity for {self.subagent_type} not found, deriving from root"
            )
            identity = AgentIdentity.subagent(
                agent_id=derive_subagent_id(root["agentId"], self.subagent_type),
                parent_id=root["agentId"],
                subagent_type=self.subagent_type,
            )
        self.logger.info(f"Loaded sub-agent identity {identity.agent_id} ({self.subagent_type})")
        return identity

    async def load(self) -> AgentIdentity:
        """Load the identity, retrying per the policy.

        Raises:
            IdentityNotFound: If no identity appeared within the retry budget.
        """
        self.logger.info(
            f"Loading identity for project {self.project_id}"
            + (f" (sub-agent {self.subagent_type})" if self.subagent_type is not None else "")
        )
        try:
            return await self.retry.run(self._load_once, sleep=self._sleep, logger=self.logger)
        except IdentityNotFound:
            self.logger.error(
                f"Failed to load identity after {self.retry.max_attempts} attempts"
            )
            raise


async def publish_identity(
    client: KeyValueClient, project_id: str, identity: AgentIdentity
) -> None:
    """Write an identity record the way the launcher does."""
    bucket = await client.create_bucket_if_absent(identity_bucket_name(project_id))
    key = ROOT_KEY if not identity.is_subagent else f"{SUBAGENT_KEY_PREFIX}{identity.subagent_type}"
    await bucket.put(key, json.dumps(identity.to_dict()).encode("utf-8"))


async def load_identity(
    client: KeyValueClient,
    project_id: str,
    subagent_type: Optional[str] = None,
    retry: Optional[RetryPolicy] = None,
    logger: Optional[logging.Logger] = None,
) -> AgentIdentity:
    return await IdentityLoader(client, project_id, subagent_type, retry, logger).load()

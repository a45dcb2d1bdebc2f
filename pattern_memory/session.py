"""Agent session: who is speaking, and for which project."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from pattern_memory.config import DEFAULT_PROJECT_ID, PatternConfig
from pattern_memory.core import Pattern
from pattern_memory.identity import (
    AgentIdentity,
    IdentityLoader,
    RetryPolicy,
    derive_subagent_id,
)
from pattern_memory.protocols import IdentityNotFound, KeyValueClient
from pattern_memory.storage import create_client

logger = logging.getLogger(__name__)


@dataclass
class AgentSession:
    agent_id: str
    project_id: str = DEFAULT_PROJECT_ID
    is_subagent: bool = False
    parent_id: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: AgentIdentity, project_id: str) -> "AgentSession":
        return cls(
            agent_id=identity.agent_id,
            project_id=project_id,
            is_subagent=identity.is_subagent,
            parent_id=identity.parent_id,
        )


async def start_session(
    config: PatternConfig,
    client: KeyValueClient,
    retry: Optional[RetryPolicy] = None,
    log: Optional[logging.Logger] = None,
) -> AgentSession:
    """Work out the session identity.

    An explicit agent id from config wins. Otherwise the identity bucket is
    read with retries; if nothing is ever written there, an ephemeral id is
    generated so a standalone server still works.
    """
    log = log or logger
    if config.agent_id:
        if config.subagent_type:
            session = AgentSession(
                agent_id=derive_subagent_id(config.agent_id, config.subagent_type),
                project_id=config.project_id,
                is_subagent=True,
                parent_id=config.agent_id,
            )
        else:
            session = AgentSession(agent_id=config.agent_id, project_id=config.project_id)
        log.debug(f"Using configured agent id {config.agent_id}")
    else:
        loader = IdentityLoader(
            client,
            config.project_id,
            subagent_type=config.subagent_type,
            retry=retry,
            logger=log,
        )
        try:
            identity = await loader.load()
            session = AgentSession.from_identity(identity, config.project_id)
        except IdentityNotFound:
            session = AgentSession(agent_id=str(uuid.uuid4()), project_id=config.project_id)
            log.warning(
                f"No identity published and LOOMINAL_AGENT_ID not set - using ephemeral "
                f"agent id {session.agent_id}. Set LOOMINAL_AGENT_ID to persist memories."
            )
    log.info(
        f"Agent session initialized: agent={session.agent_id} project={session.project_id}"
        + (f" parent={session.parent_id}" if session.parent_id else "")
    )
    return session


async def open_pattern(
    config: PatternConfig,
    client: Optional[KeyValueClient] = None,
    log: Optional[logging.Logger] = None,
) -> Pattern:
    """Connect the configured store, resolve the session and open its project.

    ``log`` is used for session startup and handed to the Pattern instance.
    """
    client = client or create_client(config)
    await client.connect()
    session = await start_session(config, client, log=log)
    pattern = Pattern(
        client,
        project_id=session.project_id,
        agent_id=session.agent_id,
        parent_id=session.parent_id,
        content_scanning=config.content_scanning,
        logger=log,
    )
    return await pattern.open()

"""
Pytest fixtures and test configuration for Pattern tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio

from pattern_memory.core import Pattern
from pattern_memory.storage import InMemoryKeyValueClient
from pattern_memory.types import Memory, MemoryMetadata

PROJECT_ID = "proj-1"
AGENT_ID = "agent-1"
OTHER_AGENT_ID = "agent-2"


class FakeClock:
    """Callable wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class TickingClock(FakeClock):
    """Advances one second on every read, so successive writes are ordered."""

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


def build_memory(
    memory_id: str = "m-1",
    agent_id: str = AGENT_ID,
    project_id: str = PROJECT_ID,
    scope: str = "private",
    category: str = "recent",
    content: str = "remember this",
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    metadata: Optional[MemoryMetadata] = None,
) -> Memory:
    created = created_at or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
    return Memory(
        id=memory_id,
        agent_id=agent_id,
        project_id=project_id,
        scope=scope,
        category=category,
        content=content,
        created_at=created,
        updated_at=updated_at or created,
        expires_at=expires_at,
        metadata=metadata,
    )


@pytest.fixture(autouse=True)
def reset_pattern_logging():
    """Undo setup_logging() so caplog keeps seeing package records."""
    yield
    root = logging.getLogger("pattern_memory")
    for handler in list(root.handlers):
        if getattr(handler, "_pattern_handler", False):
            root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def make_memory():
    """Factory for Memory records with sensible defaults."""
    return build_memory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ticking_clock():
    return TickingClock()


@pytest_asyncio.fixture
async def kv_client(clock):
    """Connected in-memory keyed store that reads the same clock as Pattern."""
    client = InMemoryKeyValueClient(clock=lambda: clock().timestamp())
    await client.connect()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def pattern(kv_client, clock):
    """Pattern for AGENT_ID in PROJECT_ID, already opened."""
    p = Pattern(kv_client, project_id=PROJECT_ID, agent_id=AGENT_ID, now_fn=clock)
    await p.open()
    return p


@pytest_asyncio.fixture
async def other_pattern(kv_client, clock):
    """A second agent in the same project, sharing the store."""
    p = Pattern(kv_client, project_id=PROJECT_ID, agent_id=OTHER_AGENT_ID, now_fn=clock)
    await p.open()
    return p

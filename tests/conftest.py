"""
Shared fixtures: an in-memory store, a fixed clock and services wired to both.
"""
from datetime import datetime, timedelta, timezone

import pytest

from streamline_mcp.dependencies.services import ServiceContainer, set_services
from streamline_mcp.services.note_service import NoteService
from streamline_mcp.services.series_service import SeriesService
from streamline_mcp.services.tag_service import TagService
from streamline_mcp.services.task_service import TaskService
from streamline_mcp.services.workspace_service import WorkspaceService
from streamline_mcp.storage.memory_store import MemoryStore

USER_ID = "user-1"

# Monday
START = datetime(2025, 2, 3, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tag_service(store):
    return TagService(store, USER_ID)


@pytest.fixture
def series_service(store, tag_service, clock):
    return SeriesService(store, USER_ID, tags=tag_service, clock=clock)


@pytest.fixture
def task_service(store, series_service, tag_service, clock):
    return TaskService(store, USER_ID, series=series_service, tags=tag_service, clock=clock)


@pytest.fixture
def note_service(store, tag_service, clock):
    return NoteService(store, USER_ID, tags=tag_service, clock=clock)


@pytest.fixture
def workspace_service(store):
    return WorkspaceService(store, USER_ID)


@pytest.fixture
def container(store, clock):
    """Install a memory-backed service container for handler and route tests."""
    services = ServiceContainer(store=store, user_id=USER_ID, store_kind="memory", clock=clock)
    set_services(services)
    yield services
    set_services(None)

"""
Service container for dependency injection.
Centralizes store and service initialization for the MCP handlers.
"""
import os
import logging
from datetime import datetime
from typing import Optional, Callable

from streamline_mcp.config import load_config
from streamline_mcp.services.note_service import NoteService
from streamline_mcp.services.series_service import SeriesService
from streamline_mcp.services.tag_service import TagService
from streamline_mcp.services.task_service import TaskService
from streamline_mcp.services.workspace_service import WorkspaceService
from streamline_mcp.storage.interface import StoreInterface
from streamline_mcp.storage.memory_store import MemoryStore
from streamline_mcp.storage.rest_store import RestStore

logger = logging.getLogger(__name__)

STORE_REST = "rest"
STORE_MEMORY = "memory"
MEMORY_USER_ID = "local-user"

# Global service instance
_service_instance: Optional['ServiceContainer'] = None


class ServiceContainer:
    """Container for all application services."""

    def __init__(
        self,
        store: Optional[StoreInterface] = None,
        user_id: Optional[str] = None,
        store_kind: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Args:
            store: Ready-made store; when omitted one is built from ``store_kind``
            user_id: Owner of all rows; required together with ``store``
            store_kind: "rest" (default, from configuration) or "memory";
                falls back to the STREAMLINE_STORE environment variable
            clock: Returns "now" for every service; defaults to the local wall clock
        """
        if store is not None:
            self.store = store
            self.user_id = user_id or MEMORY_USER_ID
            self.store_kind = store_kind or type(store).__name__
        else:
            self.store_kind = store_kind or os.getenv("STREAMLINE_STORE", STORE_REST)
            if self.store_kind == STORE_MEMORY:
                self.store = MemoryStore()
                self.user_id = user_id or MEMORY_USER_ID
                logger.warning("Using in-memory store; data is lost when the process exits")
            else:
                config = load_config()
                self.store = RestStore(config)
                self.user_id = user_id or config.user_id
                logger.info(f"Using REST store at {config.project_url}")

        self.tag_service = TagService(self.store, self.user_id)
        self.series_service = SeriesService(self.store, self.user_id, tags=self.tag_service, clock=clock)
        self.task_service = TaskService(
            self.store,
            self.user_id,
            series=self.series_service,
            tags=self.tag_service,
            clock=clock
        )
        self.note_service = NoteService(self.store, self.user_id, tags=self.tag_service, clock=clock)
        self.workspace_service = WorkspaceService(self.store, self.user_id)

    def close(self) -> None:
        if isinstance(self.store, RestStore):
            self.store.close()


def get_services() -> ServiceContainer:
    """Get the global service container instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = ServiceContainer()
    return _service_instance


def set_services(container: Optional[ServiceContainer]) -> None:
    """Install (or with None, reset) the global service container."""
    global _service_instance
    _service_instance = container

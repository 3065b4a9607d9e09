"""
Record store interface - the contract every storage backend implements.

Filters are dictionaries mapping a column to a PostgREST operator
expression, e.g. ``{"id": "eq.42", "completed_date": "is.null"}``. Use the
helpers below rather than formatting the expressions by hand.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Iterable

Filters = Dict[str, str]

TASKS = "tasks"
TAGS = "tags"
TASK_TAGS = "task_tags"
NOTES = "notes"
NOTE_TAGS = "note_tags"
WORKSPACES = "workspaces"


def format_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def eq(value: Any) -> str:
    return f"eq.{format_literal(value)}"


def neq(value: Any) -> str:
    return f"neq.{format_literal(value)}"


def lt(value: Any) -> str:
    return f"lt.{format_literal(value)}"


def gte(value: Any) -> str:
    return f"gte.{format_literal(value)}"


def ilike(pattern: str) -> str:
    """Case-insensitive match; ``*`` is the wildcard."""
    return f"ilike.{pattern}"


def is_null() -> str:
    return "is.null"


def in_(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(format_literal(v) for v in values) + ")"


class StoreInterface(ABC):
    """Abstract interface for record store operations."""

    @abstractmethod
    def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return records matching all filters."""
        pass

    @abstractmethod
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored."""
        pass

    @abstractmethod
    def update(self, collection: str, filters: Filters, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply a partial update to matching records and return them."""
        pass

    @abstractmethod
    def delete(self, collection: str, filters: Filters) -> None:
        """Delete matching records."""
        pass

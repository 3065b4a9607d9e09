"""
In-memory record store.

Understands the same PostgREST filter and order expressions as the REST
store, so services behave identically against either backend. Used for
``--store memory`` development runs and in tests.
"""
import copy
import logging
import re
import threading
import uuid
from typing import Optional, List, Dict, Any, Callable

from streamline_mcp.exceptions import StoreError
from streamline_mcp.storage.interface import StoreInterface, Filters, TASK_TAGS, NOTE_TAGS, format_literal
from streamline_mcp.utils.dates import parse_timestamp

logger = logging.getLogger(__name__)

# Junction tables have no id column
LINK_COLLECTIONS = frozenset({TASK_TAGS, NOTE_TAGS})


def _comparable(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value)
    try:
        return float(text)
    except ValueError:
        pass
    if len(text) >= 10 and text[4:5] == "-":
        parsed = parse_timestamp(text)
        if parsed is not None:
            return parsed
    return text


def _compile(column: str, expression: str) -> Callable[[Dict[str, Any]], bool]:
    op, _, operand = expression.partition(".")

    if op == "is":
        expected = {"null": None, "true": True, "false": False}.get(operand.lower())
        return lambda row: row.get(column) is expected

    if op == "in":
        options = {v.strip() for v in operand.strip("()").split(",") if v.strip()}
        return lambda row: row.get(column) is not None and format_literal(row.get(column)) in options

    if op == "ilike":
        pattern = re.compile(
            ".*".join(re.escape(part) for part in re.split(r"[*%]", operand)),
            re.IGNORECASE
        )
        return lambda row: row.get(column) is not None and pattern.fullmatch(str(row.get(column))) is not None

    if op in ("eq", "neq"):
        def matches(row: Dict[str, Any]) -> bool:
            value = row.get(column)
            equal = value is not None and format_literal(value) == operand
            return equal if op == "eq" else not equal
        return matches

    comparisons = {
        "lt": lambda a, b: a < b,
        "lte": lambda a, b: a <= b,
        "gt": lambda a, b: a > b,
        "gte": lambda a, b: a >= b,
    }
    if op in comparisons:
        compare = comparisons[op]
        target = _comparable(operand)

        def in_range(row: Dict[str, Any]) -> bool:
            value = row.get(column)
            if value is None:
                return False
            try:
                return compare(_comparable(value), target)
            except TypeError:
                return False
        return in_range

    raise StoreError(f"Unsupported filter operator '{op}' on column '{column}'", operation="filter")


class MemoryStore(StoreInterface):
    """Thread-safe dictionary-backed record store."""

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        for collection, rows in (seed or {}).items():
            for row in rows:
                self.insert(collection, row)

    def _matching(self, collection: str, filters: Optional[Filters]) -> List[Dict[str, Any]]:
        predicates = [_compile(col, expr) for col, expr in (filters or {}).items()]
        rows = self._collections.get(collection, [])
        return [row for row in rows if all(p(row) for p in predicates)]

    @staticmethod
    def _sort(rows: List[Dict[str, Any]], order: str) -> List[Dict[str, Any]]:
        # Apply keys right-to-left so the first key wins (stable sort)
        for key in reversed(order.split(",")):
            parts = key.strip().split(".")
            column = parts[0]
            descending = "desc" in parts[1:]
            nulls_last = "nullsfirst" not in parts[1:]

            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: _comparable(r.get(column)), reverse=descending)
            rows = present + missing if nulls_last else missing + present
        return rows

    def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._matching(collection, filters)
            if order:
                rows = self._sort(rows, order)
            if limit:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            row = copy.deepcopy(record)
            if "id" not in row and collection not in LINK_COLLECTIONS:
                row["id"] = str(uuid.uuid4())
            self._collections.setdefault(collection, []).append(row)
            return copy.deepcopy(row)

    def update(self, collection: str, filters: Filters, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise StoreError(f"Refusing unfiltered PATCH on {collection}", operation=f"PATCH {collection}")
        with self._lock:
            rows = self._matching(collection, filters)
            for row in rows:
                row.update(copy.deepcopy(data))
            return copy.deepcopy(rows)

    def delete(self, collection: str, filters: Filters) -> None:
        if not filters:
            raise StoreError(f"Refusing unfiltered DELETE on {collection}", operation=f"DELETE {collection}")
        with self._lock:
            doomed = {id(row) for row in self._matching(collection, filters)}
            self._collections[collection] = [
                row for row in self._collections.get(collection, []) if id(row) not in doomed
            ]

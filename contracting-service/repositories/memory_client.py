"""
In-process stand-in for the Supabase client.

Implements the subset of the PostgREST query builder the repositories use:

    client.table("contract_drafts").select("*").eq("customer_id", cid).order("created_at").execute()
    client.table("contract_drafts").insert(payload).execute()
    client.table("contract_drafts").update({"status": "ACTIVE"}).eq("draft_id", d).eq("status", "DRAFT").execute()
    client.table("contract_drafts").delete().eq("draft_id", d).execute()

Rows are plain dicts holding the same JSON-ready values the Supabase client
would send (strings for UUIDs, decimals and timestamps). `insert`, `update`
and `delete` return the affected rows, matching PostgREST's
`return=representation` default.

Used for mock mode (CONTRACTING_STORE=memory), as the degraded fallback
store, and in tests. Not intended for production use.
"""

from __future__ import annotations

import threading
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

_Row = Dict[str, Any]


@dataclass
class InMemoryResponse:
    data: List[_Row] = field(default_factory=list)
    count: Optional[int] = None
    error: Optional[str] = None


class InMemoryQuery:
    """Single-use query builder bound to one table."""

    def __init__(self, client: "InMemoryClient", table: str) -> None:
        self._client = client
        self.table = table
        self.operation = "select"
        self.columns: Optional[List[str]] = None
        self.payload: Any = None
        self.filters: List[Callable[[_Row], bool]] = []
        self.order_by: List[tuple[str, bool]] = []
        self.row_limit: Optional[int] = None

    # -- operations ---------------------------------------------------------

    def select(self, columns: str = "*", *extra: str) -> "InMemoryQuery":
        self.operation = "select"
        names = [c.strip() for c in ",".join((columns,) + extra).split(",") if c.strip()]
        self.columns = None if "*" in names else names
        return self

    def insert(self, payload: _Row | List[_Row]) -> "InMemoryQuery":
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload: _Row) -> "InMemoryQuery":
        self.operation = "update"
        self.payload = payload
        return self

    def upsert(self, payload: _Row | List[_Row], on_conflict: str = "") -> "InMemoryQuery":
        self.operation = "upsert"
        self.payload = payload
        self.columns = [c.strip() for c in on_conflict.split(",") if c.strip()]
        return self

    def delete(self) -> "InMemoryQuery":
        self.operation = "delete"
        return self

    # -- filters ------------------------------------------------------------

    def eq(self, column: str, value: Any) -> "InMemoryQuery":
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def neq(self, column: str, value: Any) -> "InMemoryQuery":
        self.filters.append(lambda row: not _same(row.get(column), value))
        return self

    def gte(self, column: str, value: Any) -> "InMemoryQuery":
        self.filters.append(lambda row: row.get(column) is not None and _cmp(row[column], value) >= 0)
        return self

    def lte(self, column: str, value: Any) -> "InMemoryQuery":
        self.filters.append(lambda row: row.get(column) is not None and _cmp(row[column], value) <= 0)
        return self

    def in_(self, column: str, values: List[Any]) -> "InMemoryQuery":
        self.filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def is_(self, column: str, value: Any) -> "InMemoryQuery":
        if value in (None, "null"):
            self.filters.append(lambda row: row.get(column) is None)
        elif value in (True, "true"):
            self.filters.append(lambda row: row.get(column) is True)
        elif value in (False, "false"):
            self.filters.append(lambda row: row.get(column) is False)
        else:
            raise ValueError(f"Unsupported is_ value: {value!r}")
        return self

    # -- modifiers ----------------------------------------------------------

    def order(self, column: str, *, desc: bool = False) -> "InMemoryQuery":
        self.order_by.append((column, desc))
        return self

    def limit(self, size: int) -> "InMemoryQuery":
        self.row_limit = size
        return self

    def execute(self) -> InMemoryResponse:
        return self._client._run(self)

    def matches(self, row: _Row) -> bool:
        return all(predicate(row) for predicate in self.filters)


def _same(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right or str(left).lower() == str(right).lower()
    return str(left) == str(right)


def _cmp(left: Any, right: Any) -> int:
    try:
        if left < right:
            return -1
        return 1 if left > right else 0
    except TypeError:
        a, b = str(left), str(right)
        return -1 if a < b else (1 if a > b else 0)


class InMemoryClient:
    """
    Thread-safe dict-of-lists row store with a Supabase-shaped `table()` API.

    One lock serializes every query, so a conditional update
    (`update(...).eq("status", "DRAFT")`) is an atomic compare-and-set just
    like the single UPDATE statement PostgREST issues.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, List[_Row]] = {}
        self._lock = threading.RLock()

    def table(self, name: str) -> InMemoryQuery:
        return InMemoryQuery(self, name)

    def rows(self, name: str) -> List[_Row]:
        """Snapshot copy of a table's rows, in insertion order."""
        with self._lock:
            return deepcopy(self._tables.get(name, []))

    def reset(self) -> None:
        with self._lock:
            self._tables.clear()

    def _run(self, query: InMemoryQuery) -> InMemoryResponse:
        with self._lock:
            rows = self._tables.setdefault(query.table, [])

            if query.operation == "insert":
                payload = query.payload if isinstance(query.payload, list) else [query.payload]
                inserted = [dict(row) for row in payload]
                rows.extend(inserted)
                return InMemoryResponse(data=deepcopy(inserted))

            if query.operation == "upsert":
                payload = query.payload if isinstance(query.payload, list) else [query.payload]
                keys = query.columns or []
                written: List[_Row] = []
                for new_row in payload:
                    existing = next(
                        (r for r in rows if keys and all(_same(r.get(k), new_row.get(k)) for k in keys)),
                        None,
                    )
                    if existing is None:
                        existing = dict(new_row)
                        rows.append(existing)
                    else:
                        existing.update(new_row)
                    written.append(existing)
                return InMemoryResponse(data=deepcopy(written))

            matched = [row for row in rows if query.matches(row)]

            if query.operation == "update":
                for row in matched:
                    row.update(query.payload)
                return InMemoryResponse(data=deepcopy(matched))

            if query.operation == "delete":
                self._tables[query.table] = [row for row in rows if not query.matches(row)]
                return InMemoryResponse(data=deepcopy(matched))

            for column, desc in reversed(query.order_by):
                matched.sort(key=lambda row: (row.get(column) is None, str(row.get(column) or "")), reverse=desc)
            if query.row_limit is not None:
                matched = matched[: query.row_limit]
            if query.columns:
                matched = [{c: row.get(c) for c in query.columns} for row in matched]
            return InMemoryResponse(data=deepcopy(matched), count=len(matched))


__all__ = ["InMemoryClient", "InMemoryQuery", "InMemoryResponse"]

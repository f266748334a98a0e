from __future__ import annotations

import copy
from collections import defaultdict
from collections.abc import Mapping

import pytest

from veroscale.domain_errors import PersistenceError
from veroscale.persistence.repositories import build_repositories
from veroscale.services.liveness import InMemoryLivenessStore, LivenessTracker


class MemoryBackend:
    """Dict-backed StorageBackend with the same equality/ordering semantics as the real ones."""

    name = "memory"

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self._ids: dict[str, int] = defaultdict(int)
        self.fail_on: set[tuple[str, str]] = set()
        self.calls = []

    def seed(self, table: str, **row) -> dict:
        if "id" not in row:
            self._ids[table] += 1
            row["id"] = self._ids[table]
        else:
            self._ids[table] = max(self._ids[table], row["id"])
        self.tables[table].append(row)
        return dict(row)

    def _match(self, table: str, filters: Mapping) -> list[dict]:
        return [row for row in self.tables[table] if all(row.get(k) == v for k, v in filters.items())]

    def execute(self, query):
        self.calls.append(query)
        if (query.table, query.action) in self.fail_on:
            raise PersistenceError("simulated failure", table=query.table, action=query.action)

        if query.action == "select":
            rows = self._match(query.table, query.filters)
            if query.order_by:
                rows = sorted(
                    rows,
                    key=lambda r: (r.get(query.order_by) is not None, r.get(query.order_by) or 0),
                    reverse=query.descending,
                )
            if query.columns:
                rows = [{c: r.get(c) for c in query.columns} for r in rows]
            else:
                rows = [dict(r) for r in rows]
            if query.single:
                return rows[0] if rows else None
            start = query.offset or 0
            end = start + query.limit if query.limit is not None else None
            return rows[start:end]

        if query.action == "insert":
            items = [query.data] if isinstance(query.data, Mapping) else list(query.data)
            inserted = [self.seed(query.table, **copy.deepcopy(dict(item))) for item in items]
            return inserted[0] if isinstance(query.data, Mapping) else inserted

        if query.action == "update":
            rows = self._match(query.table, query.filters)
            for row in rows:
                row.update(query.data)
            return [dict(r) for r in rows]

        rows = self._match(query.table, query.filters)
        self.tables[query.table] = [r for r in self.tables[query.table] if r not in rows]
        return [dict(r) for r in rows]


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def repos(backend):
    return build_repositories(backend)


@pytest.fixture
def tracker() -> LivenessTracker:
    return LivenessTracker(InMemoryLivenessStore(), timeout_seconds=10)

"""Backend-neutral query descriptor and result helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

ACTIONS = ("select", "insert", "update", "delete")

Row = dict[str, Any]


@dataclass(frozen=True)
class QueryDescriptor:
    """One round trip against a storage backend.

    Filters are equality conditions joined with AND. ``data`` is the payload
    for insert/update; a list of mappings on insert is a batch that either
    lands completely or not at all.
    """

    table: str
    action: str = "select"
    columns: Sequence[str] | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]] | None = None
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None
    offset: int | None = None
    single: bool = False

    def __post_init__(self) -> None:
        if self.action not in ACTIONS:
            raise ValueError(f"Unsupported action: {self.action}")
        if self.action in {"insert", "update"} and self.data is None:
            raise ValueError(f"{self.action} requires data")
        if self.action in {"update", "delete"} and not self.filters:
            # Unfiltered update/delete would touch the whole table.
            raise ValueError(f"{self.action} requires filters")


class StorageBackend(Protocol):
    """Anything that can execute a QueryDescriptor."""

    name: str

    def execute(self, query: QueryDescriptor) -> list[Row] | Row | None:
        ...


def unwrap_single(result: list[Row] | Row | None) -> Row | None:
    """Normalize "one row or a list of rows" into one row (or None)."""
    if result is None:
        return None
    if isinstance(result, list):
        return result[0] if result else None
    return result


def as_rows(result: list[Row] | Row | None) -> list[Row]:
    if result is None:
        return []
    if isinstance(result, list):
        return result
    return [result]

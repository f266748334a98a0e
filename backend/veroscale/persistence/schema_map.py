"""Canonical <-> remote naming for tables and columns.

Application code only uses the canonical names declared on the SQLAlchemy
models. The hosted backend still carries its historical names for a few
tables and columns; translation happens here and nowhere else.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .query import QueryDescriptor, Row


@dataclass(frozen=True)
class SchemaMapping:
    tables: Mapping[str, str] = field(default_factory=dict)
    # canonical table -> {canonical column: remote column}
    columns: Mapping[str, Mapping[str, str]] = field(default_factory=dict)
    # canonical table -> {legacy column: canonical column}, applied to rows read back
    legacy_aliases: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def remote_table(self, table: str) -> str:
        return self.tables.get(table, table)

    def remote_column(self, table: str, column: str) -> str:
        return self.columns.get(table, {}).get(column, column)

    def to_remote(self, table: str, values: Mapping[str, Any]) -> dict[str, Any]:
        return {self.remote_column(table, key): value for key, value in values.items()}

    def to_canonical(self, table: str, row: Mapping[str, Any]) -> Row:
        reverse = {remote: canonical for canonical, remote in self.columns.get(table, {}).items()}
        canonical_row = {reverse.get(key, key): value for key, value in row.items()}
        return normalize_row(table, canonical_row, self.legacy_aliases)

    def translate(self, query: QueryDescriptor) -> dict[str, Any]:
        """Remote names for every part of a descriptor."""
        data: Any = query.data
        if isinstance(data, Mapping):
            data = self.to_remote(query.table, data)
        elif data is not None:
            data = [self.to_remote(query.table, item) for item in data]
        return {
            "table": self.remote_table(query.table),
            "columns": [self.remote_column(query.table, c) for c in query.columns] if query.columns else None,
            "filters": self.to_remote(query.table, query.filters),
            "data": data,
            "order_by": self.remote_column(query.table, query.order_by) if query.order_by else None,
        }


def normalize_row(
    table: str,
    row: Mapping[str, Any],
    legacy_aliases: Mapping[str, Mapping[str, str]],
) -> Row:
    """Fold legacy column names into canonical ones without clobbering canonical values."""
    aliases = legacy_aliases.get(table, {})
    normalized = dict(row)
    for legacy, canonical in aliases.items():
        if legacy in normalized:
            value = normalized.pop(legacy)
            normalized.setdefault(canonical, value)
    return normalized


LEGACY_ALIASES: dict[str, dict[str, str]] = {
    "weight_records": {"record_id": "id"},
    "issues": {"user_id": "reporter_id", "type": "issue_type", "resolver_id": "resolved_by"},
}

IDENTITY_MAPPING = SchemaMapping(legacy_aliases=LEGACY_ALIASES)

BAAS_MAPPING = SchemaMapping(
    columns={
        "weight_records": {"id": "record_id"},
        "issues": {"reporter_id": "user_id", "issue_type": "type"},
    },
    legacy_aliases=LEGACY_ALIASES,
)

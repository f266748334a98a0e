"""Relational backend: executes query descriptors through SQLAlchemy Core."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models  # noqa: F401  (registers tables on Base.metadata)
from ..database import Base
from ..domain_errors import PersistenceError
from .query import QueryDescriptor, Row
from .schema_map import IDENTITY_MAPPING, SchemaMapping

logger = logging.getLogger(__name__)


class SqlBackend:
    """Runs each descriptor as one committed unit of work on a Session."""

    name = "sql"

    def __init__(
        self,
        db: Session,
        *,
        metadata: MetaData | None = None,
        mapping: SchemaMapping = IDENTITY_MAPPING,
    ) -> None:
        self.db = db
        self.metadata = metadata if metadata is not None else Base.metadata
        self.mapping = mapping

    def execute(self, query: QueryDescriptor) -> list[Row] | Row | None:
        try:
            table = self._table(query.table)
            if query.action == "select":
                return self._select(table, query)
            if query.action == "insert":
                result: list[Row] | Row | None = self._insert(table, query)
            elif query.action == "update":
                result = self._update(table, query)
            else:
                result = self._delete(table, query)
            self.db.commit()
            return result
        except (SQLAlchemyError, KeyError) as exc:
            self.db.rollback()
            logger.exception("SQL %s on %s failed", query.action, query.table)
            raise PersistenceError(str(exc), table=query.table, action=query.action) from exc

    def _table(self, name: str) -> Table:
        remote = self.mapping.remote_table(name)
        try:
            return self.metadata.tables[remote]
        except KeyError:
            raise KeyError(f"Unknown table: {name}") from None

    def _where(self, table: Table, filters: Mapping[str, Any]) -> list:
        clauses = []
        for key, value in self.mapping.to_remote(self._canonical_name(table), filters).items():
            column = table.c[key]
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    def _canonical_name(self, table: Table) -> str:
        for canonical, remote in self.mapping.tables.items():
            if remote == table.name:
                return canonical
        return table.name

    def _rows(self, table: Table, stmt) -> list[Row]:
        canonical = self._canonical_name(table)
        return [
            self.mapping.to_canonical(canonical, dict(row))
            for row in self.db.execute(stmt).mappings().all()
        ]

    def _select(self, table: Table, query: QueryDescriptor) -> list[Row] | Row | None:
        if query.columns:
            remote_columns = [self.mapping.remote_column(query.table, c) for c in query.columns]
            stmt = select(*(table.c[c] for c in remote_columns))
        else:
            stmt = select(table)
        stmt = stmt.where(*self._where(table, query.filters))
        if query.order_by:
            column = table.c[self.mapping.remote_column(query.table, query.order_by)]
            stmt = stmt.order_by(column.desc() if query.descending else column.asc())
        if query.single:
            stmt = stmt.limit(1)
        else:
            if query.limit is not None:
                stmt = stmt.limit(query.limit)
            if query.offset:
                stmt = stmt.offset(query.offset)
        rows = self._rows(table, stmt)
        if query.single:
            return rows[0] if rows else None
        return rows

    def _primary_key(self, table: Table):
        return list(table.primary_key.columns)[0]

    def _insert_one(self, table: Table, values: Mapping[str, Any]) -> Row:
        remote_values = self.mapping.to_remote(self._canonical_name(table), values)
        pk = self._primary_key(table)
        result = self.db.execute(insert(table).values(**remote_values))
        new_id = result.inserted_primary_key[0]
        rows = self._rows(table, select(table).where(pk == new_id))
        return rows[0]

    def _insert(self, table: Table, query: QueryDescriptor) -> list[Row] | Row:
        if isinstance(query.data, Mapping):
            return self._insert_one(table, query.data)
        # Batch: all rows share the caller's commit, any failure rolls every row back.
        return [self._insert_one(table, item) for item in query.data or []]

    def _update(self, table: Table, query: QueryDescriptor) -> list[Row]:
        pk = self._primary_key(table)
        ids = list(self.db.execute(select(pk).where(*self._where(table, query.filters))).scalars())
        if not ids:
            return []
        values = self.mapping.to_remote(self._canonical_name(table), query.data)  # type: ignore[arg-type]
        self.db.execute(update(table).where(pk.in_(ids)).values(**values))
        return self._rows(table, select(table).where(pk.in_(ids)).order_by(pk))

    def _delete(self, table: Table, query: QueryDescriptor) -> list[Row]:
        where = self._where(table, query.filters)
        rows = self._rows(table, select(table).where(*where))
        if rows:
            self.db.execute(delete(table).where(*where))
        return rows

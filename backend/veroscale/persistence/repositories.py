"""Typed repositories over a storage backend, plus the per-request factory."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from fastapi import Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..domain_errors import PersistenceError
from .baas_backend import BaasBackend
from .query import QueryDescriptor, Row, StorageBackend, as_rows, unwrap_single
from .sql_backend import SqlBackend

logger = logging.getLogger(__name__)


class _Repository:
    table: str = ""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def _run(self, **kwargs: Any):
        return self.backend.execute(QueryDescriptor(table=self.table, **kwargs))

    def find_by_id(self, entity_id: int) -> Row | None:
        return self._run(filters={"id": entity_id}, single=True)

    def list(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        columns: Sequence[str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Row]:
        return as_rows(
            self._run(
                filters=dict(filters or {}),
                columns=columns,
                order_by=order_by,
                descending=descending,
                limit=limit,
                offset=offset,
            )
        )

    def insert(self, data: Mapping[str, Any]) -> Row | None:
        return unwrap_single(self._run(action="insert", data=dict(data)))

    def update(self, entity_id: int, data: Mapping[str, Any]) -> Row | None:
        return unwrap_single(self._run(action="update", data=dict(data), filters={"id": entity_id}))

    def delete(self, entity_id: int) -> Row | None:
        return unwrap_single(self._run(action="delete", filters={"id": entity_id}))


class UserRepository(_Repository):
    table = "users"

    def find_by_email(self, email: str) -> Row | None:
        return self._run(filters={"email": email}, single=True)

    def names_for(self, ids: Iterable[Any]) -> dict[Any, str]:
        """Display names for the given ids; one equality lookup per distinct id."""
        names: dict[Any, str] = {}
        for user_id in dict.fromkeys(user_id for user_id in ids if user_id is not None):
            row = self._run(filters={"id": user_id}, columns=("id", "name"), single=True)
            if row is not None:
                names[user_id] = row["name"]
        return names


class MaterialRepository(_Repository):
    table = "ref_items"

    def find_by_name(self, name: str) -> Row | None:
        return self._run(filters={"name": name}, single=True)

    def find_many(self, ids: Iterable[int]) -> dict[int, Row]:
        """Resolve each distinct id with an equality lookup; missing ids are absent."""
        found: dict[int, Row] = {}
        for material_id in dict.fromkeys(ids):
            row = self.find_by_id(material_id)
            if row is not None:
                found[material_id] = row
        return found


class WeightRecordRepository(_Repository):
    table = "weight_records"

    def insert_batch(self, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        """Insert all rows in one backend call; nothing is kept if any row fails."""
        if not rows:
            return []
        return as_rows(self._run(action="insert", data=[dict(row) for row in rows]))

    def update_status(self, record_id: int, changes: Mapping[str, Any]) -> Row | None:
        return self.update(record_id, changes)


class IssueRepository(_Repository):
    table = "issues"


class RfidLogRepository(_Repository):
    table = "rfid_logs"


class AuditRepository(_Repository):
    table = "audit_events"

    def record(
        self,
        *,
        action: str,
        entity_type: str,
        entity_id: int,
        actor: Any | None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        """Best-effort audit write; failures are logged and swallowed."""
        try:
            self.insert(
                {
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "user_id": getattr(actor, "id", None),
                    "user_name": getattr(actor, "name", None),
                    "details": dict(details or {}),
                }
            )
        except PersistenceError:
            logger.exception("Failed to write audit event %s for %s %s", action, entity_type, entity_id)


@dataclass
class Repositories:
    users: UserRepository
    materials: MaterialRepository
    records: WeightRecordRepository
    issues: IssueRepository
    rfid_logs: RfidLogRepository
    audit: AuditRepository


def build_repositories(backend: StorageBackend) -> Repositories:
    return Repositories(
        users=UserRepository(backend),
        materials=MaterialRepository(backend),
        records=WeightRecordRepository(backend),
        issues=IssueRepository(backend),
        rfid_logs=RfidLogRepository(backend),
        audit=AuditRepository(backend),
    )


def build_backend(db: Session) -> StorageBackend:
    if settings.STORAGE_BACKEND.lower() == "baas":
        return BaasBackend(
            base_url=settings.BAAS_URL or "",
            service_key=settings.BAAS_SERVICE_KEY or "",
            schema=settings.BAAS_SCHEMA,
            timeout=settings.BAAS_TIMEOUT_SECONDS,
        )
    return SqlBackend(db)


def get_storage(db: Session = Depends(get_db)) -> StorageBackend:
    """Storage backend selected by STORAGE_BACKEND."""
    return build_backend(db)


def get_repositories(storage: StorageBackend = Depends(get_storage)) -> Repositories:
    return build_repositories(storage)

"""Weight-record use-cases used by the weights router."""
from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any

from ..auth import check_permission
from ..domain_errors import bad_request, forbidden, not_found
from ..persistence.repositories import Repositories
from ..schemas import BatchWeightCreate, MultiMaterialCreate, RecordStatusUpdate, WeightRecordCreate
from ..services.approval import (
    can_change_status,
    now_utc,
    normalize_status,
    record_transition_changes,
    validate_record_status,
)


def parse_weight(value: Any) -> float | None:
    """Positive-or-not float from a JSON number or numeric string; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def as_datetime(value: Any) -> datetime | None:
    """Rows from the REST backend carry ISO strings; SQL rows carry datetimes."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def paginate(rows: list[dict], *, page: int, limit: int) -> tuple[list[dict], dict[str, int]]:
    page = max(page, 1)
    limit = max(limit, 1)
    total = len(rows)
    start = (page - 1) * limit
    return rows[start:start + limit], {
        "current_page": page,
        "items_per_page": limit,
        "total_items": total,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def _get_record_or_404(*, repos: Repositories, record_id: int) -> dict:
    record = repos.records.find_by_id(record_id)
    if record is None:
        raise not_found("RECORD_NOT_FOUND", "Weight record not found")
    return record


def _get_material_or_404(*, repos: Repositories, material_id: int) -> dict:
    material = repos.materials.find_by_id(material_id)
    if material is None:
        raise not_found("MATERIAL_NOT_FOUND", f"Material with ID {material_id} not found")
    return material


def _with_user_names(repos: Repositories, records: list[dict]) -> list[dict]:
    if not records:
        return records
    names = repos.users.names_for(record.get("user_id") for record in records)
    return [{**record, "user_name": names.get(record.get("user_id"))} for record in records]


def _pending_row(material: dict, weight: float, *, notes: str | None, batch: Any, current_user, now: datetime) -> dict:
    """Row for a newly submitted record; batch-level fields come from ``batch``."""
    return {
        "item_id": material["id"],
        "item_name": material["name"],
        "total_weight": weight,
        "unit": "kg",
        "batch_number": batch.batch_number or None,
        "source": batch.source or None,
        "destination": batch.destination or None,
        "notes": notes or None,
        "status": "pending",
        "recorded_by": current_user.name,
        "user_id": current_user.id,
        "timestamp": now,
        "created_at": now,
        "updated_at": now,
    }


def create_weight_record_use_case(*, repos: Repositories, data: WeightRecordCreate, current_user) -> dict:
    """Create one pending record for a known material."""
    if data.item_id is None:
        raise bad_request("MATERIAL_REQUIRED", "Material ID is required")
    weight = parse_weight(data.total_weight)
    if weight is None:
        raise bad_request("WEIGHT_REQUIRED", "Total weight is required")
    if weight <= 0:
        raise bad_request("INVALID_WEIGHT", "Total weight must be greater than zero")

    material = _get_material_or_404(repos=repos, material_id=data.item_id)
    now = now_utc()
    record = repos.records.insert(
        {
            "item_id": material["id"],
            "item_name": material["name"],
            "total_weight": weight,
            "quantity": data.quantity,
            "unit": "kg",
            "batch_number": data.batch_number,
            "source": data.source,
            "destination": data.destination,
            "notes": data.notes,
            "status": "pending",
            "recorded_by": current_user.name,
            "user_id": current_user.id,
            "timestamp": now,
            "created_at": now,
            "updated_at": now,
        }
    )
    return record


def create_multi_material_records_use_case(*, repos: Repositories, data: MultiMaterialCreate, current_user) -> dict:
    """Create one pending record per entry; every entry is checked before anything is written."""
    entries = data.material_entries or []
    if not entries:
        raise bad_request("MATERIAL_ENTRIES_REQUIRED", "Material entries are required")

    weights: list[float] = []
    for index, entry in enumerate(entries):
        weight = parse_weight(entry.weight)
        if not entry.material_id or weight is None or weight <= 0:
            raise bad_request(
                "INVALID_MATERIAL_ENTRY",
                "Material ID and weight are required for each entry",
                {"entry": index},
            )
        weights.append(weight)

    materials = repos.materials.find_many(entry.material_id for entry in entries)
    for entry in entries:
        if entry.material_id not in materials:
            raise not_found("MATERIAL_NOT_FOUND", f"Material with ID {entry.material_id} not found")

    now = now_utc()
    rows = [
        _pending_row(materials[entry.material_id], weight, notes=entry.notes, batch=data, current_user=current_user, now=now)
        for entry, weight in zip(entries, weights)
    ]
    inserted = repos.records.insert_batch(rows)

    summaries = [
        {
            "id": record["id"],
            "material_id": entry.material_id,
            "material_name": materials[entry.material_id]["name"],
            "weight": weight,
            "unit": "kg",
            "notes": entry.notes,
        }
        for record, entry, weight in zip(inserted, entries, weights)
    ]
    return {
        "message": "Multi-material records created successfully",
        "records": summaries,
        "total_records": len(summaries),
        "total_weight": sum(weights),
    }


def create_batch_records_use_case(*, repos: Repositories, data: BatchWeightCreate, current_user) -> dict:
    """Several weighings of one material, stored as one pending record each, all or nothing."""
    items = data.batch_items or []
    if data.item_id is None or not items:
        raise bad_request("BATCH_ITEMS_REQUIRED", "Item ID and at least one batch item are required")

    weights: list[float] = []
    for index, item in enumerate(items):
        weight = parse_weight(item.weight)
        if weight is None or weight <= 0:
            raise bad_request("INVALID_BATCH_ITEM", "Each batch item needs a weight greater than zero", {"item": index})
        weights.append(weight)

    material = _get_material_or_404(repos=repos, material_id=data.item_id)
    now = now_utc()
    inserted = repos.records.insert_batch(
        [
            _pending_row(material, weight, notes=item.notes, batch=data, current_user=current_user, now=now)
            for item, weight in zip(items, weights)
        ]
    )
    return {
        "message": f"{len(inserted)} weight records added successfully",
        "records": _with_user_names(repos, inserted),
        "total_records": len(inserted),
        "total_weight": sum(weights),
    }


def list_weight_records_use_case(
    *,
    repos: Repositories,
    current_user,
    item_id: int | None = None,
    user_id: int | None = None,
    status: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    filters: dict[str, Any] = {}
    if item_id is not None:
        filters["item_id"] = item_id
    if user_id is not None:
        filters["user_id"] = user_id
    if status:
        filters["status"] = normalize_status(status)
    if not check_permission(current_user, "canViewAllRecords"):
        filters["user_id"] = current_user.id

    records = repos.records.list(filters=filters, order_by="timestamp", descending=True)

    # Range filters are not expressible as equality filters; apply them here.
    start = as_datetime(start_date)
    end = as_datetime(end_date)
    if start or end:
        kept = []
        for record in records:
            stamp = as_datetime(record.get("timestamp"))
            if stamp is None:
                continue
            if start and stamp < start:
                continue
            if end and stamp > end:
                continue
            kept.append(record)
        records = kept

    page_rows, pagination = paginate(records, page=page, limit=limit)
    return {"records": _with_user_names(repos, page_rows), "pagination": pagination}


def get_weight_record_use_case(*, repos: Repositories, record_id: int, current_user) -> dict:
    record = _get_record_or_404(repos=repos, record_id=record_id)
    if not check_permission(current_user, "canViewAllRecords") and record.get("user_id") != current_user.id:
        raise not_found("RECORD_NOT_FOUND", "Weight record not found")
    return _with_user_names(repos, [record])[0]


def update_record_status_use_case(
    *,
    repos: Repositories,
    record_id: int,
    data: RecordStatusUpdate,
    current_user,
) -> dict:
    """Apply an approval transition and audit it."""
    if not data.status:
        raise bad_request("INVALID_RECORD_STATUS", "Invalid status value")
    next_status = validate_record_status(data.status)

    if not can_change_status(current_user):
        raise forbidden("RECORD_STATUS_FORBIDDEN", "Only administrators and managers can change approval status")

    record = _get_record_or_404(repos=repos, record_id=record_id)
    old_status = record.get("status")
    changes = record_transition_changes(
        current_status=old_status,
        next_status=next_status,
        actor_id=current_user.id,
    )
    if data.resolution is not None and "resolution" not in changes:
        changes["resolution"] = data.resolution

    updated = repos.records.update_status(record_id, changes)
    if updated is None:
        raise not_found("RECORD_NOT_FOUND", "Weight record not found")

    repos.audit.record(
        action="record_status_changed",
        entity_type="weight_record",
        entity_id=record_id,
        actor=current_user,
        details={"old_status": old_status, "new_status": next_status},
    )
    return _with_user_names(repos, [updated])[0]


def delete_weight_record_use_case(*, repos: Repositories, record_id: int, current_user) -> None:
    if not check_permission(current_user, "canDeleteRecords"):
        raise forbidden("RECORD_DELETE_FORBIDDEN", "Only administrators can delete weight records")

    record = _get_record_or_404(repos=repos, record_id=record_id)
    repos.records.delete(record_id)
    repos.audit.record(
        action="record_deleted",
        entity_type="weight_record",
        entity_id=record_id,
        actor=current_user,
        details={"item_id": record.get("item_id"), "status": record.get("status")},
    )

"""Approval status rules for weight records and issues."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..auth import check_permission
from ..domain_errors import bad_request
from ..models import ISSUE_STATUSES, RECORD_STATUSES


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_status(status: str | None, *, default: str = "pending") -> str:
    if not status:
        return default
    return status.strip().lower()


def can_change_status(user) -> bool:
    return check_permission(user, "canApproveRecords")


def validate_record_status(status: str | None) -> str:
    nxt = normalize_status(status)
    if nxt not in RECORD_STATUSES:
        raise bad_request("INVALID_RECORD_STATUS", "Invalid status value", {"allowed": list(RECORD_STATUSES)})
    return nxt


def validate_issue_status(status: str | None) -> str:
    nxt = normalize_status(status)
    if nxt not in ISSUE_STATUSES:
        raise bad_request("INVALID_ISSUE_STATUS", "Invalid status value", {"allowed": list(ISSUE_STATUSES)})
    return nxt


def record_transition_changes(
    *,
    current_status: str | None,
    next_status: str,
    actor_id: Any,
    at: datetime | None = None,
) -> dict[str, Any]:
    """Column changes for moving a weight record to ``next_status``.

    Approval stamps the approver; rejection only records the status; an
    approved record reset to pending loses its approval metadata.
    """
    ts = at or now_utc()
    current = normalize_status(current_status)
    nxt = validate_record_status(next_status)

    changes: dict[str, Any] = {"status": nxt, "updated_at": ts}
    if nxt == "approved":
        changes["approved_by"] = actor_id
        changes["approved_at"] = ts
    elif nxt == "pending" and current == "approved":
        changes["approved_by"] = None
        changes["approved_at"] = None
        changes["resolution"] = None
    return changes


def issue_transition_changes(
    *,
    current_status: str | None,
    next_status: str,
    resolved_by: Any = None,
    at: datetime | None = None,
) -> dict[str, Any]:
    """Column changes for moving an issue to ``next_status`` (updated_at excluded)."""
    ts = at or now_utc()
    current = normalize_status(current_status)
    nxt = validate_issue_status(next_status)

    changes: dict[str, Any] = {"status": nxt}
    if nxt == "resolved" and current != "resolved":
        changes["resolved_at"] = ts
        if resolved_by is not None:
            changes["resolved_by"] = resolved_by
    elif nxt == "pending" and current == "resolved":
        changes["resolved_at"] = None
        changes["resolved_by"] = None
        changes["resolution"] = None
    return changes

"""Issue tracking use-cases."""
from __future__ import annotations

from typing import Any

from ..auth import check_permission
from ..domain_errors import bad_request, forbidden, not_found
from ..persistence.repositories import Repositories
from ..schemas import IssueCreate, IssueUpdate
from ..services.approval import issue_transition_changes, normalize_status, now_utc, validate_issue_status

UNKNOWN_REPORTER = "Unknown User"


def _get_issue_or_404(*, repos: Repositories, issue_id: int) -> dict:
    issue = repos.issues.find_by_id(issue_id)
    if issue is None:
        raise not_found("ISSUE_NOT_FOUND", "Issue not found")
    return issue


def _with_reporter_names(repos: Repositories, issues: list[dict]) -> list[dict]:
    if not issues:
        return issues
    names = repos.users.names_for(issue.get("reporter_id") for issue in issues)
    return [
        {**issue, "reporter_name": names.get(issue.get("reporter_id")) or UNKNOWN_REPORTER}
        for issue in issues
    ]


def _is_reporter(issue: dict, current_user) -> bool:
    return issue.get("reporter_id") == current_user.id


def list_issues_use_case(
    *,
    repos: Repositories,
    status: str | None = None,
    priority: str | None = None,
    issue_type: str | None = None,
    search: str | None = None,
) -> dict:
    filters: dict[str, Any] = {}
    if status:
        filters["status"] = normalize_status(status)
    if priority:
        filters["priority"] = priority.strip().lower()
    if issue_type:
        filters["issue_type"] = issue_type

    issues = repos.issues.list(filters=filters, order_by="created_at", descending=True)
    if search:
        needle = search.lower()
        issues = [
            issue for issue in issues
            if needle in (issue.get("title") or "").lower() or needle in (issue.get("description") or "").lower()
        ]

    issues = _with_reporter_names(repos, issues)
    return {"issues": issues, "total": len(issues)}


def create_issue_use_case(*, repos: Repositories, data: IssueCreate, current_user) -> dict:
    title = (data.title or "").strip()
    description = (data.description or "").strip()
    if not title or not description:
        raise bad_request("ISSUE_FIELDS_REQUIRED", "Title and description are required")

    if data.record_id is not None and repos.records.find_by_id(data.record_id) is None:
        raise not_found("RECORD_NOT_FOUND", "Weight record not found")

    now = now_utc()
    issue = repos.issues.insert(
        {
            "title": title,
            "description": description,
            "issue_type": data.issue_type or "other",
            "priority": data.priority or "medium",
            "status": "pending",
            "reporter_id": current_user.id,
            "record_id": data.record_id,
            "created_at": now,
            "updated_at": now,
        }
    )
    return _with_reporter_names(repos, [issue])[0]


def get_issue_use_case(*, repos: Repositories, issue_id: int) -> dict:
    issue = _get_issue_or_404(repos=repos, issue_id=issue_id)
    return _with_reporter_names(repos, [issue])[0]


def update_issue_use_case(*, repos: Repositories, issue_id: int, data: IssueUpdate, current_user) -> dict:
    """Partial update; status changes follow the resolve/re-open rules."""
    issue = _get_issue_or_404(repos=repos, issue_id=issue_id)
    can_resolve = check_permission(current_user, "canResolveIssues")

    if not can_resolve and not _is_reporter(issue, current_user):
        raise forbidden("ISSUE_EDIT_FORBIDDEN", "Only the reporter, administrators and managers can edit this issue")
    if (data.status is not None or data.resolution is not None) and not can_resolve:
        raise forbidden("ISSUE_STATUS_FORBIDDEN", "Only administrators and managers can change issue status")

    changes: dict[str, Any] = {}
    for field in ("title", "description", "issue_type", "priority"):
        value = getattr(data, field)
        if value is not None:
            changes[field] = value

    old_status = issue.get("status")
    next_status = None
    if data.status is not None:
        next_status = validate_issue_status(data.status)
        changes.update(
            issue_transition_changes(
                current_status=old_status,
                next_status=next_status,
                resolved_by=data.resolver_id,
            )
        )
    # A re-open clears the resolution even when one was sent alongside it.
    if data.resolution is not None and "resolution" not in changes:
        changes["resolution"] = data.resolution
    changes["updated_at"] = now_utc()

    updated = repos.issues.update(issue_id, changes)
    if updated is None:
        raise not_found("ISSUE_NOT_FOUND", "Issue not found")

    if next_status is not None and next_status != normalize_status(old_status):
        repos.audit.record(
            action="issue_status_changed",
            entity_type="issue",
            entity_id=issue_id,
            actor=current_user,
            details={"old_status": old_status, "new_status": next_status},
        )
    return _with_reporter_names(repos, [updated])[0]


def delete_issue_use_case(*, repos: Repositories, issue_id: int, current_user) -> None:
    issue = _get_issue_or_404(repos=repos, issue_id=issue_id)
    if not check_permission(current_user, "canResolveIssues") and not _is_reporter(issue, current_user):
        raise forbidden("ISSUE_DELETE_FORBIDDEN", "Only the reporter, administrators and managers can delete this issue")

    repos.issues.delete(issue_id)
    repos.audit.record(
        action="issue_deleted",
        entity_type="issue",
        entity_id=issue_id,
        actor=current_user,
        details={"title": issue.get("title"), "status": issue.get("status")},
    )

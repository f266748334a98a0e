from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from veroscale.domain_errors import DomainError
from veroscale.schemas import IssueCreate, IssueUpdate
from veroscale.use_cases.issues import (
    create_issue_use_case,
    delete_issue_use_case,
    get_issue_use_case,
    list_issues_use_case,
    update_issue_use_case,
)


def _user(*, id=1, role="operator", name="Olga Operator"):
    return SimpleNamespace(id=id, role=role, name=name, email=f"u{id}@example.com")


def _seed_issue(backend, **overrides):
    row = {
        "title": "Scale drift",
        "description": "Readings jump by 200 g",
        "issue_type": "equipment",
        "priority": "medium",
        "status": "pending",
        "reporter_id": 1,
        "resolved_by": None,
        "resolved_at": None,
        "resolution": None,
        "record_id": None,
        "created_at": datetime(2026, 2, 1, tzinfo=timezone.utc),
    }
    row.update(overrides)
    return backend.seed("issues", **row)


def test_create_issue_uses_authenticated_reporter_and_defaults(backend, repos) -> None:
    backend.seed("users", id=4, name="Rita Reporter")
    data = IssueCreate.model_validate({"title": "Broken", "description": "Display dead", "type": "equipment"})

    issue = create_issue_use_case(repos=repos, data=data, current_user=_user(id=4))

    assert issue["reporter_id"] == 4
    assert issue["reporter_name"] == "Rita Reporter"
    assert issue["status"] == "pending"
    assert issue["priority"] == "medium"
    assert issue["issue_type"] == "equipment"


def test_create_issue_requires_title_and_description(repos) -> None:
    with pytest.raises(DomainError) as exc:
        create_issue_use_case(repos=repos, data=IssueCreate(title="  ", description="x"), current_user=_user())

    assert exc.value.http_status == 400


def test_create_issue_with_unknown_record_is_404(repos) -> None:
    with pytest.raises(DomainError) as exc:
        create_issue_use_case(
            repos=repos, data=IssueCreate(title="t", description="d", record_id=77), current_user=_user()
        )

    assert exc.value.code == "RECORD_NOT_FOUND"


def test_list_issues_filters_searches_and_defaults_reporter_name(backend, repos) -> None:
    backend.seed("users", id=1, name="Olga Operator")
    _seed_issue(backend, title="Scale drift", created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
    _seed_issue(backend, title="Label printer", description="out of DRIFT paper", reporter_id=99,
                created_at=datetime(2026, 2, 3, tzinfo=timezone.utc))
    _seed_issue(backend, title="Resolved drift", status="resolved")

    result = list_issues_use_case(repos=repos, status="pending", search="drift")

    assert result["total"] == 2
    assert [i["title"] for i in result["issues"]] == ["Label printer", "Scale drift"]
    assert [i["reporter_name"] for i in result["issues"]] == ["Unknown User", "Olga Operator"]


def test_get_missing_issue_is_404(repos) -> None:
    with pytest.raises(DomainError) as exc:
        get_issue_use_case(repos=repos, issue_id=5)

    assert exc.value.code == "ISSUE_NOT_FOUND"


def test_resolving_sets_resolved_at_and_audits(backend, repos) -> None:
    _seed_issue(backend, id=1)
    manager = _user(id=2, role="manager")

    issue = update_issue_use_case(
        repos=repos,
        issue_id=1,
        data=IssueUpdate.model_validate({"status": "resolved", "resolution": "recalibrated", "resolved_by": 2}),
        current_user=manager,
    )

    assert issue["status"] == "resolved"
    assert issue["resolved_at"] is not None
    assert issue["resolved_by"] == 2
    assert issue["resolution"] == "recalibrated"
    assert issue["updated_at"] is not None
    assert backend.tables["audit_events"][0]["action"] == "issue_status_changed"


def test_reopen_clears_resolution_fields_even_if_resolution_sent(backend, repos) -> None:
    _seed_issue(
        backend,
        id=1,
        status="resolved",
        resolved_by=2,
        resolved_at=datetime(2026, 2, 2, tzinfo=timezone.utc),
        resolution="recalibrated",
    )

    issue = update_issue_use_case(
        repos=repos,
        issue_id=1,
        data=IssueUpdate(status="pending", resolution="still broken"),
        current_user=_user(id=2, role="admin"),
    )

    assert issue["status"] == "pending"
    assert issue["resolved_at"] is None
    assert issue["resolved_by"] is None
    assert issue["resolution"] is None


def test_resolved_to_resolved_keeps_original_resolution_time(backend, repos) -> None:
    resolved_at = datetime(2026, 2, 2, tzinfo=timezone.utc)
    _seed_issue(backend, id=1, status="resolved", resolved_at=resolved_at, resolved_by=2)

    issue = update_issue_use_case(
        repos=repos, issue_id=1, data=IssueUpdate(status="resolved"), current_user=_user(id=3, role="manager")
    )

    assert issue["resolved_at"] == resolved_at
    assert issue["resolved_by"] == 2
    assert backend.tables["audit_events"] == []


def test_reporter_can_edit_fields_but_not_status(backend, repos) -> None:
    _seed_issue(backend, id=1, reporter_id=1)

    issue = update_issue_use_case(
        repos=repos, issue_id=1, data=IssueUpdate(title="Scale drift (bay 2)"), current_user=_user(id=1)
    )
    assert issue["title"] == "Scale drift (bay 2)"

    with pytest.raises(DomainError) as exc:
        update_issue_use_case(repos=repos, issue_id=1, data=IssueUpdate(status="resolved"), current_user=_user(id=1))
    assert exc.value.code == "ISSUE_STATUS_FORBIDDEN"


def test_other_operator_cannot_edit_or_delete(backend, repos) -> None:
    _seed_issue(backend, id=1, reporter_id=1)
    stranger = _user(id=9)

    with pytest.raises(DomainError) as exc:
        update_issue_use_case(repos=repos, issue_id=1, data=IssueUpdate(title="x"), current_user=stranger)
    assert exc.value.http_status == 403

    with pytest.raises(DomainError) as exc:
        delete_issue_use_case(repos=repos, issue_id=1, current_user=stranger)
    assert exc.value.http_status == 403


def test_reporter_deletes_own_issue(backend, repos) -> None:
    _seed_issue(backend, id=1, reporter_id=1)

    delete_issue_use_case(repos=repos, issue_id=1, current_user=_user(id=1))

    assert backend.tables["issues"] == []

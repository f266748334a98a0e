"""Issue endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth import AuthenticatedUser, get_current_user
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import IssueCreate, IssueEnvelope, IssueListResponse, IssueUpdate, MessageResponse
from ..use_cases.issues import (
    create_issue_use_case,
    delete_issue_use_case,
    get_issue_use_case,
    list_issues_use_case,
    update_issue_use_case,
)

router = APIRouter(prefix="/issues", tags=["issues"])


@router.get("", response_model=IssueListResponse)
def list_issues(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    issue_type: Optional[str] = Query(None, alias="type"),
    search: Optional[str] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    return list_issues_use_case(
        repos=repos,
        status=status_filter,
        priority=priority,
        issue_type=issue_type,
        search=search,
    )


@router.post("", response_model=IssueEnvelope, status_code=status.HTTP_201_CREATED)
def create_issue(
    data: IssueCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    issue = create_issue_use_case(repos=repos, data=data, current_user=current_user)
    return {"message": "Issue created successfully", "issue": issue}


@router.get("/{issue_id}", response_model=IssueEnvelope)
def get_issue(
    issue_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    return {"issue": get_issue_use_case(repos=repos, issue_id=issue_id)}


@router.put("/{issue_id}", response_model=IssueEnvelope)
def update_issue(
    issue_id: int,
    data: IssueUpdate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Partial update, including resolve and re-open."""
    issue = update_issue_use_case(repos=repos, issue_id=issue_id, data=data, current_user=current_user)
    return {"message": "Issue updated successfully", "issue": issue}


@router.delete("/{issue_id}", response_model=MessageResponse)
def delete_issue(
    issue_id: int,
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    delete_issue_use_case(repos=repos, issue_id=issue_id, current_user=current_user)
    return {"message": "Issue deleted successfully"}

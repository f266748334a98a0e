"""User management endpoints (admin only)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth import AuthenticatedUser, PermissionChecker
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import MessageResponse, UserCreate, UserListResponse, UserResponse, UserUpdate
from ..use_cases.users import (
    create_user_use_case,
    deactivate_user_use_case,
    get_user_use_case,
    list_users_use_case,
    update_user_use_case,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
def list_users(
    role: Optional[str] = Query(None, pattern="^(admin|manager|operator)$"),
    search: Optional[str] = None,
    include_inactive: bool = True,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageUsers")),
    repos: Repositories = Depends(get_repositories),
):
    """List all users."""
    return list_users_use_case(
        repos=repos,
        role=role,
        search=search,
        include_inactive=include_inactive,
        page=page,
        limit=limit,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageUsers")),
    repos: Repositories = Depends(get_repositories),
):
    """Create a user with any role."""
    return create_user_use_case(repos=repos, data=data, current_user=current_user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageUsers")),
    repos: Repositories = Depends(get_repositories),
):
    """Get user by ID."""
    return get_user_use_case(repos=repos, user_id=user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdate,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageUsers")),
    repos: Repositories = Depends(get_repositories),
):
    return update_user_use_case(repos=repos, user_id=user_id, data=data, current_user=current_user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageUsers")),
    repos: Repositories = Depends(get_repositories),
):
    deactivate_user_use_case(repos=repos, user_id=user_id, current_user=current_user)
    return {"message": "User deactivated successfully"}

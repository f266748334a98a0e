"""User administration use-cases."""
from __future__ import annotations

import logging

from ..auth import get_password_hash
from ..config import settings
from ..domain_errors import DomainError, bad_request, not_found
from ..persistence.repositories import Repositories
from ..schemas import UserCreate, UserUpdate
from ..services.approval import now_utc
from .weight_records import paginate

logger = logging.getLogger(__name__)

PUBLIC_COLUMNS = ("id", "email", "name", "role", "is_active", "created_at")


def _public(user: dict) -> dict:
    return {key: user.get(key) for key in PUBLIC_COLUMNS}


def _get_user_or_404(*, repos: Repositories, user_id: int) -> dict:
    user = repos.users.find_by_id(user_id)
    if user is None:
        raise not_found("USER_NOT_FOUND", "User not found")
    return user


def _normalized_email(email: str) -> str:
    email = email.strip().lower()
    if "@" not in email:
        raise bad_request("INVALID_EMAIL", "A valid email address is required")
    return email


def _check_password(password: str) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise bad_request(
            "PASSWORD_TOO_SHORT",
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )


def _ensure_email_free(*, repos: Repositories, email: str, user_id: int | None = None) -> None:
    existing = repos.users.find_by_email(email)
    if existing is not None and existing["id"] != user_id:
        raise DomainError(code="EMAIL_TAKEN", http_status=409, message="User with this email already exists")


def create_user_use_case(*, repos: Repositories, data: UserCreate, current_user=None) -> dict:
    """Create an account; self-service sign-up passes no ``current_user``."""
    email = _normalized_email(data.email)
    _check_password(data.password)
    _ensure_email_free(repos=repos, email=email)

    now = now_utc()
    user = repos.users.insert(
        {
            "email": email,
            "name": data.name.strip(),
            "password_hash": get_password_hash(data.password),
            "role": data.role,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
    )
    repos.audit.record(
        action="user_created",
        entity_type="user",
        entity_id=user["id"],
        actor=current_user,
        details={"role": user["role"]},
    )
    logger.info("Created user %s with role %s", user["id"], user["role"])
    return user


def list_users_use_case(
    *,
    repos: Repositories,
    role: str | None = None,
    search: str | None = None,
    include_inactive: bool = True,
    page: int = 1,
    limit: int = 50,
) -> dict:
    filters = {"role": role} if role else None
    users = repos.users.list(filters=filters, columns=PUBLIC_COLUMNS, order_by="name")
    if not include_inactive:
        users = [user for user in users if user.get("is_active", True)]
    if search:
        needle = search.lower()
        users = [user for user in users if needle in user["name"].lower() or needle in user["email"].lower()]
    rows, pagination = paginate(users, page=page, limit=limit)
    return {"users": rows, "pagination": pagination}


def get_user_use_case(*, repos: Repositories, user_id: int) -> dict:
    return _public(_get_user_or_404(repos=repos, user_id=user_id))


def update_user_use_case(*, repos: Repositories, user_id: int, data: UserUpdate, current_user) -> dict:
    user = _get_user_or_404(repos=repos, user_id=user_id)
    changes = data.model_dump(exclude_unset=True)

    # An admin cannot lock themselves out.
    if user_id == current_user.id and (
        changes.get("role", user["role"]) != user["role"] or changes.get("is_active") is False
    ):
        raise bad_request("SELF_LOCKOUT", "You cannot change your own role or deactivate your own account")

    if "email" in changes:
        changes["email"] = _normalized_email(changes["email"])
        _ensure_email_free(repos=repos, email=changes["email"], user_id=user_id)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    password = changes.pop("password", None)
    if password is not None:
        _check_password(password)
        changes["password_hash"] = get_password_hash(password)
    changes["updated_at"] = now_utc()

    updated = repos.users.update(user_id, changes)
    if updated is None:
        raise not_found("USER_NOT_FOUND", "User not found")

    if updated["role"] != user["role"]:
        repos.audit.record(
            action="user_role_changed",
            entity_type="user",
            entity_id=user_id,
            actor=current_user,
            details={"old_role": user["role"], "new_role": updated["role"]},
        )
    return _public(updated)


def deactivate_user_use_case(*, repos: Repositories, user_id: int, current_user) -> None:
    """Accounts are deactivated, not removed; their records and issues keep pointing at them."""
    if user_id == current_user.id:
        raise bad_request("SELF_LOCKOUT", "You cannot delete your own account")
    _get_user_or_404(repos=repos, user_id=user_id)
    repos.users.update(user_id, {"is_active": False, "updated_at": now_utc()})
    repos.audit.record(
        action="user_deactivated",
        entity_type="user",
        entity_id=user_id,
        actor=current_user,
    )

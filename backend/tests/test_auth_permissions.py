from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from veroscale.auth import (
    ROLE_PERMISSIONS,
    PermissionChecker,
    check_permission,
    create_access_token,
    decode_token,
    get_password_hash,
    verify_password,
)

PERMISSION_KEYS = {
    "canApproveRecords",
    "canResolveIssues",
    "canViewAllRecords",
    "canDeleteRecords",
    "canManageMaterials",
    "canSyncIoT",
    "canManageUsers",
}


@pytest.mark.parametrize(
    ("role", "granted"),
    [
        ("admin", PERMISSION_KEYS),
        (
            "manager",
            {"canApproveRecords", "canResolveIssues", "canViewAllRecords", "canManageMaterials", "canSyncIoT"},
        ),
        ("operator", {"canSyncIoT"}),
    ],
)
def test_role_permission_matrix_is_stable(role: str, granted: set[str]) -> None:
    user = SimpleNamespace(role=role)
    assert {key for key in PERMISSION_KEYS if check_permission(user, key)} == granted


def test_every_role_declares_the_full_keyset() -> None:
    for permissions in ROLE_PERMISSIONS.values():
        assert set(permissions) == PERMISSION_KEYS


def test_unknown_role_and_unknown_permission_are_denied() -> None:
    assert check_permission(SimpleNamespace(role="guest"), "canSyncIoT") is False
    assert check_permission(SimpleNamespace(role="admin"), "canLaunchRockets") is False


def test_permission_checker_raises_403_for_missing_permission() -> None:
    checker = PermissionChecker("canManageMaterials")
    operator = SimpleNamespace(role="operator")

    with pytest.raises(HTTPException) as exc:
        checker(current_user=operator)

    assert exc.value.status_code == 403
    manager = SimpleNamespace(role="manager")
    assert checker(current_user=manager) is manager


def test_access_token_round_trip() -> None:
    payload = decode_token(create_access_token({"sub": "7", "role": "operator"}))

    assert payload["sub"] == "7"
    assert payload["type"] == "access"


def test_expired_token_is_rejected() -> None:
    token = create_access_token({"sub": "7"}, expires_delta=timedelta(hours=-1))

    with pytest.raises(HTTPException) as exc:
        decode_token(token)

    assert exc.value.status_code == 401


def test_password_hash_verifies_and_bad_hash_is_false() -> None:
    hashed = get_password_hash("s3cret-pass")

    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret-pass", "not-a-bcrypt-hash")

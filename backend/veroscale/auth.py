"""Authentication and authorization."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import logging
import time
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .config import settings
from .persistence.repositories import Repositories, get_repositories

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)

# Bearer token scheme; auto_error=False so a missing header maps to 401, not 403.
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Per-request identity resolved from the bearer token."""

    id: int
    email: str
    name: str
    role: str

    @classmethod
    def from_row(cls, row: dict) -> "AuthenticatedUser":
        return cls(id=row["id"], email=row["email"], name=row["name"], role=row["role"])


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception:
        # Invalid/corrupted hash should not crash login flow.
        logger.exception("Password verification failed due to invalid hash format")
        return False


def get_password_hash(password: str) -> str:
    """Hash password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    now = int(time.time())
    if expires_delta:
        exp = now + int(expires_delta.total_seconds())
    else:
        exp = now + int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60
    to_encode.update({"exp": exp, "iat": now, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode JWT token, allowing JWT_LEEWAY_SECONDS of clock skew on exp."""
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        raise _unauthorized()

    exp = payload.get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        raise _unauthorized()
    if int(time.time()) > exp_int + int(settings.JWT_LEEWAY_SECONDS):
        raise _unauthorized("Token expired")
    return payload


def _parse_token_subject(payload: dict) -> int:
    """Parse and validate JWT subject as a user id."""
    try:
        return int(str(payload.get("sub")))
    except (TypeError, ValueError):
        raise _unauthorized()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    repos: Repositories = Depends(get_repositories),
) -> AuthenticatedUser:
    """Get current authenticated user."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Unauthorized")

    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise _unauthorized("Invalid token type")

    user = repos.users.find_by_id(_parse_token_subject(payload))
    if user is None or not user.get("is_active", True):
        raise _unauthorized("User not found or inactive")
    return AuthenticatedUser.from_row(user)


# Permission checks
class PermissionChecker:
    """Check user permissions based on role."""

    def __init__(self, required_permission: str):
        self.required_permission = required_permission

    def __call__(self, current_user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        """Check if user has required permission."""
        if not check_permission(current_user, self.required_permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {self.required_permission} required",
            )
        return current_user


# Role permissions matrix
ROLE_PERMISSIONS = {
    "admin": {
        "canApproveRecords": True,
        "canResolveIssues": True,
        "canViewAllRecords": True,
        "canDeleteRecords": True,
        "canManageMaterials": True,
        "canSyncIoT": True,
        "canManageUsers": True,
    },
    "manager": {
        "canApproveRecords": True,
        "canResolveIssues": True,
        "canViewAllRecords": True,
        "canDeleteRecords": False,
        "canManageMaterials": True,
        "canSyncIoT": True,
        "canManageUsers": False,
    },
    "operator": {
        "canApproveRecords": False,
        "canResolveIssues": False,
        "canViewAllRecords": False,
        "canDeleteRecords": False,
        "canManageMaterials": False,
        "canSyncIoT": True,
        "canManageUsers": False,
    },
}


def check_permission(user, permission: str) -> bool:
    """Check if user has specific permission."""
    permissions = ROLE_PERMISSIONS.get(getattr(user, "role", None), {})
    return permissions.get(permission, False)

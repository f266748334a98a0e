"""Auth endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth import AuthenticatedUser, create_access_token, get_current_user, verify_password
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import LoginRequest, RegisterRequest, TokenResponse, UserCreate, UserResponse
from ..services.rate_limit import get_client_ip
from ..use_cases.users import create_user_use_case

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _token_response(user: dict) -> TokenResponse:
    token = create_access_token({"sub": str(user["id"]), "role": user["role"]})
    return TokenResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    repos: Repositories = Depends(get_repositories),
):
    """Exchange email and password for a bearer token."""
    email = payload.email.strip().lower()
    user = repos.users.find_by_email(email)

    if not user or not user.get("is_active", True) or not verify_password(payload.password, user["password_hash"]):
        logger.info("Failed login for %s from %s", email, get_client_ip(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    repos.audit.record(
        action="user_login",
        entity_type="user",
        entity_id=user["id"],
        actor=AuthenticatedUser.from_row(user),
        details={"ip": get_client_ip(request)},
    )
    return _token_response(user)


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    repos: Repositories = Depends(get_repositories),
):
    """Self-service sign-up; new accounts are operators."""
    user = create_user_use_case(
        repos=repos,
        data=UserCreate(name=payload.name, email=payload.email, password=payload.password, role="operator"),
    )
    logger.info("Registered user %s", user["id"])
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: AuthenticatedUser = Depends(get_current_user),
):
    """Get current user info."""
    return UserResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role,
    )

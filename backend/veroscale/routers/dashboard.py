"""Dashboard endpoint."""
from fastapi import APIRouter, Depends

from ..auth import AuthenticatedUser, get_current_user
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import DashboardResponse
from ..use_cases.dashboard import dashboard_use_case

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
def get_dashboard(
    current_user: AuthenticatedUser = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    """Summary counts, latest records and top recorders."""
    return dashboard_use_case(repos=repos)

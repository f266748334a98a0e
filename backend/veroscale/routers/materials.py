"""Material catalog endpoints (admin/manager)."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..auth import AuthenticatedUser, PermissionChecker
from ..persistence.repositories import Repositories, get_repositories
from ..schemas import MaterialCreate, MaterialListResponse, MaterialResponse, MaterialUpdate, MessageResponse
from ..use_cases.materials import (
    create_material_use_case,
    delete_material_use_case,
    get_material_use_case,
    list_materials_use_case,
    update_material_use_case,
)

router = APIRouter(prefix="/materials", tags=["materials"])


@router.get("", response_model=MaterialListResponse)
def list_materials(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageMaterials")),
    repos: Repositories = Depends(get_repositories),
):
    return list_materials_use_case(repos=repos, search=search, page=page, limit=limit)


@router.post("", response_model=MaterialResponse, status_code=status.HTTP_201_CREATED)
def create_material(
    data: MaterialCreate,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageMaterials")),
    repos: Repositories = Depends(get_repositories),
):
    return create_material_use_case(repos=repos, data=data)


@router.get("/{material_id}", response_model=MaterialResponse)
def get_material(
    material_id: int,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageMaterials")),
    repos: Repositories = Depends(get_repositories),
):
    return get_material_use_case(repos=repos, material_id=material_id)


@router.put("/{material_id}", response_model=MaterialResponse)
def update_material(
    material_id: int,
    data: MaterialUpdate,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageMaterials")),
    repos: Repositories = Depends(get_repositories),
):
    return update_material_use_case(repos=repos, material_id=material_id, data=data)


@router.delete("/{material_id}", response_model=MessageResponse)
def delete_material(
    material_id: int,
    current_user: AuthenticatedUser = Depends(PermissionChecker("canManageMaterials")),
    repos: Repositories = Depends(get_repositories),
):
    delete_material_use_case(repos=repos, material_id=material_id)
    return {"message": "Material deleted successfully"}

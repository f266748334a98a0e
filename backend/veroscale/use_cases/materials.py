"""Reference material catalog use-cases."""
from __future__ import annotations

from ..domain_errors import DomainError, not_found
from ..persistence.repositories import Repositories
from ..schemas import MaterialCreate, MaterialUpdate
from ..services.approval import now_utc
from .weight_records import paginate


def _get_material_or_404(*, repos: Repositories, material_id: int) -> dict:
    material = repos.materials.find_by_id(material_id)
    if material is None:
        raise not_found("MATERIAL_NOT_FOUND", "Material not found")
    return material


def _ensure_name_free(*, repos: Repositories, name: str, material_id: int | None = None) -> None:
    existing = repos.materials.find_by_name(name)
    if existing is not None and existing["id"] != material_id:
        raise DomainError(
            code="MATERIAL_NAME_TAKEN",
            http_status=409,
            message="Material with this name already exists",
        )


def list_materials_use_case(*, repos: Repositories, search: str | None = None, page: int = 1, limit: int = 50) -> dict:
    materials = repos.materials.list(order_by="name")
    if search:
        needle = search.lower()
        materials = [material for material in materials if needle in material["name"].lower()]
    rows, pagination = paginate(materials, page=page, limit=limit)
    return {"materials": rows, "pagination": pagination}


def get_material_use_case(*, repos: Repositories, material_id: int) -> dict:
    return _get_material_or_404(repos=repos, material_id=material_id)


def create_material_use_case(*, repos: Repositories, data: MaterialCreate) -> dict:
    name = data.name.strip()
    _ensure_name_free(repos=repos, name=name)
    now = now_utc()
    return repos.materials.insert(
        {
            "name": name,
            "weight": data.weight,
            "price_per_unit": data.price_per_unit,
            "created_at": now,
            "updated_at": now,
        }
    )


def update_material_use_case(*, repos: Repositories, material_id: int, data: MaterialUpdate) -> dict:
    _get_material_or_404(repos=repos, material_id=material_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        changes["name"] = changes["name"].strip()
        _ensure_name_free(repos=repos, name=changes["name"], material_id=material_id)
    changes["updated_at"] = now_utc()
    updated = repos.materials.update(material_id, changes)
    if updated is None:
        raise not_found("MATERIAL_NOT_FOUND", "Material not found")
    return updated


def delete_material_use_case(*, repos: Repositories, material_id: int) -> None:
    _get_material_or_404(repos=repos, material_id=material_id)
    if repos.records.list(filters={"item_id": material_id}, columns=("id",), limit=1):
        raise DomainError(
            code="MATERIAL_IN_USE",
            http_status=409,
            message="Material has weight records and cannot be deleted",
        )
    repos.materials.delete(material_id)

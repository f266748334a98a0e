from __future__ import annotations

import pytest
from pydantic import ValidationError

from veroscale.domain_errors import DomainError
from veroscale.schemas import MaterialCreate, MaterialUpdate
from veroscale.use_cases.dashboard import dashboard_use_case
from veroscale.use_cases.materials import (
    create_material_use_case,
    delete_material_use_case,
    list_materials_use_case,
    update_material_use_case,
)


def test_list_materials_searches_and_paginates(backend, repos) -> None:
    for name in ("Copper wire", "Aluminium", "Copper sheet"):
        backend.seed("ref_items", name=name, weight=1.0)

    result = list_materials_use_case(repos=repos, search="copper", page=1, limit=1)

    assert [m["name"] for m in result["materials"]] == ["Copper sheet"]
    assert result["pagination"]["total_items"] == 2
    assert result["pagination"]["total_pages"] == 2


def test_create_trims_name_and_rejects_duplicates(repos) -> None:
    material = create_material_use_case(repos=repos, data=MaterialCreate(name="  Tin ", weight=2))
    assert material["name"] == "Tin"

    with pytest.raises(DomainError) as exc:
        create_material_use_case(repos=repos, data=MaterialCreate(name="Tin", weight=1))
    assert exc.value.code == "MATERIAL_NAME_TAKEN"


def test_rename_to_own_name_is_allowed(backend, repos) -> None:
    backend.seed("ref_items", id=1, name="Tin", weight=1.0)

    updated = update_material_use_case(repos=repos, material_id=1, data=MaterialUpdate(name="Tin", weight=3))

    assert updated["weight"] == 3


def test_material_with_records_cannot_be_deleted(backend, repos) -> None:
    backend.seed("ref_items", id=1, name="Tin", weight=1.0)
    backend.seed("weight_records", item_id=1, total_weight=2.0, status="pending")

    with pytest.raises(DomainError) as exc:
        delete_material_use_case(repos=repos, material_id=1)

    assert exc.value.http_status == 409
    assert len(backend.tables["ref_items"]) == 1


def test_dashboard_totals_and_top_users(backend, repos) -> None:
    backend.seed("users", id=1, name="Olga Operator")
    backend.seed("ref_items", id=1, name="Tin", weight=1.0)
    backend.seed("weight_records", item_id=1, total_weight=2.0, status="pending", user_id=1)
    backend.seed("weight_records", item_id=1, total_weight=5.0, status="approved", user_id=1)
    backend.seed("weight_records", item_id=1, total_weight=1.0, status="pending", recorded_by="IoT_System")

    result = dashboard_use_case(repos=repos)

    assert result["summary_stats"] == {
        "total_materials": 1,
        "total_records": 3,
        "total_weight": 8.0,
        "pending_records": 2,
    }
    assert result["top_users"][0] == {
        "user_id": 1,
        "user_name": "Olga Operator",
        "total_weight": 7.0,
        "record_count": 2,
    }
    assert result["top_users"][1]["user_name"] == "IoT_System"


@pytest.mark.parametrize("payload", [{"name": None}, {"weight": None}])
def test_update_rejects_explicit_null_for_required_columns(payload) -> None:
    with pytest.raises(ValidationError):
        MaterialUpdate.model_validate(payload)


def test_update_allows_clearing_price_and_omitting_fields() -> None:
    data = MaterialUpdate.model_validate({"price_per_unit": None})

    assert data.model_dump(exclude_unset=True) == {"price_per_unit": None}

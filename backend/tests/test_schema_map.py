from __future__ import annotations

from veroscale.persistence.query import QueryDescriptor
from veroscale.persistence.schema_map import BAAS_MAPPING, IDENTITY_MAPPING


def test_translate_renames_table_columns_filters_and_order() -> None:
    remote = BAAS_MAPPING.translate(
        QueryDescriptor(
            table="issues",
            columns=("id", "reporter_id", "issue_type"),
            filters={"reporter_id": 3},
            order_by="issue_type",
        )
    )

    assert remote["table"] == "issues"
    assert remote["columns"] == ["id", "user_id", "type"]
    assert remote["filters"] == {"user_id": 3}
    assert remote["order_by"] == "type"
    assert remote["data"] is None


def test_translate_maps_batch_payloads() -> None:
    remote = BAAS_MAPPING.translate(
        QueryDescriptor(table="weight_records", action="insert", data=[{"id": 1}, {"item_id": 2}])
    )

    assert remote["data"] == [{"record_id": 1}, {"item_id": 2}]


def test_legacy_names_fold_into_canonical_without_clobbering() -> None:
    row = IDENTITY_MAPPING.to_canonical("issues", {"id": 1, "resolver_id": 5, "resolved_by": 2, "type": "other"})

    assert row == {"id": 1, "resolved_by": 2, "issue_type": "other"}


def test_unmapped_tables_pass_through() -> None:
    assert BAAS_MAPPING.to_canonical("ref_items", {"id": 1, "name": "Tin"}) == {"id": 1, "name": "Tin"}
    assert BAAS_MAPPING.remote_table("users") == "users"

"""Dashboard aggregates, computed in memory over equality-filtered reads."""
from __future__ import annotations

from collections import defaultdict

from ..persistence.repositories import Repositories

RECENT_LIMIT = 5
TOP_USERS_LIMIT = 5


def dashboard_use_case(*, repos: Repositories) -> dict:
    records = repos.records.list(order_by="timestamp", descending=True)
    names = repos.users.names_for(record.get("user_id") for record in records)

    totals: dict[object, dict] = defaultdict(lambda: {"total_weight": 0.0, "record_count": 0})
    for record in records:
        bucket = totals[record.get("user_id") or record.get("recorded_by")]
        bucket["total_weight"] += float(record.get("total_weight") or 0)
        bucket["record_count"] += 1

    top_users = sorted(
        (
            {
                "user_id": key if isinstance(key, int) else None,
                "user_name": names.get(key) or (key if isinstance(key, str) else "Unknown User"),
                **bucket,
            }
            for key, bucket in totals.items()
        ),
        key=lambda row: row["total_weight"],
        reverse=True,
    )[:TOP_USERS_LIMIT]

    recent = [{**record, "user_name": names.get(record.get("user_id"))} for record in records[:RECENT_LIMIT]]
    return {
        "summary_stats": {
            "total_materials": len(repos.materials.list(columns=("id",))),
            "total_records": len(records),
            "total_weight": sum(float(record.get("total_weight") or 0) for record in records),
            "pending_records": sum(1 for record in records if record.get("status") == "pending"),
        },
        "recent_records": recent,
        "top_users": top_users,
    }

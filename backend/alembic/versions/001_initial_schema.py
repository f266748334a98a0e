"""initial schema

Adopts databases created by the hosted backend (``weightrecords``, ``record_id``
as the record key, ``user_id``/``type``/``resolver_id`` on issues) by renaming
them to the canonical layout, then creates whatever tables are still missing.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


ISSUE_RENAMES = {"user_id": "reporter_id", "type": "issue_type", "resolver_id": "resolved_by"}
RECORD_RENAMES = {"record_id": "id"}


def _has_table(name: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(name)


def _rename_columns(table: str, renames: dict[str, str]) -> None:
    inspector = sa.inspect(op.get_bind())
    if not inspector.has_table(table):
        return
    existing = {column["name"] for column in inspector.get_columns(table)}
    pending = {old: new for old, new in renames.items() if old in existing and new not in existing}
    if not pending:
        return
    with op.batch_alter_table(table) as batch:
        for old, new in pending.items():
            batch.alter_column(old, new_column_name=new)


def _adopt_legacy_names() -> None:
    if _has_table("weightrecords") and not _has_table("weight_records"):
        op.rename_table("weightrecords", "weight_records")
    _rename_columns("weight_records", RECORD_RENAMES)
    _rename_columns("issues", ISSUE_RENAMES)


def upgrade() -> None:
    _adopt_legacy_names()

    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="operator"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("role IN ('admin', 'manager', 'operator')", name="chk_user_role"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_role", "users", ["role"])

    if not _has_table("ref_items"):
        op.create_table(
            "ref_items",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("weight", sa.Numeric(12, 3), nullable=False, server_default="0"),
            sa.Column("price_per_unit", sa.Numeric(14, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("weight >= 0", name="chk_material_weight_non_negative"),
        )
        op.create_index("ix_ref_items_name", "ref_items", ["name"], unique=True)

    if not _has_table("weight_records"):
        op.create_table(
            "weight_records",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("ref_items.id"), nullable=False),
            sa.Column("item_name", sa.String(length=255), nullable=True),
            sa.Column("total_weight", sa.Numeric(12, 3), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=True),
            sa.Column("unit", sa.String(length=10), nullable=False, server_default="kg"),
            sa.Column("batch_number", sa.String(length=100), nullable=True),
            sa.Column("source", sa.String(length=255), nullable=True),
            sa.Column("destination", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolution", sa.Text(), nullable=True),
            sa.Column("recorded_by", sa.String(length=255), nullable=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("total_weight >= 0", name="chk_record_weight_non_negative"),
            sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="chk_record_status"),
        )
        op.create_index("ix_weight_records_item_id", "weight_records", ["item_id"])
        op.create_index("ix_weight_records_batch_number", "weight_records", ["batch_number"])
        op.create_index("ix_weight_records_status", "weight_records", ["status"])
        op.create_index("ix_weight_records_user_id", "weight_records", ["user_id"])
        op.create_index("ix_weight_records_timestamp", "weight_records", ["timestamp"])

    if not _has_table("issues"):
        op.create_table(
            "issues",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("issue_type", sa.String(length=50), nullable=False, server_default="other"),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("reporter_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("resolved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolution", sa.Text(), nullable=True),
            sa.Column(
                "record_id",
                sa.Integer(),
                sa.ForeignKey("weight_records.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.CheckConstraint("status IN ('pending', 'resolved')", name="chk_issue_status"),
            sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="chk_issue_priority"),
        )
        op.create_index("ix_issues_status", "issues", ["status"])
        op.create_index("ix_issues_reporter_id", "issues", ["reporter_id"])
        op.create_index("ix_issues_record_id", "issues", ["record_id"])
        op.create_index("ix_issues_created_at", "issues", ["created_at"])

    if not _has_table("rfid_logs"):
        op.create_table(
            "rfid_logs",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("rfid_id", sa.String(length=100), nullable=False),
            sa.Column("device_id", sa.String(length=100), nullable=False),
            sa.Column(
                "weight_record_id",
                sa.Integer(),
                sa.ForeignKey("weight_records.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("scan_time", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_rfid_logs_rfid_id", "rfid_logs", ["rfid_id"])
        op.create_index("ix_rfid_logs_weight_record_id", "rfid_logs", ["weight_record_id"])

    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column("entity_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("user_name", sa.String(length=255), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_audit_events_action", "audit_events", ["action"])
        op.create_index("idx_audit_entity", "audit_events", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("rfid_logs")
    op.drop_table("issues")
    op.drop_table("weight_records")
    op.drop_table("ref_items")
    op.drop_table("users")

"""SQLAlchemy models (canonical schema)."""
from sqlalchemy import (
    JSON, Boolean, Column, String, Integer, DateTime, Text, Numeric,
    ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


USER_ROLES = ("admin", "manager", "operator")
RECORD_STATUSES = ("pending", "approved", "rejected")
ISSUE_STATUSES = ("pending", "resolved")
ISSUE_PRIORITIES = ("low", "medium", "high")


class User(Base):
    """User model."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="operator", index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(USER_ROLES), name="chk_user_role"),
    )


class Material(Base):
    """Reference material (ref item) with a standard weight."""
    __tablename__ = "ref_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    weight = Column(Numeric(12, 3, asdecimal=False), nullable=False, default=0)
    price_per_unit = Column(Numeric(14, 2, asdecimal=False), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(weight >= 0, name="chk_material_weight_non_negative"),
    )


class WeightRecord(Base):
    """Single logged material weight awaiting or having received approval."""
    __tablename__ = "weight_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Integer, ForeignKey("ref_items.id"), nullable=False, index=True)
    item_name = Column(String(255), nullable=True)
    total_weight = Column(Numeric(12, 3, asdecimal=False), nullable=False)
    quantity = Column(Integer, nullable=True)
    unit = Column(String(10), nullable=False, default="kg")
    batch_number = Column(String(100), nullable=True, index=True)
    source = Column(String(255), nullable=True)
    destination = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    resolution = Column(Text, nullable=True)
    recorded_by = Column(String(255), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(total_weight >= 0, name="chk_record_weight_non_negative"),
        CheckConstraint(status.in_(RECORD_STATUSES), name="chk_record_status"),
    )

    material = relationship("Material")
    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approved_by])


class Issue(Base):
    """User-filed report, optionally linked to a weight record."""
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    issue_type = Column(String(50), nullable=False, default="other")
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="pending", index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution = Column(Text, nullable=True)
    record_id = Column(Integer, ForeignKey("weight_records.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(ISSUE_STATUSES), name="chk_issue_status"),
        CheckConstraint(priority.in_(ISSUE_PRIORITIES), name="chk_issue_priority"),
    )

    reporter = relationship("User", foreign_keys=[reporter_id])
    record = relationship("WeightRecord")


class RfidLog(Base):
    """RFID scan co-reported with an IoT weight reading."""
    __tablename__ = "rfid_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rfid_id = Column(String(100), nullable=False, index=True)
    device_id = Column(String(100), nullable=False)
    weight_record_id = Column(Integer, ForeignKey("weight_records.id", ondelete="CASCADE"), nullable=False, index=True)
    scan_time = Column(DateTime(timezone=True), server_default=func.now())


class AuditEvent(Base):
    """Audit trail for status changes and deletions."""
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    user_name = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )

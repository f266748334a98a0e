"""Pydantic schemas for API."""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from datetime import datetime


# User / auth schemas
class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool = True
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str
    role: str = Field(default="operator", pattern="^(admin|manager|operator)$")


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = None
    role: Optional[str] = Field(default=None, pattern="^(admin|manager|operator)$")
    is_active: Optional[bool] = None

    @field_validator("name", "email", "role", "is_active")
    @classmethod
    def reject_explicit_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    password: str


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


# Material schemas
class MaterialCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    weight: float = Field(ge=0)
    price_per_unit: Optional[float] = Field(default=None, ge=0)


class MaterialUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    weight: Optional[float] = Field(default=None, ge=0)
    price_per_unit: Optional[float] = Field(default=None, ge=0)

    @field_validator("name", "weight")
    @classmethod
    def reject_explicit_null(cls, v):
        # Omitting a field leaves it unchanged; null would clear a required column.
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class MaterialResponse(BaseModel):
    id: int
    name: str
    weight: float
    price_per_unit: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Pagination(BaseModel):
    current_page: int
    items_per_page: int
    total_items: int
    total_pages: int


class MaterialListResponse(BaseModel):
    materials: list[MaterialResponse]
    pagination: Pagination


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: Pagination


# Weight record schemas
class WeightRecordCreate(BaseModel):
    item_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("item_id", "materialId", "material_id"))
    total_weight: Any = None
    quantity: Optional[int] = Field(default=None, ge=0)
    batch_number: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    notes: Optional[str] = None


class MaterialEntry(BaseModel):
    """One line of a multi-material submission."""
    material_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("materialId", "material_id"))
    weight: Any = None
    notes: Optional[str] = None


class MultiMaterialCreate(BaseModel):
    material_entries: Optional[list[MaterialEntry]] = None
    batch_number: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None


class CreatedRecordSummary(BaseModel):
    id: int
    material_id: int
    material_name: Optional[str] = None
    weight: float
    unit: str = "kg"
    notes: Optional[str] = None


class MultiMaterialResponse(BaseModel):
    message: str
    records: list[CreatedRecordSummary]
    total_records: int
    total_weight: float


class BatchItem(BaseModel):
    weight: Any = None
    notes: Optional[str] = Field(default=None, validation_alias=AliasChoices("notes", "note"))


class BatchWeightCreate(BaseModel):
    """Several weighings of the same material sharing batch, source and destination."""
    item_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("item_id", "materialId", "material_id"))
    batch_items: Optional[list[BatchItem]] = None
    batch_number: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None


class WeightRecordResponse(BaseModel):
    id: int
    item_id: int
    item_name: Optional[str] = None
    total_weight: float
    quantity: Optional[int] = None
    unit: str = "kg"
    batch_number: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    notes: Optional[str] = None
    status: str
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    recorded_by: Optional[str] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WeightRecordEnvelope(BaseModel):
    message: Optional[str] = None
    record: WeightRecordResponse


class WeightRecordListResponse(BaseModel):
    records: list[WeightRecordResponse]
    pagination: Pagination


class BatchWeightResponse(BaseModel):
    message: str
    records: list[WeightRecordResponse]
    total_records: int
    total_weight: float


class RecordStatusUpdate(BaseModel):
    status: Optional[str] = None
    resolution: Optional[str] = None


# Issue schemas
class IssueCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    issue_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("issue_type", "type"))
    priority: Optional[str] = Field(default=None, pattern="^(low|medium|high)$")
    record_id: Optional[int] = None


class IssueUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    issue_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("issue_type", "type"))
    priority: Optional[str] = Field(default=None, pattern="^(low|medium|high)$")
    status: Optional[str] = None
    resolution: Optional[str] = None
    resolver_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("resolver_id", "resolved_by"))


class IssueResponse(BaseModel):
    id: int
    title: str
    description: str
    issue_type: Optional[str] = None
    priority: Optional[str] = None
    status: str
    reporter_id: Optional[int] = None
    reporter_name: Optional[str] = None
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    resolution: Optional[str] = None
    record_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IssueEnvelope(BaseModel):
    message: Optional[str] = None
    issue: IssueResponse


class IssueListResponse(BaseModel):
    issues: list[IssueResponse]
    total: int


class MessageResponse(BaseModel):
    message: str


# IoT schemas
class IoTWebhookPayload(BaseModel):
    """Device push; fields are checked by the ingest use case to keep its error messages."""
    device_id: Optional[str] = None
    weight: Any = None
    rfid_id: Optional[str] = None
    timestamp: Optional[datetime] = None


class IoTWebhookResponse(BaseModel):
    message: str
    weight_record_id: int
    record: WeightRecordResponse
    timestamp: datetime


class IoTSyncRequest(BaseModel):
    device_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("deviceId", "device_id"))
    weight: Any = None
    rfid_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("rfidId", "rfid_id"))
    material_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("materialId", "material_id"))


class IoTSyncResponse(BaseModel):
    message: str
    synced_at: datetime
    weight_record_id: Optional[int] = None


class CurrentWeightResponse(BaseModel):
    weight: float
    device_id: str
    timestamp: datetime
    is_valid: bool


class DeviceStatusResponse(BaseModel):
    status: str
    last_update: Optional[datetime] = None
    current_weight: Optional[float] = None


class RfidSystemStatus(BaseModel):
    status: str
    last_scan: Optional[datetime] = None


class IoTStatusResponse(BaseModel):
    feed_connected: bool
    devices: dict[str, DeviceStatusResponse]
    rfid_system: RfidSystemStatus


# Dashboard schemas
class DashboardSummary(BaseModel):
    total_materials: int
    total_records: int
    total_weight: float
    pending_records: int


class TopUser(BaseModel):
    user_id: Optional[int] = None
    user_name: str
    total_weight: float
    record_count: int


class DashboardResponse(BaseModel):
    summary_stats: DashboardSummary
    recent_records: list[WeightRecordResponse]
    top_users: list[TopUser]

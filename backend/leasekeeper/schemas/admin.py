"""Feature flag, system setting, audit log and analytics snapshot schemas."""

from datetime import date, datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import Field

from leasekeeper.models.enums import AnalyticsPeriod, AuditAction, UserRole
from leasekeeper.schemas.base import BaseSchema, IDMixin


class FeatureFlagUpdate(BaseSchema):
    enabled: bool
    description: Optional[str] = None


class FeatureFlagOverrideRequest(BaseSchema):
    enabled: bool
    user_id: Optional[UUID] = None
    role: Optional[UserRole] = None


class FeatureFlagOverrideResponse(BaseSchema, IDMixin):
    flag_id: UUID
    user_id: Optional[UUID] = None
    role: Optional[UserRole] = None
    enabled: bool


class FeatureFlagResponse(BaseSchema, IDMixin):
    name: str
    description: Optional[str] = None
    enabled: bool
    updated_at: Optional[datetime] = None


class FeatureFlagMapResponse(BaseSchema):
    flags: dict[str, bool]


class AuditLogResponse(BaseSchema, IDMixin):
    user_id: Optional[UUID] = None
    action: AuditAction
    resource_type: str
    resource_id: UUID
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseSchema):
    entries: list[AuditLogResponse]
    total: int
    page: int
    page_size: int


class SnapshotResponse(BaseSchema, IDMixin):
    owner_id: UUID
    period: AnalyticsPeriod
    period_start: date
    period_end: date
    revenue_cents: int
    payments_count: int
    total_properties: int
    occupied_properties: int
    occupancy_bps: int
    created_at: datetime


class SystemSettingUpdate(BaseSchema):
    value: str = Field(..., min_length=1)
    type: Optional[Literal["STRING", "NUMBER", "BOOLEAN", "JSON"]] = None
    description: Optional[str] = None


class SystemSettingResponse(BaseSchema, IDMixin):
    key: str
    value: str
    type: str
    description: Optional[str] = None
    updated_by_id: Optional[UUID] = None
    updated_at: Optional[datetime] = None


class SystemSettingMapResponse(BaseSchema):
    settings: dict[str, SystemSettingResponse]


class SweepRunResponse(BaseSchema):
    sweep: str
    result: Optional[dict[str, Any]] = None


class ClearedResponse(BaseSchema):
    deleted: int = Field(..., ge=0)

"""Complaint and maintenance request schemas."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from leasekeeper.models.enums import (
    ComplaintCategory,
    ComplaintStatus,
    MaintenanceCategory,
    MaintenanceStatus,
    Priority,
)
from leasekeeper.schemas.base import BaseSchema, IDMixin, PatchSchema, TimestampMixin


class ComplaintCreate(BaseSchema):
    property_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: Priority = Priority.MEDIUM


class ComplaintUpdate(PatchSchema):
    NOT_NULL = ("title", "description", "category", "priority", "status")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[ComplaintCategory] = None
    priority: Optional[Priority] = None
    status: Optional[ComplaintStatus] = None
    resolution: Optional[str] = None


class AssignRequest(BaseSchema):
    manager_id: UUID


class ResolveRequest(BaseSchema):
    resolution: str = Field(..., min_length=1)


class ComplaintResponse(BaseSchema, IDMixin, TimestampMixin):
    property_id: UUID
    tenant_id: Optional[UUID] = None
    reported_by_id: UUID
    assigned_to_id: Optional[UUID] = None
    title: str
    description: str
    category: ComplaintCategory
    priority: Priority
    status: ComplaintStatus
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None


class ComplaintListResponse(BaseSchema):
    complaints: list[ComplaintResponse]
    total: int


class MaintenanceCreate(BaseSchema):
    property_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: MaintenanceCategory = MaintenanceCategory.OTHER
    priority: Priority = Priority.MEDIUM
    scheduled_date: Optional[date] = None
    estimated_cost_cents: Optional[int] = Field(None, ge=0)


class MaintenanceUpdate(PatchSchema):
    NOT_NULL = ("title", "description", "category", "priority", "status")

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[MaintenanceCategory] = None
    priority: Optional[Priority] = None
    status: Optional[MaintenanceStatus] = None
    scheduled_date: Optional[date] = None
    estimated_cost_cents: Optional[int] = Field(None, ge=0)
    actual_cost_cents: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceResponse(BaseSchema, IDMixin, TimestampMixin):
    property_id: UUID
    requested_by_id: UUID
    tenant_id: Optional[UUID] = None
    assigned_to_id: Optional[UUID] = None
    title: str
    description: str
    category: MaintenanceCategory
    priority: Priority
    status: MaintenanceStatus
    estimated_cost_cents: Optional[int] = None
    actual_cost_cents: Optional[int] = None
    scheduled_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class MaintenanceListResponse(BaseSchema):
    requests: list[MaintenanceResponse]
    total: int

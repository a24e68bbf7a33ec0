"""Lease schemas."""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from leasekeeper.models.enums import LeaseStatus
from leasekeeper.schemas.base import BaseSchema, IDMixin, PatchSchema, TimestampMixin


class LeaseCreate(BaseSchema):
    tenant_id: UUID
    property_id: UUID
    start_date: date
    end_date: date
    monthly_rent_cents: int = Field(..., gt=0)
    security_deposit_cents: int = Field(0, ge=0)
    terms: Optional[str] = None
    utilities: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        """Ensure end_date is after start_date."""
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class LeaseUpdate(PatchSchema):
    NOT_NULL = ("monthly_rent_cents", "security_deposit_cents")

    monthly_rent_cents: Optional[int] = Field(None, gt=0)
    security_deposit_cents: Optional[int] = Field(None, ge=0)
    terms: Optional[str] = None
    utilities: Optional[str] = None


class LeaseRenewalRequest(BaseSchema):
    new_end_date: date
    new_monthly_rent_cents: Optional[int] = Field(None, gt=0)


class LeaseTerminationRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)
    termination_date: Optional[date] = None


class LeaseResponse(BaseSchema, IDMixin, TimestampMixin):
    tenant_id: UUID
    property_id: UUID
    status: LeaseStatus
    start_date: date
    end_date: date
    monthly_rent_cents: int
    security_deposit_cents: int
    terms: Optional[str] = None
    utilities: Optional[str] = None
    termination_date: Optional[date] = None
    termination_reason: Optional[str] = None


class LeaseListResponse(BaseSchema):
    leases: list[LeaseResponse]
    total: int

"""Property schemas."""

from typing import Optional
from uuid import UUID

from pydantic import Field

from leasekeeper.models.enums import PropertyStatus, PropertyType
from leasekeeper.schemas.base import BaseSchema, IDMixin, PatchSchema, TimestampMixin


class PropertyBase(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    property_type: PropertyType = PropertyType.APARTMENT
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=50)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("US", min_length=2, max_length=2)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, gt=0)
    rent_amount_cents: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None


class PropertyCreate(PropertyBase):
    """Owners create for themselves; a super admin names the owner."""

    owner_id: Optional[UUID] = None
    status: PropertyStatus = PropertyStatus.AVAILABLE


class PropertyUpdate(PatchSchema):
    NOT_NULL = ("name", "property_type", "status", "address_line1", "city", "state", "zip_code", "country")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    property_type: Optional[PropertyType] = None
    status: Optional[PropertyStatus] = None
    address_line1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=50)
    zip_code: Optional[str] = Field(None, min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    square_feet: Optional[int] = Field(None, gt=0)
    rent_amount_cents: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None


class PropertyResponse(PropertyBase, IDMixin, TimestampMixin):
    owner_id: UUID
    status: PropertyStatus


class PropertyListResponse(BaseSchema):
    properties: list[PropertyResponse]
    total: int

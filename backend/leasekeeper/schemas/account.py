"""User, owner, manager and tenant schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field, model_validator

from leasekeeper.models.enums import UserRole
from leasekeeper.schemas.base import BaseSchema, IDMixin, PatchSchema, TimestampMixin


class PersonFields(BaseSchema):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class PersonUpdate(PatchSchema):
    NOT_NULL = ("first_name", "last_name")

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)


class UserCreate(PersonFields):
    """Super admin creates any user; profile fields depend on the role."""

    role: UserRole
    company_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    owner_id: Optional[UUID] = None
    permissions: dict[str, bool] = Field(default_factory=dict)
    property_id: Optional[UUID] = None
    emergency_contact_name: Optional[str] = Field(None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def validate_profile(self):
        """Managers need an owner; tenants need a property."""
        if self.role == UserRole.MANAGER and not self.owner_id:
            raise ValueError("owner_id is required for a manager")
        if self.role == UserRole.TENANT and not self.property_id:
            raise ValueError("property_id is required for a tenant")
        return self


class UserStatusUpdate(BaseSchema):
    is_active: bool


class MeUpdate(PersonUpdate):
    fcm_token: Optional[str] = Field(None, max_length=512)


class UserResponse(BaseSchema, IDMixin, TimestampMixin):
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login_at: Optional[datetime] = None


class UserSummary(BaseSchema, IDMixin):
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_active: bool


class MeResponse(BaseSchema):
    """The resolved caller."""

    user: UserResponse
    role: UserRole
    owner_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    property_id: Optional[UUID] = None
    permissions: dict[str, bool] = Field(default_factory=dict)
    features: dict[str, bool] = Field(default_factory=dict)


# Owners

class OwnerCreate(PersonFields):
    company_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class OwnerUpdate(PersonUpdate):
    company_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None


class OwnerResponse(BaseSchema, IDMixin):
    user_id: UUID
    company_name: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    user: UserSummary


# Managers

class ManagerCreate(PersonFields):
    owner_id: Optional[UUID] = None
    permissions: dict[str, bool] = Field(default_factory=dict)


class ManagerUpdate(PersonUpdate):
    NOT_NULL = PersonUpdate.NOT_NULL + ("permissions",)

    permissions: Optional[dict[str, bool]] = None


class ManagerResponse(BaseSchema, IDMixin, TimestampMixin):
    user_id: UUID
    owner_id: UUID
    permissions: dict[str, bool]
    user: UserSummary


# Tenants

class TenantCreate(PersonFields):
    property_id: UUID
    emergency_contact_name: Optional[str] = Field(None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)


class TenantUpdate(PersonUpdate):
    property_id: Optional[UUID] = None
    emergency_contact_name: Optional[str] = Field(None, max_length=255)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)


class TenantResponse(BaseSchema, IDMixin, TimestampMixin):
    user_id: UUID
    property_id: Optional[UUID] = None
    is_active: bool
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    user: UserSummary

"""Authenticated caller variants.

A request's caller is resolved once, at authentication time, into exactly one
of these. Services dispatch on the variant type instead of probing which
profile happens to be attached to the user row.
"""

from dataclasses import dataclass, field
from typing import ClassVar, Mapping, Optional, Union
from uuid import UUID

from leasekeeper.core.errors import Forbidden
from leasekeeper.models.enums import UserRole
from leasekeeper.models.user import User


@dataclass(frozen=True)
class SuperAdminCaller:
    user_id: UUID
    email: str = ""
    role: ClassVar[UserRole] = UserRole.SUPER_ADMIN


@dataclass(frozen=True)
class OwnerCaller:
    user_id: UUID
    owner_id: UUID
    email: str = ""
    role: ClassVar[UserRole] = UserRole.OWNER


@dataclass(frozen=True)
class ManagerCaller:
    user_id: UUID
    manager_id: UUID
    owner_id: UUID
    permissions: Mapping[str, bool] = field(default_factory=dict)
    email: str = ""
    role: ClassVar[UserRole] = UserRole.MANAGER

    def has_permission(self, capability: str) -> bool:
        return self.permissions.get(capability) is True


@dataclass(frozen=True)
class TenantCaller:
    user_id: UUID
    tenant_id: UUID
    property_id: Optional[UUID] = None
    is_active: bool = False
    email: str = ""
    role: ClassVar[UserRole] = UserRole.TENANT


Caller = Union[SuperAdminCaller, OwnerCaller, ManagerCaller, TenantCaller]


def caller_from_user(user: User) -> Caller:
    """Build the caller variant for a user whose profile relationships are loaded."""
    if user.role == UserRole.SUPER_ADMIN:
        return SuperAdminCaller(user_id=user.id, email=user.email)

    if user.role == UserRole.OWNER:
        if user.owner_profile is None:
            raise Forbidden("Owner profile not found for this account")
        return OwnerCaller(user_id=user.id, owner_id=user.owner_profile.id, email=user.email)

    if user.role == UserRole.MANAGER:
        profile = user.manager_profile
        if profile is None:
            raise Forbidden("Manager profile not found for this account")
        return ManagerCaller(
            user_id=user.id,
            manager_id=profile.id,
            owner_id=profile.owner_id,
            permissions=dict(profile.permissions or {}),
            email=user.email,
        )

    profile = user.tenant_profile
    if profile is None:
        raise Forbidden("Tenant profile not found for this account")
    return TenantCaller(
        user_id=user.id,
        tenant_id=profile.id,
        property_id=profile.property_id,
        is_active=bool(profile.is_active),
        email=user.email,
    )

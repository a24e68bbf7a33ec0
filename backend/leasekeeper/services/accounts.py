"""Accounts: users and their owner, manager and tenant profiles.

Accounts are provisioned by email. The Firebase uid is attached on the first
verified sign-in (see ``core.security.resolve_caller``), so nothing here talks
to Firebase.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leasekeeper.core.caller import Caller, ManagerCaller, SuperAdminCaller, TenantCaller
from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.models.enums import AuditAction, LeaseStatus, UserRole
from leasekeeper.models.lease import Lease
from leasekeeper.models.property import Property
from leasekeeper.models.user import Manager, Owner, Tenant, User
from leasekeeper.services.audit import AuditService
from leasekeeper.services.authorization import (
    Action,
    OwnershipChain,
    Resource,
    authorize,
    manager_chain,
    scope_owner_id,
    scope_tenants,
    tenant_chain,
)

logger = logging.getLogger(__name__)

USER_FIELDS = ("first_name", "last_name", "phone")
SELF_FIELDS = USER_FIELDS + ("fcm_token",)
TENANT_CONTACT_FIELDS = USER_FIELDS + ("emergency_contact_name", "emergency_contact_phone")


def _reject_unknown(changes: dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")


class AccountService:
    """User provisioning plus per-profile operations."""

    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def _provision_user(
        self,
        caller: Caller,
        email: str,
        first_name: str,
        last_name: str,
        role: UserRole,
        phone: Optional[str] = None,
    ) -> User:
        email = email.strip().lower()
        exists = await self.db.scalar(select(User.id).where(User.email == email))
        if exists is not None:
            raise Conflict("A user with this email already exists")

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=role,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.audit.log(
            action=AuditAction.USER_CREATED,
            resource_type="user",
            resource_id=user.id,
            user_id=caller.user_id,
            details={"email": email, "role": role.value},
            ip_address=self.ip_address,
        )
        return user

    async def get_user(self, user_id: UUID) -> User:
        result = await self.db.execute(
            select(User)
            .options(
                selectinload(User.owner_profile),
                selectinload(User.manager_profile),
                selectinload(User.tenant_profile),
            )
            .where(User.id == user_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFound("User not found")
        return user

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> list[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                )
            )
        result = await self.db.execute(query.order_by(User.created_at.desc()))
        return list(result.scalars().all())

    async def create_user(self, caller: Caller, data: dict[str, Any]) -> User:
        """Super admin creates a user together with the profile its role requires."""
        if not isinstance(caller, SuperAdminCaller):
            raise Forbidden("Only super admins can create arbitrary users")

        role = UserRole(data["role"])
        if role == UserRole.OWNER:
            owner = await self.create_owner(caller, data)
            return await self.get_user(owner.user_id)
        if role == UserRole.MANAGER:
            if not data.get("owner_id"):
                raise ValidationFailed("owner_id is required for a manager")
            manager = await self.create_manager(caller, data)
            return await self.get_user(manager.user_id)
        if role == UserRole.TENANT:
            if not data.get("property_id"):
                raise ValidationFailed("property_id is required for a tenant")
            tenant = await self.create_tenant(caller, data)
            return await self.get_user(tenant.user_id)

        user = await self._provision_user(
            caller, data["email"], data["first_name"], data["last_name"], role, data.get("phone")
        )
        await self.db.commit()
        return await self.get_user(user.id)

    async def set_active(self, caller: Caller, user_id: UUID, is_active: bool) -> User:
        if user_id == caller.user_id:
            raise Forbidden("You cannot change the status of your own account")
        user = await self.get_user(user_id)
        user.is_active = is_active
        await self.db.commit()
        logger.info(f"[ACCOUNTS] User {user_id} {'activated' if is_active else 'deactivated'}")
        return user

    async def delete_user(self, caller: Caller, user_id: UUID) -> None:
        """Delete a user outright. Rejected while financial rows reference it."""
        if user_id == caller.user_id:
            raise Forbidden("You cannot delete your own account")
        user = await self.get_user(user_id)

        if user.tenant_profile is not None:
            leases = await self.db.scalar(
                select(func.count(Lease.id)).where(Lease.tenant_id == user.tenant_profile.id)
            )
            if leases:
                raise Conflict("Tenant has lease history; deactivate the account instead")
        if user.owner_profile is not None:
            properties = await self.db.scalar(
                select(func.count(Property.id)).where(Property.owner_id == user.owner_profile.id)
            )
            if properties:
                raise Conflict(f"Owner still has {properties} propert(ies)")

        await self.audit.log(
            action=AuditAction.USER_DELETED,
            resource_type="user",
            resource_id=user.id,
            user_id=caller.user_id,
            details={"email": user.email, "role": user.role.value},
            ip_address=self.ip_address,
        )
        await self.db.delete(user)
        await self.db.commit()
        logger.info(f"[ACCOUNTS] Deleted user {user_id}")

    async def update_me(self, caller: Caller, changes: dict[str, Any]) -> User:
        _reject_unknown(changes, SELF_FIELDS)
        user = await self.get_user(caller.user_id)
        for field, value in changes.items():
            setattr(user, field, value)
        await self.db.commit()
        return user

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------

    async def _load_owner(self, owner_id: UUID) -> Owner:
        result = await self.db.execute(
            select(Owner).options(selectinload(Owner.user)).where(Owner.id == owner_id)
        )
        owner = result.scalar_one_or_none()
        if owner is None:
            raise NotFound("Owner not found")
        return owner

    async def list_owners(self) -> list[Owner]:
        result = await self.db.execute(
            select(Owner).options(selectinload(Owner.user)).order_by(Owner.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_owner(self, caller: Caller, owner_id: UUID) -> Owner:
        owner = await self._load_owner(owner_id)
        authorize(caller, OwnershipChain(Resource.OWNER, owner_id=owner.id), Action.READ)
        return owner

    async def create_owner(self, caller: Caller, data: dict[str, Any]) -> Owner:
        if not isinstance(caller, SuperAdminCaller):
            raise Forbidden("Only super admins can create owners")
        user = await self._provision_user(
            caller, data["email"], data["first_name"], data["last_name"], UserRole.OWNER, data.get("phone")
        )
        owner = Owner(user_id=user.id, company_name=data.get("company_name"), address=data.get("address"))
        self.db.add(owner)
        await self.db.commit()
        return await self._load_owner(owner.id)

    async def update_owner(self, caller: Caller, owner_id: UUID, changes: dict[str, Any]) -> Owner:
        owner = await self._load_owner(owner_id)
        authorize(caller, OwnershipChain(Resource.OWNER, owner_id=owner.id), Action.WRITE)
        if isinstance(caller, ManagerCaller):
            raise Forbidden("Managers cannot modify owner records")

        _reject_unknown(changes, USER_FIELDS + ("company_name", "address"))
        for field, value in changes.items():
            target = owner.user if field in USER_FIELDS else owner
            setattr(target, field, value)
        await self.db.commit()
        return owner

    async def delete_owner(self, caller: Caller, owner_id: UUID) -> None:
        if not isinstance(caller, SuperAdminCaller):
            raise Forbidden("Only super admins can delete owners")
        owner = await self._load_owner(owner_id)
        await self.delete_user(caller, owner.user_id)

    # ------------------------------------------------------------------
    # Managers
    # ------------------------------------------------------------------

    async def _load_manager(self, manager_id: UUID) -> Manager:
        result = await self.db.execute(
            select(Manager).options(selectinload(Manager.user)).where(Manager.id == manager_id)
        )
        manager = result.scalar_one_or_none()
        if manager is None:
            raise NotFound("Manager not found")
        return manager

    async def list_managers(self, caller: Caller, owner_id: Optional[UUID] = None) -> list[Manager]:
        if isinstance(caller, TenantCaller):
            raise Forbidden("Tenants cannot list managers")
        query = select(Manager).options(selectinload(Manager.user))
        scope = scope_owner_id(caller)
        if scope is not None:
            query = query.where(Manager.owner_id == scope)
        elif owner_id:
            query = query.where(Manager.owner_id == owner_id)
        result = await self.db.execute(query.order_by(Manager.created_at.desc()))
        return list(result.scalars().all())

    async def get_manager(self, caller: Caller, manager_id: UUID) -> Manager:
        manager = await self._load_manager(manager_id)
        authorize(caller, manager_chain(manager), Action.READ)
        return manager

    async def create_manager(self, caller: Caller, data: dict[str, Any]) -> Manager:
        owner_id = data.get("owner_id") if isinstance(caller, SuperAdminCaller) else scope_owner_id(caller)
        if owner_id is None:
            raise ValidationFailed("owner_id is required")
        authorize(caller, OwnershipChain(Resource.MANAGER, owner_id=owner_id), Action.CREATE)
        await self._load_owner(owner_id)

        user = await self._provision_user(
            caller, data["email"], data["first_name"], data["last_name"], UserRole.MANAGER, data.get("phone")
        )
        manager = Manager(user_id=user.id, owner_id=owner_id, permissions=dict(data.get("permissions") or {}))
        self.db.add(manager)
        await self.db.commit()
        return await self._load_manager(manager.id)

    async def update_manager(self, caller: Caller, manager_id: UUID, changes: dict[str, Any]) -> Manager:
        manager = await self._load_manager(manager_id)
        if "permissions" in changes and isinstance(caller, ManagerCaller):
            if caller.manager_id == manager.id:
                raise Forbidden("You cannot update your own permissions")
            raise Forbidden("Managers cannot change permissions")
        authorize(caller, manager_chain(manager), Action.WRITE)

        _reject_unknown(changes, USER_FIELDS + ("permissions",))
        if "permissions" in changes:
            old = dict(manager.permissions or {})
            manager.permissions = dict(changes["permissions"] or {})
            await self.audit.log(
                action=AuditAction.MANAGER_PERMISSIONS_CHANGED,
                resource_type=Resource.MANAGER.value,
                resource_id=manager.id,
                user_id=caller.user_id,
                details={"old": old, "new": manager.permissions},
                ip_address=self.ip_address,
            )
        for field in USER_FIELDS:
            if field in changes:
                setattr(manager.user, field, changes[field])
        await self.db.commit()
        return manager

    async def delete_manager(self, caller: Caller, manager_id: UUID) -> None:
        if isinstance(caller, ManagerCaller):
            raise Forbidden("Managers cannot delete manager accounts")
        manager = await self._load_manager(manager_id)
        authorize(caller, manager_chain(manager), Action.DELETE)
        await self.delete_user(caller, manager.user_id)

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def _load_tenant(self, tenant_id: UUID) -> tuple[Tenant, Optional[Property]]:
        result = await self.db.execute(
            select(Tenant).options(selectinload(Tenant.user)).where(Tenant.id == tenant_id)
        )
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise NotFound("Tenant not found")
        prop = await self.db.get(Property, tenant.property_id) if tenant.property_id else None
        return tenant, prop

    async def list_tenants(
        self,
        caller: Caller,
        property_id: Optional[UUID] = None,
        is_active: Optional[bool] = None,
    ) -> list[Tenant]:
        query = scope_tenants(select(Tenant).options(selectinload(Tenant.user)), caller)
        if property_id:
            query = query.where(Tenant.property_id == property_id)
        if is_active is not None:
            query = query.where(Tenant.is_active.is_(is_active))
        result = await self.db.execute(query.order_by(Tenant.created_at.desc()))
        return list(result.scalars().all())

    async def get_tenant(self, caller: Caller, tenant_id: UUID) -> Tenant:
        tenant, prop = await self._load_tenant(tenant_id)
        authorize(caller, tenant_chain(tenant, prop), Action.READ)
        return tenant

    async def create_tenant(self, caller: Caller, data: dict[str, Any]) -> Tenant:
        prop = await self.db.get(Property, data["property_id"])
        if prop is None:
            raise NotFound("Property not found")
        authorize(
            caller,
            OwnershipChain(Resource.TENANT, owner_id=prop.owner_id, property_id=prop.id),
            Action.CREATE,
        )

        user = await self._provision_user(
            caller, data["email"], data["first_name"], data["last_name"], UserRole.TENANT, data.get("phone")
        )
        tenant = Tenant(
            user_id=user.id,
            property_id=prop.id,
            is_active=False,
            emergency_contact_name=data.get("emergency_contact_name"),
            emergency_contact_phone=data.get("emergency_contact_phone"),
        )
        self.db.add(tenant)
        await self.db.commit()
        tenant, _ = await self._load_tenant(tenant.id)
        return tenant

    async def update_tenant(self, caller: Caller, tenant_id: UUID, changes: dict[str, Any]) -> Tenant:
        tenant, prop = await self._load_tenant(tenant_id)
        authorize(caller, tenant_chain(tenant, prop), Action.WRITE)

        if isinstance(caller, TenantCaller):
            _reject_unknown(changes, TENANT_CONTACT_FIELDS)
        else:
            _reject_unknown(changes, TENANT_CONTACT_FIELDS + ("property_id",))

        if "property_id" in changes and changes["property_id"] != tenant.property_id:
            if tenant.is_active:
                raise Conflict("Tenant holds an active lease; terminate it before reassigning")
            target = await self.db.get(Property, changes["property_id"])
            if target is None:
                raise NotFound("Property not found")
            authorize(
                caller,
                OwnershipChain(Resource.TENANT, owner_id=target.owner_id, property_id=target.id),
                Action.WRITE,
            )
            tenant.property_id = target.id

        for field, value in changes.items():
            if field in USER_FIELDS:
                setattr(tenant.user, field, value)
            elif field != "property_id":
                setattr(tenant, field, value)
        await self.db.commit()
        return tenant

    async def deactivate_tenant(self, caller: Caller, tenant_id: UUID) -> Tenant:
        """Disable the tenant's account. Only possible without an ACTIVE lease."""
        tenant, prop = await self._load_tenant(tenant_id)
        if isinstance(caller, TenantCaller):
            raise Forbidden("Tenants cannot deactivate accounts")
        authorize(caller, tenant_chain(tenant, prop), Action.WRITE)

        active = await self.db.scalar(
            select(Lease.id).where(Lease.tenant_id == tenant.id, Lease.status == LeaseStatus.ACTIVE)
        )
        if active is not None:
            raise Conflict("Tenant holds an active lease; terminate it first")

        tenant.is_active = False
        tenant.user.is_active = False
        await self.db.commit()
        logger.info(f"[ACCOUNTS] Deactivated tenant {tenant.id}")
        return tenant


"""Property service."""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller, SuperAdminCaller
from leasekeeper.core.errors import Conflict, NotFound, ValidationFailed
from leasekeeper.models.enums import AuditAction, LeaseStatus, PropertyStatus, PropertyType
from leasekeeper.models.lease import Lease
from leasekeeper.models.property import Property
from leasekeeper.models.user import Owner, Tenant
from leasekeeper.services.audit import AuditService
from leasekeeper.services.authorization import (
    Action,
    OwnershipChain,
    Resource,
    authorize,
    property_chain,
    scope_owner_id,
    scope_properties,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name", "property_type", "status", "address_line1", "address_line2", "city", "state",
    "zip_code", "country", "bedrooms", "bathrooms", "square_feet", "rent_amount_cents", "description",
)


class PropertyService:
    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.audit = AuditService(db)

    async def _load(self, property_id: UUID) -> Property:
        prop = await self.db.get(Property, property_id)
        if prop is None:
            raise NotFound("Property not found")
        return prop

    async def list_properties(
        self,
        caller: Caller,
        status: Optional[PropertyStatus] = None,
        property_type: Optional[PropertyType] = None,
        city: Optional[str] = None,
        owner_id: Optional[UUID] = None,
    ) -> list[Property]:
        query = scope_properties(select(Property), caller)
        if status:
            query = query.where(Property.status == status)
        if property_type:
            query = query.where(Property.property_type == property_type)
        if city:
            query = query.where(func.lower(Property.city) == city.lower())
        if owner_id:
            query = query.where(Property.owner_id == owner_id)
        result = await self.db.execute(query.order_by(Property.created_at.desc()))
        return list(result.scalars().all())

    async def get(self, caller: Caller, property_id: UUID) -> Property:
        prop = await self._load(property_id)
        authorize(caller, property_chain(prop), Action.READ)
        return prop

    async def create(self, caller: Caller, data: dict[str, Any], owner_id: Optional[UUID] = None) -> Property:
        """Create a property for the caller's owner, or for ``owner_id`` as super admin."""
        if isinstance(caller, SuperAdminCaller):
            if owner_id is None:
                raise ValidationFailed("owner_id is required when a super admin creates a property")
        else:
            owner_id = owner_id or scope_owner_id(caller)

        authorize(caller, OwnershipChain(Resource.PROPERTY, owner_id=owner_id), Action.CREATE)
        if await self.db.get(Owner, owner_id) is None:
            raise NotFound("Owner not found")

        prop = Property(owner_id=owner_id, **data)
        self.db.add(prop)
        await self.db.commit()
        logger.info(f"[PROPERTY] Created property {prop.id} for owner {owner_id}")
        return prop

    async def update(self, caller: Caller, property_id: UUID, changes: dict[str, Any]) -> Property:
        prop = await self._load(property_id)
        authorize(caller, property_chain(prop), Action.WRITE)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")
        for field, value in changes.items():
            setattr(prop, field, value)
        await self.db.commit()
        return prop

    async def delete(self, caller: Caller, property_id: UUID) -> None:
        """Delete a property with no active tenants and no lease history."""
        prop = await self._load(property_id)
        authorize(caller, property_chain(prop), Action.DELETE)

        active_tenants = await self.db.scalar(
            select(func.count(Tenant.id)).where(Tenant.property_id == prop.id, Tenant.is_active.is_(True))
        )
        if active_tenants:
            raise Conflict(f"Property has {active_tenants} active tenant(s)")

        leases = (
            await self.db.execute(
                select(Lease.status, func.count(Lease.id))
                .where(Lease.property_id == prop.id)
                .group_by(Lease.status)
            )
        ).all()
        counts = {status: int(count) for status, count in leases}
        if counts.get(LeaseStatus.ACTIVE):
            raise Conflict(f"Property has {counts[LeaseStatus.ACTIVE]} active lease(s)")
        if counts:
            raise Conflict("Property has lease history and cannot be deleted; mark it UNAVAILABLE instead")

        await self.audit.log(
            action=AuditAction.PROPERTY_DELETED,
            resource_type=Resource.PROPERTY.value,
            resource_id=prop.id,
            user_id=caller.user_id,
            details={"name": prop.name, "owner_id": str(prop.owner_id)},
            ip_address=self.ip_address,
        )
        await self.db.delete(prop)
        await self.db.commit()
        logger.info(f"[PROPERTY] Deleted property {property_id}")

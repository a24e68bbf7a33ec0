"""Lease lifecycle: create, update, renew, terminate, delete.

States: PENDING -> ACTIVE -> {EXPIRED, TERMINATED}; renewal keeps ACTIVE.
Two ACTIVE leases on one property never overlap. Both ends are inclusive:
[start, end] and [s, e] overlap iff start <= e and end >= s, so a lease may
not begin on the day another ends. A tenant holds at most one ACTIVE
lease. Both checks run after the property row is locked, so concurrent
creations on the same property serialise.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.errors import Conflict, NotFound, ValidationFailed
from leasekeeper.core.money import format_cents
from leasekeeper.models.enums import AuditAction, LeaseStatus, NotificationType, PropertyStatus
from leasekeeper.models.lease import Lease
from leasekeeper.models.payment import Payment
from leasekeeper.models.property import Property
from leasekeeper.models.user import Tenant
from leasekeeper.services.audit import AuditService
from leasekeeper.services.authorization import (
    Action,
    Capability,
    OwnershipChain,
    Resource,
    authorize,
    lease_chain,
    scope_leases,
)
from leasekeeper.services.jobs import JobsService

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("monthly_rent_cents", "security_deposit_cents", "terms", "utilities")


class LeaseService:
    """Lease operations for an authenticated caller."""

    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.audit = AuditService(db)
        self.jobs = JobsService(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load(self, lease_id: UUID) -> tuple[Lease, Property]:
        result = await self.db.execute(
            select(Lease, Property)
            .join(Property, Lease.property_id == Property.id)
            .where(Lease.id == lease_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Lease not found")
        return row[0], row[1]

    async def _lock_property(self, property_id: UUID) -> Optional[Property]:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def _overlapping_lease(
        self,
        property_id: UUID,
        start_date: date,
        end_date: date,
        exclude_id: Optional[UUID] = None,
    ) -> Optional[Lease]:
        query = select(Lease).where(
            Lease.property_id == property_id,
            Lease.status == LeaseStatus.ACTIVE,
            Lease.start_date <= end_date,
            Lease.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(Lease.id != exclude_id)
        return (await self.db.execute(query.limit(1))).scalar_one_or_none()

    async def _tenant_user_id(self, tenant_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(Tenant.user_id).where(Tenant.id == tenant_id))

    async def _has_other_active_lease(self, property_id: UUID, lease_id: UUID) -> bool:
        count = await self.db.scalar(
            select(func.count(Lease.id)).where(
                Lease.property_id == property_id,
                Lease.status == LeaseStatus.ACTIVE,
                Lease.id != lease_id,
            )
        )
        return bool(count)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_leases(
        self,
        caller: Caller,
        property_id: Optional[UUID] = None,
        tenant_id: Optional[UUID] = None,
        status: Optional[LeaseStatus] = None,
    ) -> list[Lease]:
        query = scope_leases(select(Lease), caller)
        if property_id:
            query = query.where(Lease.property_id == property_id)
        if tenant_id:
            query = query.where(Lease.tenant_id == tenant_id)
        if status:
            query = query.where(Lease.status == status)
        result = await self.db.execute(query.order_by(Lease.created_at.desc()))
        return list(result.scalars().all())

    async def get(self, caller: Caller, lease_id: UUID) -> Lease:
        lease, prop = await self._load(lease_id)
        authorize(caller, lease_chain(lease, prop), Action.READ)
        return lease

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def create(
        self,
        caller: Caller,
        tenant_id: UUID,
        property_id: UUID,
        start_date: date,
        end_date: date,
        monthly_rent_cents: int,
        security_deposit_cents: int = 0,
        terms: Optional[str] = None,
        utilities: Optional[str] = None,
    ) -> Lease:
        """Create an ACTIVE lease and mark the tenant active."""
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")

        prop = await self._lock_property(property_id)
        if prop is None:
            raise NotFound("Property not found")

        authorize(
            caller,
            OwnershipChain(Resource.LEASE, owner_id=prop.owner_id, property_id=prop.id, tenant_id=tenant.id),
            Action.CREATE,
        )

        if end_date <= start_date:
            raise ValidationFailed("end_date must be after start_date")
        if monthly_rent_cents <= 0:
            raise ValidationFailed("monthly_rent_cents must be positive")

        active = await self.db.scalar(
            select(Lease.id).where(Lease.tenant_id == tenant.id, Lease.status == LeaseStatus.ACTIVE)
        )
        if active is not None:
            raise Conflict("Tenant already has an active lease")

        overlapping = await self._overlapping_lease(prop.id, start_date, end_date)
        if overlapping is not None:
            raise Conflict(
                f"Property already has an active lease from {overlapping.start_date} "
                f"to {overlapping.end_date} overlapping the requested dates"
            )

        lease = Lease(
            tenant_id=tenant.id,
            property_id=prop.id,
            status=LeaseStatus.ACTIVE,
            start_date=start_date,
            end_date=end_date,
            monthly_rent_cents=monthly_rent_cents,
            security_deposit_cents=security_deposit_cents,
            terms=terms,
            utilities=utilities,
        )
        self.db.add(lease)
        tenant.is_active = True
        if tenant.property_id is None:
            tenant.property_id = prop.id
        prop.status = PropertyStatus.OCCUPIED

        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Tenant already has an active lease")

        await self.audit.log(
            action=AuditAction.LEASE_CREATED,
            resource_type=Resource.LEASE.value,
            resource_id=lease.id,
            user_id=caller.user_id,
            details={
                "tenant_id": str(tenant.id),
                "property_id": str(prop.id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "monthly_rent_cents": monthly_rent_cents,
            },
            ip_address=self.ip_address,
        )
        await self.jobs.enqueue_notification(
            [tenant.user_id],
            title="New lease created",
            message=(
                f"Your lease at {prop.name} runs from {start_date} to {end_date} "
                f"at {format_cents(monthly_rent_cents)} per month."
            ),
            notification_type=NotificationType.LEASE,
            data={"lease_id": str(lease.id)},
        )

        await self.db.commit()
        logger.info(f"[LEASE] Created lease {lease.id} for tenant {tenant.id} on property {prop.id}")
        return lease

    async def update(self, caller: Caller, lease_id: UUID, changes: dict[str, Any]) -> Lease:
        """Amend rent, deposit, terms or utilities of a live lease."""
        lease, prop = await self._load(lease_id)
        authorize(caller, lease_chain(lease, prop), Action.WRITE)

        if lease.status in (LeaseStatus.TERMINATED, LeaseStatus.EXPIRED):
            raise Conflict(f"Cannot update a {lease.status.value} lease")

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")
        for field in ("monthly_rent_cents", "security_deposit_cents"):
            if field in changes and changes[field] is None:
                raise ValidationFailed(f"{field} cannot be null")
        if changes.get("monthly_rent_cents", 1) <= 0 or changes.get("security_deposit_cents", 0) < 0:
            raise ValidationFailed("Rent must be positive and the deposit non-negative")

        old_rent = lease.monthly_rent_cents
        for field, value in changes.items():
            setattr(lease, field, value)

        await self.audit.log(
            action=AuditAction.LEASE_UPDATED,
            resource_type=Resource.LEASE.value,
            resource_id=lease.id,
            user_id=caller.user_id,
            details={k: v for k, v in changes.items()},
            ip_address=self.ip_address,
        )

        if "monthly_rent_cents" in changes and changes["monthly_rent_cents"] != old_rent:
            tenant_user_id = await self._tenant_user_id(lease.tenant_id)
            if tenant_user_id:
                await self.jobs.enqueue_notification(
                    [tenant_user_id],
                    title="Lease rent updated",
                    message=(
                        f"Your monthly rent at {prop.name} changed from {format_cents(old_rent)} "
                        f"to {format_cents(lease.monthly_rent_cents)}."
                    ),
                    notification_type=NotificationType.LEASE,
                    data={"lease_id": str(lease.id)},
                )

        await self.db.commit()
        return lease

    async def terminate(
        self,
        caller: Caller,
        lease_id: UUID,
        reason: Optional[str] = None,
        termination_date: Optional[date] = None,
    ) -> Lease:
        """ACTIVE/PENDING -> TERMINATED. Re-terminating is a Conflict."""
        lease, prop = await self._load(lease_id)
        authorize(caller, lease_chain(lease, prop), Action.WRITE, Capability.MANAGE_LEASES)

        if lease.status == LeaseStatus.TERMINATED:
            raise Conflict("Lease is already terminated")
        if lease.status == LeaseStatus.EXPIRED:
            raise Conflict("Cannot terminate an EXPIRED lease")

        previous = lease.status
        lease.status = LeaseStatus.TERMINATED
        lease.termination_date = termination_date or datetime.utcnow().date()
        lease.termination_reason = reason

        tenant = await self.db.get(Tenant, lease.tenant_id)
        if tenant is not None:
            tenant.is_active = False
        await self.db.flush()
        if not await self._has_other_active_lease(prop.id, lease.id):
            prop.status = PropertyStatus.AVAILABLE

        await self.audit.log(
            action=AuditAction.LEASE_TERMINATED,
            resource_type=Resource.LEASE.value,
            resource_id=lease.id,
            user_id=caller.user_id,
            details={
                "previous_status": previous.value,
                "termination_date": lease.termination_date.isoformat(),
                "reason": reason,
            },
            ip_address=self.ip_address,
        )
        if tenant is not None:
            await self.jobs.enqueue_notification(
                [tenant.user_id],
                title="Lease terminated",
                message=(
                    f"Your lease at {prop.name} was terminated effective {lease.termination_date}."
                    + (f" Reason: {reason}" if reason else "")
                ),
                notification_type=NotificationType.LEASE,
                data={"lease_id": str(lease.id)},
            )

        await self.db.commit()
        logger.info(f"[LEASE] Terminated lease {lease.id}")
        return lease

    async def renew(
        self,
        caller: Caller,
        lease_id: UUID,
        new_end_date: date,
        new_monthly_rent_cents: Optional[int] = None,
    ) -> Lease:
        """Extend an ACTIVE lease. Existing payments keep their due dates."""
        lease, prop = await self._load(lease_id)
        authorize(caller, lease_chain(lease, prop), Action.WRITE)

        if lease.status != LeaseStatus.ACTIVE:
            raise Conflict(f"Cannot renew a {lease.status.value} lease; only ACTIVE leases can be renewed")
        if new_end_date <= lease.end_date:
            raise ValidationFailed("New end date must be after current lease end date")
        if new_monthly_rent_cents is not None and new_monthly_rent_cents <= 0:
            raise ValidationFailed("new_monthly_rent_cents must be positive")

        await self._lock_property(prop.id)
        overlapping = await self._overlapping_lease(prop.id, lease.start_date, new_end_date, exclude_id=lease.id)
        if overlapping is not None:
            raise Conflict(
                f"Renewal would overlap the active lease starting {overlapping.start_date}"
            )

        old_end, old_rent = lease.end_date, lease.monthly_rent_cents
        lease.end_date = new_end_date
        if new_monthly_rent_cents is not None:
            lease.monthly_rent_cents = new_monthly_rent_cents

        await self.audit.log(
            action=AuditAction.LEASE_RENEWED,
            resource_type=Resource.LEASE.value,
            resource_id=lease.id,
            user_id=caller.user_id,
            details={
                "old_end_date": old_end.isoformat(),
                "new_end_date": new_end_date.isoformat(),
                "old_rent_cents": old_rent,
                "new_rent_cents": lease.monthly_rent_cents,
            },
            ip_address=self.ip_address,
        )
        tenant_user_id = await self._tenant_user_id(lease.tenant_id)
        if tenant_user_id:
            message = f"Your lease at {prop.name} was renewed until {new_end_date}."
            if lease.monthly_rent_cents != old_rent:
                message += f" New monthly rent: {format_cents(lease.monthly_rent_cents)}."
            await self.jobs.enqueue_notification(
                [tenant_user_id],
                title="Lease renewed",
                message=message,
                notification_type=NotificationType.LEASE,
                data={"lease_id": str(lease.id)},
            )

        await self.db.commit()
        return lease

    async def delete(self, caller: Caller, lease_id: UUID) -> None:
        """Delete a lease that has no payments."""
        lease, prop = await self._load(lease_id)
        authorize(caller, lease_chain(lease, prop), Action.DELETE, Capability.MANAGE_LEASES)

        payments = await self.db.scalar(
            select(func.count(Payment.id)).where(Payment.lease_id == lease.id)
        )
        if payments:
            raise Conflict(f"Cannot delete a lease with {payments} payment(s) on record")

        if lease.status == LeaseStatus.ACTIVE:
            tenant = await self.db.get(Tenant, lease.tenant_id)
            if tenant is not None:
                tenant.is_active = False
            if not await self._has_other_active_lease(prop.id, lease.id):
                prop.status = PropertyStatus.AVAILABLE

        await self.audit.log(
            action=AuditAction.LEASE_DELETED,
            resource_type=Resource.LEASE.value,
            resource_id=lease.id,
            user_id=caller.user_id,
            details={"status": lease.status.value, "tenant_id": str(lease.tenant_id)},
            ip_address=self.ip_address,
        )
        await self.db.delete(lease)
        await self.db.commit()
        logger.info(f"[LEASE] Deleted lease {lease_id}")

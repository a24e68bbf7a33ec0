"""Maintenance request service."""

import logging
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller, ManagerCaller, TenantCaller
from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.models.enums import MaintenanceCategory, MaintenanceStatus, NotificationType, Priority
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.models.property import Property
from leasekeeper.models.user import Manager, Owner
from leasekeeper.services.authorization import (
    Action,
    OwnershipChain,
    Resource,
    authorize,
    maintenance_chain,
    scope_maintenance,
)
from leasekeeper.services.jobs import JobsService

logger = logging.getLogger(__name__)

TRANSITIONS: dict[MaintenanceStatus, frozenset[MaintenanceStatus]] = {
    MaintenanceStatus.OPEN: frozenset(
        {MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED}
    ),
    MaintenanceStatus.IN_PROGRESS: frozenset({MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED}),
    MaintenanceStatus.COMPLETED: frozenset(),
    MaintenanceStatus.CANCELLED: frozenset(),
}

EDITABLE_FIELDS = (
    "title", "description", "category", "priority", "status",
    "estimated_cost_cents", "actual_cost_cents", "scheduled_date", "notes",
)


def check_transition(current: MaintenanceStatus, target: MaintenanceStatus) -> None:
    if target == current:
        return
    if target not in TRANSITIONS[current]:
        raise Conflict(f"Cannot move a {current.value} maintenance request to {target.value}")


class MaintenanceService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.jobs = JobsService(db)

    async def _load(self, request_id: UUID) -> tuple[MaintenanceRequest, Property]:
        result = await self.db.execute(
            select(MaintenanceRequest, Property)
            .join(Property, MaintenanceRequest.property_id == Property.id)
            .where(MaintenanceRequest.id == request_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Maintenance request not found")
        return row[0], row[1]

    async def _staff_user_ids(self, owner_id: UUID) -> list[UUID]:
        """The owner's user and every manager user of that owner."""
        owner_user = await self.db.scalar(select(Owner.user_id).where(Owner.id == owner_id))
        managers = await self.db.execute(select(Manager.user_id).where(Manager.owner_id == owner_id))
        ids = [owner_user] if owner_user else []
        return ids + list(managers.scalars().all())

    async def list_requests(
        self,
        caller: Caller,
        status: Optional[MaintenanceStatus] = None,
        property_id: Optional[UUID] = None,
        priority: Optional[Priority] = None,
        category: Optional[MaintenanceCategory] = None,
    ) -> list[MaintenanceRequest]:
        query = scope_maintenance(select(MaintenanceRequest), caller)
        if status:
            query = query.where(MaintenanceRequest.status == status)
        if property_id:
            query = query.where(MaintenanceRequest.property_id == property_id)
        if priority:
            query = query.where(MaintenanceRequest.priority == priority)
        if category:
            query = query.where(MaintenanceRequest.category == category)
        result = await self.db.execute(query.order_by(MaintenanceRequest.created_at.desc()))
        return list(result.scalars().all())

    async def get(self, caller: Caller, request_id: UUID) -> MaintenanceRequest:
        request, prop = await self._load(request_id)
        authorize(caller, maintenance_chain(request, prop), Action.READ)
        return request

    async def create(
        self,
        caller: Caller,
        property_id: UUID,
        title: str,
        description: str,
        category: MaintenanceCategory = MaintenanceCategory.OTHER,
        priority: Priority = Priority.MEDIUM,
        scheduled_date: Optional[date] = None,
        estimated_cost_cents: Optional[int] = None,
    ) -> MaintenanceRequest:
        prop = await self.db.get(Property, property_id)
        if prop is None:
            raise NotFound("Property not found")
        authorize(
            caller,
            OwnershipChain(Resource.MAINTENANCE, owner_id=prop.owner_id, property_id=prop.id),
            Action.CREATE,
        )

        request = MaintenanceRequest(
            property_id=prop.id,
            requested_by_id=caller.user_id,
            tenant_id=caller.tenant_id if isinstance(caller, TenantCaller) else None,
            title=title,
            description=description,
            category=category,
            priority=priority,
            status=MaintenanceStatus.OPEN,
            scheduled_date=scheduled_date,
            estimated_cost_cents=estimated_cost_cents,
        )
        self.db.add(request)
        await self.db.flush()

        recipients = [uid for uid in await self._staff_user_ids(prop.owner_id) if uid != caller.user_id]
        await self.jobs.enqueue_notification(
            recipients,
            title="New maintenance request",
            message=f"{title} ({priority.value}) at {prop.name}",
            notification_type=NotificationType.MAINTENANCE,
            data={"maintenance_request_id": str(request.id), "property_id": str(prop.id)},
        )
        await self.db.commit()
        logger.info(f"[MAINTENANCE] Created request {request.id} on property {prop.id}")
        return request

    async def update(self, caller: Caller, request_id: UUID, changes: dict[str, Any]) -> MaintenanceRequest:
        request, prop = await self._load(request_id)
        if isinstance(caller, TenantCaller):
            raise Forbidden("Tenants cannot update maintenance requests")
        authorize(caller, maintenance_chain(request, prop), Action.WRITE)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")

        previous = request.status
        if "status" in changes:
            target = MaintenanceStatus(changes["status"])
            check_transition(previous, target)
            changes = {**changes, "status": target}
            if target == MaintenanceStatus.COMPLETED and previous != MaintenanceStatus.COMPLETED:
                request.completed_at = datetime.utcnow()

        for field, value in changes.items():
            setattr(request, field, value)

        if request.status != previous and request.requested_by_id != caller.user_id:
            await self.jobs.enqueue_notification(
                [request.requested_by_id],
                title="Maintenance request updated",
                message=f"\"{request.title}\" is now {request.status.value}.",
                notification_type=NotificationType.MAINTENANCE,
                data={"maintenance_request_id": str(request.id)},
            )
        await self.db.commit()
        return request

    async def assign(self, caller: Caller, request_id: UUID, manager_id: UUID) -> MaintenanceRequest:
        request, prop = await self._load(request_id)
        if isinstance(caller, TenantCaller):
            raise Forbidden("Tenants cannot assign maintenance requests")
        authorize(caller, maintenance_chain(request, prop), Action.WRITE)

        manager = await self.db.get(Manager, manager_id)
        if manager is None:
            raise NotFound("Manager not found")
        if manager.owner_id != prop.owner_id:
            raise ValidationFailed("Manager does not work for this property's owner")
        if request.status in (MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED):
            raise Conflict(f"Cannot assign a {request.status.value} maintenance request")

        request.assigned_to_id = manager.user_id
        await self.jobs.enqueue_notification(
            [manager.user_id],
            title="Maintenance request assigned to you",
            message=f"{request.title} at {prop.name}",
            notification_type=NotificationType.MAINTENANCE,
            data={"maintenance_request_id": str(request.id)},
        )
        await self.db.commit()
        return request

    async def delete(self, caller: Caller, request_id: UUID) -> None:
        request, prop = await self._load(request_id)
        if isinstance(caller, (TenantCaller, ManagerCaller)):
            raise Forbidden("Only owners can delete maintenance requests")
        authorize(caller, maintenance_chain(request, prop), Action.DELETE)
        await self.db.delete(request)
        await self.db.commit()

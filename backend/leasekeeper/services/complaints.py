"""Complaint service."""

import logging
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller, ManagerCaller, OwnerCaller, SuperAdminCaller, TenantCaller
from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.models.complaint import Complaint
from leasekeeper.models.enums import ComplaintCategory, ComplaintStatus, NotificationType, Priority
from leasekeeper.models.property import Property
from leasekeeper.models.user import Manager, Owner
from leasekeeper.services.authorization import (
    Action,
    OwnershipChain,
    Resource,
    authorize,
    complaint_chain,
    scope_complaints,
)
from leasekeeper.services.jobs import JobsService

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ComplaintStatus, frozenset[ComplaintStatus]] = {
    ComplaintStatus.OPEN: frozenset({ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED}),
    ComplaintStatus.IN_PROGRESS: frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED}),
    ComplaintStatus.RESOLVED: frozenset({ComplaintStatus.CLOSED, ComplaintStatus.IN_PROGRESS}),
    ComplaintStatus.CLOSED: frozenset(),
}

REPORTER_FIELDS = ("title", "description")
STAFF_FIELDS = ("category", "priority", "status", "resolution")


def check_transition(current: ComplaintStatus, target: ComplaintStatus) -> None:
    if target == current:
        return
    if target not in TRANSITIONS[current]:
        raise Conflict(f"Cannot move a {current.value} complaint to {target.value}")


class ComplaintService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.jobs = JobsService(db)

    async def _load(self, complaint_id: UUID) -> tuple[Complaint, Property]:
        result = await self.db.execute(
            select(Complaint, Property)
            .join(Property, Complaint.property_id == Property.id)
            .where(Complaint.id == complaint_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Complaint not found")
        return row[0], row[1]

    async def _owner_user_id(self, owner_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(Owner.user_id).where(Owner.id == owner_id))

    async def list_complaints(
        self,
        caller: Caller,
        status: Optional[ComplaintStatus] = None,
        property_id: Optional[UUID] = None,
        priority: Optional[Priority] = None,
        category: Optional[ComplaintCategory] = None,
    ) -> list[Complaint]:
        query = scope_complaints(select(Complaint), caller)
        if status:
            query = query.where(Complaint.status == status)
        if property_id:
            query = query.where(Complaint.property_id == property_id)
        if priority:
            query = query.where(Complaint.priority == priority)
        if category:
            query = query.where(Complaint.category == category)
        result = await self.db.execute(query.order_by(Complaint.created_at.desc()))
        return list(result.scalars().unique().all())

    async def get(self, caller: Caller, complaint_id: UUID) -> Complaint:
        complaint, prop = await self._load(complaint_id)
        authorize(caller, complaint_chain(complaint, prop), Action.READ)
        return complaint

    async def create(
        self,
        caller: Caller,
        property_id: UUID,
        title: str,
        description: str,
        category: ComplaintCategory = ComplaintCategory.OTHER,
        priority: Priority = Priority.MEDIUM,
    ) -> Complaint:
        prop = await self.db.get(Property, property_id)
        if prop is None:
            raise NotFound("Property not found")
        authorize(
            caller,
            OwnershipChain(Resource.COMPLAINT, owner_id=prop.owner_id, property_id=prop.id),
            Action.CREATE,
        )

        complaint = Complaint(
            property_id=prop.id,
            tenant_id=caller.tenant_id if isinstance(caller, TenantCaller) else None,
            reported_by_id=caller.user_id,
            title=title,
            description=description,
            category=category,
            priority=priority,
            status=ComplaintStatus.OPEN,
        )
        self.db.add(complaint)
        await self.db.flush()

        owner_user_id = await self._owner_user_id(prop.owner_id)
        if owner_user_id and owner_user_id != caller.user_id:
            await self.jobs.enqueue_notification(
                [owner_user_id],
                title="New complaint filed",
                message=f"{title} ({priority.value}) at {prop.name}",
                notification_type=NotificationType.COMPLAINT,
                data={"complaint_id": str(complaint.id), "property_id": str(prop.id)},
            )
        await self.db.commit()
        logger.info(f"[COMPLAINT] Created complaint {complaint.id} on property {prop.id}")
        return complaint

    async def update(self, caller: Caller, complaint_id: UUID, changes: dict[str, Any]) -> Complaint:
        """Reporter edits the text; staff in scope edit category, priority and status."""
        complaint, prop = await self._load(complaint_id)
        chain = complaint_chain(complaint, prop)

        text_changes = {k: v for k, v in changes.items() if k in REPORTER_FIELDS}
        staff_changes = {k: v for k, v in changes.items() if k in STAFF_FIELDS}
        unknown = set(changes) - set(REPORTER_FIELDS) - set(STAFF_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")

        if text_changes and complaint.reported_by_id != caller.user_id:
            raise Forbidden("Only the reporter can edit the title or description")
        if staff_changes:
            if isinstance(caller, TenantCaller):
                raise Forbidden("Tenants cannot change category, priority or status")
        authorize(caller, chain, Action.WRITE)

        previous = complaint.status
        if "status" in staff_changes:
            target = ComplaintStatus(staff_changes["status"])
            check_transition(previous, target)
            staff_changes["status"] = target
            if target == ComplaintStatus.RESOLVED and previous != ComplaintStatus.RESOLVED:
                complaint.resolved_at = datetime.utcnow()

        for field, value in {**text_changes, **staff_changes}.items():
            setattr(complaint, field, value)

        if complaint.status != previous and complaint.reported_by_id != caller.user_id:
            await self.jobs.enqueue_notification(
                [complaint.reported_by_id],
                title="Complaint status updated",
                message=f"Your complaint \"{complaint.title}\" is now {complaint.status.value}.",
                notification_type=NotificationType.COMPLAINT,
                data={"complaint_id": str(complaint.id)},
            )
        await self.db.commit()
        return complaint

    async def assign(self, caller: Caller, complaint_id: UUID, manager_id: UUID) -> Complaint:
        """Assign to a manager of the same owner; the complaint moves to IN_PROGRESS."""
        if not isinstance(caller, (SuperAdminCaller, OwnerCaller)):
            raise Forbidden("Only owners can assign complaints")
        complaint, prop = await self._load(complaint_id)
        authorize(caller, complaint_chain(complaint, prop), Action.WRITE)

        manager = await self.db.get(Manager, manager_id)
        if manager is None:
            raise NotFound("Manager not found")
        if manager.owner_id != prop.owner_id:
            raise ValidationFailed("Manager does not work for this property's owner")
        check_transition(complaint.status, ComplaintStatus.IN_PROGRESS)

        complaint.assigned_to_id = manager.user_id
        complaint.status = ComplaintStatus.IN_PROGRESS
        await self.jobs.enqueue_notification(
            [manager.user_id],
            title="Complaint assigned to you",
            message=f"{complaint.title} at {prop.name}",
            notification_type=NotificationType.COMPLAINT,
            data={"complaint_id": str(complaint.id)},
        )
        await self.db.commit()
        return complaint

    async def resolve(self, caller: Caller, complaint_id: UUID, resolution: str) -> Complaint:
        complaint, prop = await self._load(complaint_id)
        if isinstance(caller, TenantCaller):
            raise Forbidden("Tenants cannot resolve complaints")
        authorize(caller, complaint_chain(complaint, prop), Action.WRITE)
        check_transition(complaint.status, ComplaintStatus.RESOLVED)

        complaint.status = ComplaintStatus.RESOLVED
        complaint.resolution = resolution
        complaint.resolved_at = datetime.utcnow()
        await self.jobs.enqueue_notification(
            [complaint.reported_by_id],
            title="Complaint resolved",
            message=f"\"{complaint.title}\" was resolved: {resolution}",
            notification_type=NotificationType.COMPLAINT,
            data={"complaint_id": str(complaint.id)},
        )
        await self.db.commit()
        return complaint

    async def delete(self, caller: Caller, complaint_id: UUID) -> None:
        complaint, prop = await self._load(complaint_id)
        if not isinstance(caller, (SuperAdminCaller, OwnerCaller, ManagerCaller)):
            raise Forbidden("Only staff can delete complaints")
        authorize(caller, complaint_chain(complaint, prop), Action.DELETE)
        await self.db.delete(complaint)
        await self.db.commit()

"""Calendar of upcoming dates.

Events are derived from existing rows and never stored: rent due dates of
PENDING payments, starts and ends of live leases, and scheduled maintenance
visits. Each source query goes through the same scope filter as the matching
list endpoint, so a caller only sees dates of rows they could list.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.config import get_settings
from leasekeeper.core.errors import ValidationFailed
from leasekeeper.core.money import format_cents
from leasekeeper.models.enums import CalendarEventType, LeaseStatus, MaintenanceStatus, PaymentStatus
from leasekeeper.models.lease import Lease
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.models.payment import Payment
from leasekeeper.models.property import Property
from leasekeeper.services.authorization import scope_leases, scope_maintenance, scope_payments

logger = logging.getLogger(__name__)

settings = get_settings()

DEFAULT_WINDOW_DAYS = 30
MAX_WINDOW_DAYS = 366


@dataclass
class CalendarEvent:
    id: str
    type: CalendarEventType
    date: date
    title: str
    description: str
    property_id: UUID
    resource_id: UUID
    status: Optional[str] = None
    priority: Optional[str] = None


class CalendarService:
    """Scoped, read-only view of dated rows within a window."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _property_names(self, property_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = set(property_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Property.id, Property.name).where(Property.id.in_(ids)))
        return {row.id: row.name for row in result}

    async def _lease_properties(self, lease_ids: Iterable[UUID]) -> dict[UUID, UUID]:
        ids = set(lease_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Lease.id, Lease.property_id).where(Lease.id.in_(ids)))
        return {row.id: row.property_id for row in result}

    async def _payment_events(self, caller: Caller, start: date, end: date) -> list[CalendarEvent]:
        query = scope_payments(select(Payment), caller).where(
            Payment.status == PaymentStatus.PENDING,
            Payment.due_date >= start,
            Payment.due_date <= end,
        )
        payments = (await self.db.execute(query)).scalars().all()
        properties = await self._lease_properties(p.lease_id for p in payments)
        names = await self._property_names(properties.values())

        events = []
        for payment in payments:
            property_id = properties[payment.lease_id]
            amount = format_cents(payment.amount_cents, settings.currency)
            events.append(CalendarEvent(
                id=f"payment-{payment.id}",
                type=CalendarEventType.PAYMENT_DUE,
                date=payment.due_date,
                title=f"Payment due: {amount}",
                description=f"Rent of {amount} due for {names[property_id]}",
                property_id=property_id,
                resource_id=payment.id,
                status=payment.status.value,
            ))
        return events

    async def _lease_events(
        self, caller: Caller, start: date, end: date, wanted: set[CalendarEventType]
    ) -> list[CalendarEvent]:
        query = scope_leases(select(Lease), caller).where(
            Lease.status.in_((LeaseStatus.PENDING, LeaseStatus.ACTIVE)),
            or_(Lease.start_date.between(start, end), Lease.end_date.between(start, end)),
        )
        leases = (await self.db.execute(query)).scalars().all()
        names = await self._property_names(lease.property_id for lease in leases)

        events = []
        for lease in leases:
            name = names[lease.property_id]
            if CalendarEventType.LEASE_START in wanted and start <= lease.start_date <= end:
                events.append(CalendarEvent(
                    id=f"lease-start-{lease.id}",
                    type=CalendarEventType.LEASE_START,
                    date=lease.start_date,
                    title=f"Lease starts: {name}",
                    description=f"Lease at {name} begins at {format_cents(lease.monthly_rent_cents, settings.currency)} a month",
                    property_id=lease.property_id,
                    resource_id=lease.id,
                    status=lease.status.value,
                ))
            # A PENDING lease has not begun, so only its start is a dated event
            ends = lease.status == LeaseStatus.ACTIVE and start <= lease.end_date <= end
            if CalendarEventType.LEASE_END in wanted and ends:
                events.append(CalendarEvent(
                    id=f"lease-end-{lease.id}",
                    type=CalendarEventType.LEASE_END,
                    date=lease.end_date,
                    title=f"Lease ends: {name}",
                    description=f"Lease at {name} expires",
                    property_id=lease.property_id,
                    resource_id=lease.id,
                    status=lease.status.value,
                ))
        return events

    async def _maintenance_events(self, caller: Caller, start: date, end: date) -> list[CalendarEvent]:
        query = scope_maintenance(select(MaintenanceRequest), caller).where(
            MaintenanceRequest.status.in_((MaintenanceStatus.OPEN, MaintenanceStatus.IN_PROGRESS)),
            MaintenanceRequest.scheduled_date >= start,
            MaintenanceRequest.scheduled_date <= end,
        )
        requests = (await self.db.execute(query)).scalars().all()
        names = await self._property_names(r.property_id for r in requests)

        return [
            CalendarEvent(
                id=f"maintenance-{request.id}",
                type=CalendarEventType.MAINTENANCE,
                date=request.scheduled_date,
                title=f"Maintenance: {request.title}",
                description=f"{request.description} ({names[request.property_id]})",
                property_id=request.property_id,
                resource_id=request.id,
                status=request.status.value,
                priority=request.priority.value,
            )
            for request in requests
        ]

    async def events(
        self,
        caller: Caller,
        start: Optional[date] = None,
        end: Optional[date] = None,
        types: Optional[Iterable[CalendarEventType]] = None,
    ) -> list[CalendarEvent]:
        """Events dated within [start, end], both inclusive, ordered by date.

        ``start`` defaults to today (UTC) and ``end`` to 30 days after ``start``.
        """
        start = start or datetime.utcnow().date()
        end = end or start + timedelta(days=DEFAULT_WINDOW_DAYS)
        if end < start:
            raise ValidationFailed("end must not be before start")
        if (end - start).days > MAX_WINDOW_DAYS:
            raise ValidationFailed(f"Calendar window is limited to {MAX_WINDOW_DAYS} days")

        wanted = set(types) if types else set(CalendarEventType)
        events: list[CalendarEvent] = []
        if CalendarEventType.PAYMENT_DUE in wanted:
            events.extend(await self._payment_events(caller, start, end))
        if wanted & {CalendarEventType.LEASE_START, CalendarEventType.LEASE_END}:
            events.extend(await self._lease_events(caller, start, end, wanted))
        if CalendarEventType.MAINTENANCE in wanted:
            events.extend(await self._maintenance_events(caller, start, end))

        events.sort(key=lambda event: (event.date, event.type.value, event.id))
        logger.debug(f"[CALENDAR] {len(events)} events for {caller.user_id} in {start}..{end}")
        return events

from __future__ import annotations

from datetime import date

import pytest

from leasekeeper.core.errors import ValidationFailed
from leasekeeper.models.enums import CalendarEventType, MaintenanceStatus
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.services.calendar import CalendarService

from tests.factories import admin_caller, manager_caller, owner_caller, tenant_caller

JANUARY = dict(start=date(2023, 12, 20), end=date(2024, 1, 10))


async def _schedule(db, portfolio, scheduled_date, status=MaintenanceStatus.OPEN, title="Boiler service"):
    request = MaintenanceRequest(
        property_id=portfolio.prop.id,
        requested_by_id=portfolio.tenant.user_id,
        tenant_id=portfolio.tenant.id,
        title=title,
        description="Annual inspection",
        status=status,
        scheduled_date=scheduled_date,
    )
    db.add(request)
    await db.commit()
    return request


async def test_owner_sees_own_dates_in_order(db, portfolio):
    visit = await _schedule(db, portfolio, date(2024, 1, 5))
    await _schedule(db, portfolio, date(2024, 1, 6), status=MaintenanceStatus.COMPLETED, title="Done")

    events = await CalendarService(db).events(owner_caller(portfolio.owner), **JANUARY)

    assert [(e.date, e.type) for e in events] == [
        (date(2024, 1, 1), CalendarEventType.LEASE_START),
        (date(2024, 1, 1), CalendarEventType.PAYMENT_DUE),
        (date(2024, 1, 5), CalendarEventType.MAINTENANCE),
    ]
    assert events[1].resource_id == portfolio.payment.id
    assert events[1].title == "Payment due: $1,500.00"
    assert "Maple Court 1A" in events[1].description
    assert events[2].resource_id == visit.id
    assert all(e.property_id == portfolio.prop.id for e in events)


async def test_every_role_is_scoped(db, portfolio):
    service = CalendarService(db)

    admin = await service.events(admin_caller(portfolio.admin), **JANUARY)
    manager = await service.events(manager_caller(portfolio.manager), **JANUARY)
    tenant = await service.events(tenant_caller(portfolio.tenant), **JANUARY)
    other_tenant = await service.events(tenant_caller(portfolio.other_tenant), **JANUARY)

    assert {e.property_id for e in admin} == {portfolio.prop.id, portfolio.other_prop.id}
    assert len(admin) == 4
    assert {e.resource_id for e in manager} == {portfolio.payment.id, portfolio.lease.id}
    assert {e.resource_id for e in tenant} == {portfolio.payment.id, portfolio.lease.id}
    assert {e.resource_id for e in other_tenant} == {portfolio.other_payment.id, portfolio.other_lease.id}


async def test_lease_end_falls_in_window(db, portfolio):
    events = await CalendarService(db).events(
        owner_caller(portfolio.owner), start=date(2024, 12, 25), end=date(2025, 1, 10)
    )

    assert [(e.type, e.date, e.resource_id) for e in events] == [
        (CalendarEventType.LEASE_END, date(2025, 1, 1), portfolio.lease.id)
    ]


async def test_settled_payments_are_not_due(db, portfolio, paid_payment):
    events = await CalendarService(db).events(
        owner_caller(portfolio.owner), start=date(2024, 1, 25), end=date(2024, 2, 5)
    )

    assert events == []


async def test_type_filter(db, portfolio):
    await _schedule(db, portfolio, date(2024, 1, 5))

    events = await CalendarService(db).events(
        owner_caller(portfolio.owner), types=[CalendarEventType.PAYMENT_DUE], **JANUARY
    )

    assert [e.type for e in events] == [CalendarEventType.PAYMENT_DUE]


async def test_window_is_validated(db, portfolio):
    service = CalendarService(db)
    caller = owner_caller(portfolio.owner)

    with pytest.raises(ValidationFailed):
        await service.events(caller, start=date(2024, 2, 1), end=date(2024, 1, 1))
    with pytest.raises(ValidationFailed):
        await service.events(caller, start=date(2024, 1, 1), end=date(2025, 6, 1))


async def test_calendar_endpoint(client, login_as, portfolio):
    login_as(tenant_caller(portfolio.tenant))

    filtered = await client.get(
        "/v1/calendar", params={"start": "2023-12-20", "end": "2024-01-10", "type": "payment_due"}
    )
    default = await client.get("/v1/calendar")

    assert filtered.status_code == 200
    body = filtered.json()
    assert body["total"] == 1
    assert body["events"][0]["id"] == f"payment-{portfolio.payment.id}"
    assert body["events"][0]["date"] == "2024-01-01"
    assert default.status_code == 200
    window = date.fromisoformat(default.json()["end"]) - date.fromisoformat(default.json()["start"])
    assert window.days == 30

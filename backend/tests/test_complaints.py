from __future__ import annotations

import pytest
from sqlalchemy import select

from leasekeeper.core.errors import Conflict, Forbidden, ValidationFailed
from leasekeeper.models.enums import (
    ComplaintCategory,
    ComplaintStatus,
    MaintenanceCategory,
    MaintenanceStatus,
    NotificationType,
    Priority,
)
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.services.complaints import ComplaintService
from leasekeeper.services.maintenance import MaintenanceService

from tests.factories import (
    admin_caller,
    make_manager,
    make_tenant,
    manager_caller,
    owner_caller,
    tenant_caller,
)


@pytest.fixture
async def complaint(db, portfolio):
    return await ComplaintService(db).create(
        tenant_caller(portfolio.tenant),
        portfolio.prop.id,
        title="Loud music",
        description="Unit 2B plays music past midnight",
        category=ComplaintCategory.NOISE,
    )


@pytest.fixture
async def request_(db, portfolio):
    return await MaintenanceService(db).create(
        tenant_caller(portfolio.tenant),
        portfolio.prop.id,
        title="Leaking tap",
        description="Kitchen tap drips constantly",
        category=MaintenanceCategory.PLUMBING,
        priority=Priority.HIGH,
    )


async def test_tenant_files_complaint_and_owner_is_told(db, portfolio, complaint):
    assert complaint.status == ComplaintStatus.OPEN
    assert complaint.tenant_id == portfolio.tenant.id
    assert complaint.reported_by_id == portfolio.tenant.user_id

    job = await db.scalar(select(JobsOutbox))
    assert job.payload["user_ids"] == [str(portfolio.owner.user_id)]
    assert job.payload["type"] == NotificationType.COMPLAINT.value


async def test_tenant_cannot_file_at_foreign_property(db, portfolio):
    with pytest.raises(Forbidden):
        await ComplaintService(db).create(
            tenant_caller(portfolio.tenant), portfolio.other_prop.id, "Noise", "Next door"
        )


async def test_complaints_are_visible_to_reporter_and_staff_only(db, portfolio, complaint):
    service = ComplaintService(db)
    neighbour = await make_tenant(db, portfolio.prop, first_name="Ned", is_active=True)

    assert [c.id for c in await service.list_complaints(tenant_caller(portfolio.tenant))] == [complaint.id]
    assert await service.list_complaints(tenant_caller(neighbour)) == []
    assert [c.id for c in await service.list_complaints(manager_caller(portfolio.manager))] == [complaint.id]
    assert await service.list_complaints(owner_caller(portfolio.other_owner)) == []

    with pytest.raises(Forbidden):
        await service.get(tenant_caller(neighbour), complaint.id)


async def test_reporter_edits_text_staff_edit_triage(db, portfolio, complaint):
    service = ComplaintService(db)

    edited = await service.update(tenant_caller(portfolio.tenant), complaint.id, {"title": "Very loud music"})
    assert edited.title == "Very loud music"

    with pytest.raises(Forbidden):
        await service.update(tenant_caller(portfolio.tenant), complaint.id, {"priority": Priority.URGENT})
    with pytest.raises(Forbidden):
        await service.update(manager_caller(portfolio.manager), complaint.id, {"description": "rewritten"})
    with pytest.raises(ValidationFailed):
        await service.update(manager_caller(portfolio.manager), complaint.id, {"reported_by_id": None})

    triaged = await service.update(
        manager_caller(portfolio.manager), complaint.id, {"priority": Priority.HIGH, "status": "IN_PROGRESS"}
    )
    assert triaged.priority == Priority.HIGH
    assert triaged.status == ComplaintStatus.IN_PROGRESS


async def test_complaint_status_graph(db, portfolio, complaint):
    service = ComplaintService(db)
    staff = owner_caller(portfolio.owner)

    resolved = await service.resolve(staff, complaint.id, "Spoke with the neighbour")
    assert resolved.status == ComplaintStatus.RESOLVED
    assert resolved.resolved_at is not None
    assert resolved.resolution == "Spoke with the neighbour"

    reopened = await service.update(staff, complaint.id, {"status": ComplaintStatus.IN_PROGRESS})
    assert reopened.status == ComplaintStatus.IN_PROGRESS

    closed = await service.update(staff, complaint.id, {"status": ComplaintStatus.CLOSED})
    assert closed.status == ComplaintStatus.CLOSED

    with pytest.raises(Conflict):
        await service.update(staff, complaint.id, {"status": ComplaintStatus.OPEN})
    with pytest.raises(Conflict):
        await service.resolve(staff, complaint.id, "again")


async def test_tenant_cannot_resolve(db, portfolio, complaint):
    with pytest.raises(Forbidden):
        await ComplaintService(db).resolve(tenant_caller(portfolio.tenant), complaint.id, "fixed it myself")


async def test_assign_complaint(db, portfolio, complaint):
    service = ComplaintService(db)
    outsider = await make_manager(db, portfolio.other_owner)

    with pytest.raises(Forbidden):
        await service.assign(manager_caller(portfolio.manager), complaint.id, portfolio.manager.id)
    with pytest.raises(ValidationFailed):
        await service.assign(owner_caller(portfolio.owner), complaint.id, outsider.id)

    assigned = await service.assign(owner_caller(portfolio.owner), complaint.id, portfolio.manager.id)

    assert assigned.assigned_to_id == portfolio.manager.user_id
    assert assigned.status == ComplaintStatus.IN_PROGRESS


async def test_only_staff_delete_complaints(db, portfolio, complaint):
    service = ComplaintService(db)

    with pytest.raises(Forbidden):
        await service.delete(tenant_caller(portfolio.tenant), complaint.id)

    await service.delete(admin_caller(portfolio.admin), complaint.id)
    assert await service.list_complaints(admin_caller(portfolio.admin)) == []


async def test_maintenance_request_notifies_staff(db, portfolio, request_):
    assert request_.status == MaintenanceStatus.OPEN
    assert request_.tenant_id == portfolio.tenant.id

    job = await db.scalar(select(JobsOutbox))
    assert set(job.payload["user_ids"]) == {
        str(portfolio.owner.user_id),
        str(portfolio.manager.user_id),
        str(portfolio.approver.user_id),
    }


async def test_maintenance_lifecycle(db, portfolio, request_):
    service = MaintenanceService(db)
    staff = manager_caller(portfolio.manager)

    with pytest.raises(Forbidden):
        await service.update(tenant_caller(portfolio.tenant), request_.id, {"priority": Priority.URGENT})

    started = await service.update(staff, request_.id, {"status": "IN_PROGRESS", "estimated_cost_cents": 12000})
    assert started.status == MaintenanceStatus.IN_PROGRESS
    assert started.estimated_cost_cents == 12000

    done = await service.update(staff, request_.id, {"status": MaintenanceStatus.COMPLETED, "actual_cost_cents": 9850})
    assert done.completed_at is not None
    assert done.actual_cost_cents == 9850

    with pytest.raises(Conflict):
        await service.update(staff, request_.id, {"status": MaintenanceStatus.CANCELLED})
    with pytest.raises(Conflict):
        await service.assign(owner_caller(portfolio.owner), request_.id, portfolio.manager.id)


async def test_maintenance_assign_and_delete(db, portfolio, request_):
    service = MaintenanceService(db)

    assigned = await service.assign(owner_caller(portfolio.owner), request_.id, portfolio.approver.id)
    assert assigned.assigned_to_id == portfolio.approver.user_id

    with pytest.raises(Forbidden):
        await service.delete(manager_caller(portfolio.manager), request_.id)
    with pytest.raises(Forbidden):
        await service.delete(owner_caller(portfolio.other_owner), request_.id)

    await service.delete(owner_caller(portfolio.owner), request_.id)
    assert await service.list_requests(owner_caller(portfolio.owner)) == []

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.models.audit import AuditLog
from leasekeeper.models.enums import AuditAction, LeaseStatus, PropertyStatus
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.lease import Lease
from leasekeeper.services.jobs import SEND_NOTIFICATION
from leasekeeper.services.leases import LeaseService

from tests.factories import (
    make_lease,
    make_owner,
    make_payment,
    make_property,
    make_tenant,
    manager_caller,
    owner_caller,
    tenant_caller,
)


async def _vacant_property(db):
    owner = await make_owner(db)
    prop = await make_property(db, owner)
    return owner, prop


async def test_create_activates_lease_tenant_and_property(db):
    owner, prop = await _vacant_property(db)
    tenant = await make_tenant(db, prop)

    lease = await LeaseService(db, ip_address="10.0.0.1").create(
        owner_caller(owner),
        tenant_id=tenant.id,
        property_id=prop.id,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        monthly_rent_cents=150000,
    )

    assert lease.status == LeaseStatus.ACTIVE
    assert tenant.is_active is True
    assert prop.status == PropertyStatus.OCCUPIED

    audit = await db.scalar(select(AuditLog).where(AuditLog.resource_id == lease.id))
    assert audit.action == AuditAction.LEASE_CREATED
    assert audit.ip_address == "10.0.0.1"

    job = await db.scalar(select(JobsOutbox).where(JobsOutbox.type == SEND_NOTIFICATION))
    assert job.payload["user_ids"] == [str(tenant.user_id)]
    assert job.payload["type"] == "LEASE"


async def test_overlapping_active_lease_is_rejected(db):
    owner, prop = await _vacant_property(db)
    first = await make_tenant(db, prop)
    second = await make_tenant(db, prop, first_name="Sam")
    service = LeaseService(db)

    await service.create(owner_caller(owner), first.id, prop.id, date(2024, 1, 1), date(2024, 12, 31), 150000)

    with pytest.raises(Conflict):
        await service.create(owner_caller(owner), second.id, prop.id, date(2024, 6, 1), date(2025, 5, 31), 150000)

    count = await db.scalar(select(func.count(Lease.id)).where(Lease.property_id == prop.id))
    assert count == 1


async def test_lease_starting_on_previous_end_date_overlaps(db):
    owner, prop = await _vacant_property(db)
    first = await make_tenant(db, prop)
    second = await make_tenant(db, prop, first_name="Sam")
    service = LeaseService(db)

    await service.create(owner_caller(owner), first.id, prop.id, date(2024, 1, 1), date(2024, 6, 30), 150000)

    with pytest.raises(Conflict):
        await service.create(owner_caller(owner), second.id, prop.id, date(2024, 6, 30), date(2024, 12, 31), 150000)

    lease = await service.create(owner_caller(owner), second.id, prop.id, date(2024, 7, 1), date(2024, 12, 31), 150000)
    assert lease.status == LeaseStatus.ACTIVE


async def test_tenant_holds_one_active_lease(db, portfolio):
    spare = await make_property(db, portfolio.owner, name="Maple Court 2B")

    with pytest.raises(Conflict):
        await LeaseService(db).create(
            owner_caller(portfolio.owner),
            portfolio.tenant.id,
            spare.id,
            date(2025, 2, 1),
            date(2026, 2, 1),
            120000,
        )


async def test_end_date_must_follow_start_date(db):
    owner, prop = await _vacant_property(db)
    tenant = await make_tenant(db, prop)

    with pytest.raises(ValidationFailed):
        await LeaseService(db).create(owner_caller(owner), tenant.id, prop.id, date(2024, 6, 1), date(2024, 6, 1), 150000)


async def test_staff_of_another_owner_cannot_create(db, portfolio):
    tenant = await make_tenant(db, portfolio.other_prop)

    with pytest.raises(Forbidden):
        await LeaseService(db).create(
            manager_caller(portfolio.manager),
            tenant.id,
            portfolio.other_prop.id,
            date(2025, 2, 1),
            date(2026, 2, 1),
            120000,
        )


async def test_tenant_cannot_create_lease(db, portfolio):
    with pytest.raises(Forbidden):
        await LeaseService(db).create(
            tenant_caller(portfolio.tenant),
            portfolio.tenant.id,
            portfolio.prop.id,
            date(2026, 1, 1),
            date(2027, 1, 1),
            150000,
        )


async def test_missing_lease_is_not_found_before_forbidden(db, portfolio):
    service = LeaseService(db)

    with pytest.raises(NotFound):
        await service.get(tenant_caller(portfolio.tenant), uuid.uuid4())
    with pytest.raises(Forbidden):
        await service.get(tenant_caller(portfolio.tenant), portfolio.other_lease.id)


async def test_list_is_scoped_to_owner(db, portfolio):
    leases = await LeaseService(db).list_leases(owner_caller(portfolio.owner))

    assert [lease.id for lease in leases] == [portfolio.lease.id]


async def test_update_rejects_unknown_fields(db, portfolio):
    service = LeaseService(db)

    with pytest.raises(ValidationFailed):
        await service.update(owner_caller(portfolio.owner), portfolio.lease.id, {"status": "EXPIRED"})

    lease = await service.update(owner_caller(portfolio.owner), portfolio.lease.id, {"monthly_rent_cents": 155000})
    assert lease.monthly_rent_cents == 155000


async def test_update_rejects_null_money_fields(db, portfolio):
    service = LeaseService(db)
    caller = owner_caller(portfolio.owner)

    with pytest.raises(ValidationFailed, match="monthly_rent_cents cannot be null"):
        await service.update(caller, portfolio.lease.id, {"monthly_rent_cents": None})
    with pytest.raises(ValidationFailed, match="security_deposit_cents cannot be null"):
        await service.update(caller, portfolio.lease.id, {"security_deposit_cents": None})

    lease = await service.get(caller, portfolio.lease.id)
    assert lease.monthly_rent_cents is not None
    assert lease.security_deposit_cents is not None


async def test_renew_extends_active_lease(db, portfolio):
    lease = await LeaseService(db).renew(
        owner_caller(portfolio.owner),
        portfolio.lease.id,
        new_end_date=date(2026, 1, 1),
        new_monthly_rent_cents=160000,
    )

    assert lease.status == LeaseStatus.ACTIVE
    assert lease.end_date == date(2026, 1, 1)
    assert lease.monthly_rent_cents == 160000


async def test_renew_needs_later_end_date(db, portfolio):
    with pytest.raises(ValidationFailed):
        await LeaseService(db).renew(owner_caller(portfolio.owner), portfolio.lease.id, new_end_date=date(2024, 12, 1))


async def test_renew_rejects_terminated_lease(db, portfolio):
    tenant = await make_tenant(db, portfolio.prop, first_name="Rita")
    ended = await make_lease(
        db, tenant, portfolio.prop, date(2022, 1, 1), date(2023, 1, 1), status=LeaseStatus.TERMINATED
    )

    with pytest.raises(Conflict):
        await LeaseService(db).renew(owner_caller(portfolio.owner), ended.id, new_end_date=date(2027, 1, 1))


async def test_terminate_frees_tenant_and_property(db, portfolio):
    service = LeaseService(db)

    lease = await service.terminate(
        owner_caller(portfolio.owner),
        portfolio.lease.id,
        reason="Moving abroad",
        termination_date=date(2024, 6, 30),
    )

    assert lease.status == LeaseStatus.TERMINATED
    assert lease.termination_date == date(2024, 6, 30)
    assert portfolio.tenant.is_active is False
    assert portfolio.prop.status == PropertyStatus.AVAILABLE

    with pytest.raises(Conflict):
        await service.terminate(owner_caller(portfolio.owner), portfolio.lease.id)


async def test_terminate_expired_lease_is_a_conflict(db, portfolio):
    tenant = await make_tenant(db, portfolio.prop, first_name="Eve")
    expired = await make_lease(
        db, tenant, portfolio.prop, date(2021, 1, 1), date(2022, 1, 1), status=LeaseStatus.EXPIRED
    )

    with pytest.raises(Conflict):
        await LeaseService(db).terminate(owner_caller(portfolio.owner), expired.id)


async def test_terminate_needs_manage_leases_permission(db, portfolio):
    service = LeaseService(db)

    with pytest.raises(Forbidden):
        await service.terminate(manager_caller(portfolio.manager), portfolio.lease.id)

    lease = await service.terminate(manager_caller(portfolio.approver), portfolio.lease.id)
    assert lease.status == LeaseStatus.TERMINATED


async def test_delete_refuses_lease_with_payments(db, portfolio):
    with pytest.raises(Conflict):
        await LeaseService(db).delete(owner_caller(portfolio.owner), portfolio.lease.id)


async def test_delete_lease_without_payments(db, portfolio):
    tenant = await make_tenant(db, portfolio.other_prop, first_name="Nia")
    spare = await make_property(db, portfolio.other_owner, name="Birch Lofts 4")
    lease = await make_lease(db, tenant, spare, date(2025, 1, 1), date(2026, 1, 1))
    lease_id = lease.id

    await LeaseService(db).delete(owner_caller(portfolio.other_owner), lease_id)

    assert await db.get(Lease, lease_id) is None
    assert tenant.is_active is False
    assert spare.status == PropertyStatus.AVAILABLE


async def test_tenant_cannot_delete(db, portfolio):
    await make_payment(db, portfolio.lease, due_date=date(2024, 2, 1))

    with pytest.raises(Forbidden):
        await LeaseService(db).delete(tenant_caller(portfolio.tenant), portfolio.lease.id)

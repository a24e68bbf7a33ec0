from __future__ import annotations

import pytest
from sqlalchemy import select

from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.models.audit import AuditLog
from leasekeeper.models.enums import AuditAction, PropertyStatus, UserRole
from leasekeeper.models.property import Property
from leasekeeper.models.user import Owner, User
from leasekeeper.services.accounts import AccountService
from leasekeeper.services.properties import PropertyService

from tests.factories import (
    admin_caller,
    make_owner,
    make_property,
    make_tenant,
    manager_caller,
    owner_caller,
    tenant_caller,
    unique_email,
)


def _person(prefix: str, **extra) -> dict:
    return {"email": unique_email(prefix), "first_name": prefix.title(), "last_name": "Example", **extra}


async def test_admin_creates_owner_with_profile(db, portfolio):
    user = await AccountService(db).create_user(
        admin_caller(portfolio.admin), _person("olga", role="OWNER", company_name="Oak Estates")
    )

    assert user.role == UserRole.OWNER
    assert user.owner_profile.company_name == "Oak Estates"
    audit = await db.scalar(select(AuditLog).where(AuditLog.resource_id == user.id))
    assert audit.action == AuditAction.USER_CREATED


async def test_email_is_unique_case_insensitively(db, portfolio):
    service = AccountService(db)
    data = _person("dup", role="SUPER_ADMIN")
    await service.create_user(admin_caller(portfolio.admin), data)

    with pytest.raises(Conflict):
        await service.create_user(admin_caller(portfolio.admin), {**data, "email": data["email"].upper()})


async def test_only_admins_create_arbitrary_users(db, portfolio):
    with pytest.raises(Forbidden):
        await AccountService(db).create_user(owner_caller(portfolio.owner), _person("x", role="OWNER"))


async def test_tenant_role_requires_property(db, portfolio):
    with pytest.raises(ValidationFailed):
        await AccountService(db).create_user(admin_caller(portfolio.admin), _person("t", role="TENANT"))


async def test_owner_creates_manager_in_own_scope(db, portfolio):
    manager = await AccountService(db).create_manager(
        owner_caller(portfolio.owner),
        _person("mia", owner_id=portfolio.other_owner.id, permissions={"approvePayments": True}),
    )

    # owner_id from the payload is ignored for non-admins
    assert manager.owner_id == portfolio.owner.id
    assert manager.permissions == {"approvePayments": True}


async def test_managers_cannot_change_permissions(db, portfolio):
    service = AccountService(db)

    with pytest.raises(Forbidden):
        await service.update_manager(
            manager_caller(portfolio.manager), portfolio.manager.id, {"permissions": {"approvePayments": True}}
        )
    with pytest.raises(Forbidden):
        await service.update_manager(
            manager_caller(portfolio.manager), portfolio.approver.id, {"permissions": {}}
        )

    updated = await service.update_manager(
        manager_caller(portfolio.manager), portfolio.manager.id, {"phone": "555-0100"}
    )
    assert updated.user.phone == "555-0100"


async def test_owner_permission_change_is_audited(db, portfolio):
    manager = await AccountService(db, ip_address="192.0.2.7").update_manager(
        owner_caller(portfolio.owner), portfolio.manager.id, {"permissions": {"manageLeases": True}}
    )

    assert manager.permissions == {"manageLeases": True}
    audit = await db.scalar(
        select(AuditLog).where(AuditLog.action == AuditAction.MANAGER_PERMISSIONS_CHANGED)
    )
    assert audit.details == {"old": {}, "new": {"manageLeases": True}}
    assert audit.ip_address == "192.0.2.7"


async def test_tenant_cannot_be_created_under_foreign_property(db, portfolio):
    with pytest.raises(Forbidden):
        await AccountService(db).create_tenant(
            manager_caller(portfolio.manager), _person("tom", property_id=portfolio.other_prop.id)
        )


async def test_create_tenant_starts_inactive(db, portfolio):
    tenant = await AccountService(db).create_tenant(
        manager_caller(portfolio.manager), _person("tom", property_id=portfolio.prop.id)
    )

    assert tenant.is_active is False
    assert tenant.property_id == portfolio.prop.id
    assert tenant.user.role == UserRole.TENANT


async def test_tenant_edits_own_contact_details_only(db, portfolio):
    service = AccountService(db)
    caller = tenant_caller(portfolio.tenant)

    tenant = await service.update_tenant(caller, portfolio.tenant.id, {"emergency_contact_name": "Mom"})
    assert tenant.emergency_contact_name == "Mom"

    with pytest.raises(ValidationFailed):
        await service.update_tenant(caller, portfolio.tenant.id, {"property_id": portfolio.other_prop.id})
    with pytest.raises(Forbidden):
        await service.update_tenant(caller, portfolio.other_tenant.id, {"phone": "1"})


async def test_tenant_with_active_lease_cannot_move_or_deactivate(db, portfolio):
    service = AccountService(db)
    caller = owner_caller(portfolio.owner)
    spare = await make_property(db, portfolio.owner, name="Maple Court 2B")

    with pytest.raises(Conflict):
        await service.update_tenant(caller, portfolio.tenant.id, {"property_id": spare.id})
    with pytest.raises(Conflict):
        await service.deactivate_tenant(caller, portfolio.tenant.id)


async def test_deactivate_tenant_without_lease(db, portfolio):
    idle = await make_tenant(db, portfolio.prop, first_name="Ivy")

    tenant = await AccountService(db).deactivate_tenant(manager_caller(portfolio.manager), idle.id)

    assert tenant.is_active is False
    assert tenant.user.is_active is False


async def test_cannot_act_on_own_account(db, portfolio):
    service = AccountService(db)
    me = admin_caller(portfolio.admin)

    with pytest.raises(Forbidden):
        await service.set_active(me, portfolio.admin.id, False)
    with pytest.raises(Forbidden):
        await service.delete_user(me, portfolio.admin.id)


async def test_set_active(db, portfolio):
    user = await AccountService(db).set_active(admin_caller(portfolio.admin), portfolio.tenant.user_id, False)

    assert user.is_active is False


async def test_delete_user_guards(db, portfolio):
    service = AccountService(db)
    admin = admin_caller(portfolio.admin)

    with pytest.raises(Conflict):
        await service.delete_user(admin, portfolio.tenant.user_id)
    with pytest.raises(Conflict):
        await service.delete_owner(admin, portfolio.owner.id)
    with pytest.raises(NotFound):
        await service.delete_owner(admin, portfolio.tenant.id)


async def test_delete_owner_without_properties(db, portfolio):
    lonely = await make_owner(db, company_name="Empty Lots")
    user_id, owner_id = lonely.user_id, lonely.id

    await AccountService(db).delete_owner(admin_caller(portfolio.admin), owner_id)

    assert await db.scalar(select(User.id).where(User.id == user_id)) is None
    assert await db.scalar(select(Owner.id).where(Owner.id == owner_id)) is None


async def test_update_me_allows_profile_fields(db, portfolio):
    service = AccountService(db)
    caller = tenant_caller(portfolio.tenant)

    user = await service.update_me(caller, {"first_name": "Tin", "fcm_token": "device-1"})
    assert (user.first_name, user.fcm_token) == ("Tin", "device-1")

    with pytest.raises(ValidationFailed):
        await service.update_me(caller, {"role": "SUPER_ADMIN"})


async def test_managers_cannot_edit_owner(db, portfolio):
    with pytest.raises(Forbidden):
        await AccountService(db).update_owner(
            manager_caller(portfolio.manager), portfolio.owner.id, {"company_name": "Mine now"}
        )


async def test_list_tenants_is_scoped(db, portfolio):
    tenants = await AccountService(db).list_tenants(owner_caller(portfolio.other_owner))

    assert [t.id for t in tenants] == [portfolio.other_tenant.id]


async def test_property_crud_and_delete_guards(db, portfolio):
    service = PropertyService(db)
    caller = owner_caller(portfolio.owner)

    prop = await service.create(
        caller,
        {
            "name": "Maple Court 3C",
            "address_line1": "12 Maple Street",
            "city": "Springfield",
            "state": "IL",
            "zip_code": "62701",
            "rent_amount_cents": 175000,
        },
    )
    assert prop.owner_id == portfolio.owner.id

    updated = await service.update(caller, prop.id, {"status": PropertyStatus.MAINTENANCE})
    assert updated.status == PropertyStatus.MAINTENANCE
    with pytest.raises(ValidationFailed):
        await service.update(caller, prop.id, {"owner_id": portfolio.other_owner.id})

    with pytest.raises(Conflict):
        await service.delete(caller, portfolio.prop.id)
    with pytest.raises(Forbidden):
        await service.delete(manager_caller(portfolio.manager), prop.id)

    prop_id = prop.id
    await service.delete(caller, prop_id)
    assert await db.scalar(select(Property.id).where(Property.id == prop_id)) is None


async def test_admin_must_name_owner_for_new_property(db, portfolio):
    with pytest.raises(ValidationFailed):
        await PropertyService(db).create(admin_caller(portfolio.admin), {"name": "Nowhere"})


async def test_tenant_sees_only_rented_property(db, portfolio):
    service = PropertyService(db)

    own = await service.get(tenant_caller(portfolio.tenant), portfolio.prop.id)
    assert own.id == portfolio.prop.id
    with pytest.raises(Forbidden):
        await service.get(tenant_caller(portfolio.tenant), portfolio.other_prop.id)

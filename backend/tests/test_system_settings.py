from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from leasekeeper.core.errors import ValidationFailed
from leasekeeper.models.audit import AuditLog
from leasekeeper.models.enums import AuditAction
from leasekeeper.services.system_settings import SystemSettingsService, parse_value

from tests.factories import admin_caller, owner_caller


def test_parse_value_by_type():
    assert parse_value("Maple", "STRING") == "Maple"
    assert parse_value("2.50", "NUMBER") == Decimal("2.50")
    assert parse_value("TRUE", "BOOLEAN") is True
    assert parse_value('{"days": [1, 15]}', "JSON") == {"days": [1, 15]}

    for value, setting_type in [("ten", "NUMBER"), ("NaN", "NUMBER"), ("yes", "BOOLEAN"), ("{", "JSON")]:
        with pytest.raises(ValidationFailed):
            parse_value(value, setting_type)


async def test_set_creates_then_replaces(db, portfolio):
    service = SystemSettingsService(db)
    admin_id = portfolio.admin.id

    created = await service.set_setting("late_fee.grace_days", "5", admin_id, setting_type="NUMBER")
    replaced = await service.set_setting("late_fee.grace_days", "7", admin_id)

    assert replaced.id == created.id
    assert replaced.type == "NUMBER"
    assert await service.get_value("late_fee.grace_days") == Decimal("7")
    assert await service.get_value("missing", default="fallback") == "fallback"
    entries = (await db.scalars(
        select(AuditLog).where(AuditLog.action == AuditAction.SYSTEM_SETTING_CHANGED)
    )).all()
    assert sorted(str(e.details["previous"]) for e in entries) == ["5", "None"]


async def test_value_must_match_existing_type(db, portfolio):
    service = SystemSettingsService(db)
    await service.set_setting("maintenance_mode", "false", portfolio.admin.id, setting_type="BOOLEAN")

    with pytest.raises(ValidationFailed):
        await service.set_setting("maintenance_mode", "sometimes", portfolio.admin.id)
    with pytest.raises(ValidationFailed):
        await service.set_setting("Bad Key", "x", portfolio.admin.id)

    assert await service.get_value("maintenance_mode") is False


async def test_settings_endpoints_are_super_admin_only(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))
    assert (await client.get("/v1/admin/settings")).status_code == 403
    assert (await client.put("/v1/admin/settings/support_email", json={"value": "x"})).status_code == 403

    login_as(admin_caller(portfolio.admin))
    updated = await client.put(
        "/v1/admin/settings/support_email",
        json={"value": "help@leasekeeper.test", "description": "Shown in emails"},
    )
    empty = await client.put("/v1/admin/settings/support_email", json={"value": ""})
    listing = await client.get("/v1/admin/settings")

    assert updated.status_code == 200
    assert updated.json()["type"] == "STRING"
    assert empty.status_code == 422
    setting = listing.json()["settings"]["support_email"]
    assert setting["value"] == "help@leasekeeper.test"
    assert setting["description"] == "Shown in emails"
    assert setting["updated_by_id"] == str(portfolio.admin.id)

from __future__ import annotations

import uuid

from leasekeeper.models.enums import PaymentStatus
from leasekeeper.services.dispatcher import OutboxDispatcher
from leasekeeper.services.feature_flags import ANALYTICS_DASHBOARD, PAYMENT_PROCESSING, FeatureFlagService

from tests.factories import admin_caller, owner_caller, tenant_caller


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_missing_token_is_unauthenticated(client):
    response = await client.get("/v1/payments")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["error"]["kind"] == "Unauthenticated"


async def test_error_bodies(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    missing = await client.get(f"/v1/payments/{uuid.uuid4()}")
    foreign = await client.get(f"/v1/payments/{portfolio.other_payment.id}")

    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "NotFound"
    assert foreign.status_code == 403
    assert foreign.json() == {
        "error": {"kind": "Forbidden", "message": "This resource is outside your ownership scope"}
    }


async def test_lease_dates_validated_at_the_edge(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    response = await client.post(
        "/v1/leases",
        json={
            "tenant_id": str(portfolio.tenant.id),
            "property_id": str(portfolio.prop.id),
            "start_date": "2025-06-01",
            "end_date": "2025-01-01",
            "monthly_rent_cents": 150000,
        },
    )

    assert response.status_code == 422
    body = response.json()["error"]
    assert body["kind"] == "ValidationFailed"
    assert body["details"]


async def test_patch_rejects_null_for_required_columns(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    cases = [
        (f"/v1/payments/{portfolio.payment.id}", {"amount_cents": None}),
        (f"/v1/payments/{portfolio.payment.id}", {"due_date": None}),
        (f"/v1/leases/{portfolio.lease.id}", {"monthly_rent_cents": None}),
        (f"/v1/leases/{portfolio.lease.id}", {"security_deposit_cents": None}),
        (f"/v1/properties/{portfolio.prop.id}", {"name": None}),
    ]
    for url, body in cases:
        response = await client.patch(url, json=body)

        assert response.status_code == 422, url
        assert response.json()["error"]["kind"] == "ValidationFailed"

    payment = await client.get(f"/v1/payments/{portfolio.payment.id}")
    assert payment.json()["amount_cents"] == 150000
    assert payment.json()["due_date"] == "2024-01-01"


async def test_patch_with_omitted_fields_leaves_them_alone(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    response = await client.patch(f"/v1/payments/{portfolio.payment.id}", json={"notes": "Called tenant"})

    assert response.status_code == 200
    assert response.json()["notes"] == "Called tenant"
    assert response.json()["amount_cents"] == 150000


async def test_tenant_pays_once(client, login_as, portfolio):
    login_as(tenant_caller(portfolio.tenant))

    first = await client.post(f"/v1/payments/{portfolio.payment.id}/pay")
    second = await client.post(f"/v1/payments/{portfolio.payment.id}/pay")

    assert first.status_code == 200
    assert first.json()["status"] == PaymentStatus.PAID.value
    assert first.json()["method"] == "ONLINE"
    assert second.status_code == 409
    assert second.json()["error"]["message"] == "Payment is already paid"


async def test_staff_cannot_pay_online(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    response = await client.post(f"/v1/payments/{portfolio.payment.id}/pay")

    assert response.status_code == 403


async def test_pay_is_gated_by_feature_flag(client, login_as, db, flag_cache, portfolio):
    await FeatureFlagService(db, flag_cache).set_flag(PAYMENT_PROCESSING, False)
    login_as(tenant_caller(portfolio.tenant))

    response = await client.post(f"/v1/payments/{portfolio.payment.id}/pay")

    assert response.status_code == 403
    assert PAYMENT_PROCESSING in response.json()["error"]["message"]


async def test_receipt_download_link(client, login_as, session_factory, storage, portfolio):
    login_as(tenant_caller(portfolio.tenant))
    await client.post(f"/v1/payments/{portfolio.payment.id}/pay")

    pending = await client.get(f"/v1/payments/{portfolio.payment.id}/receipt")
    assert pending.status_code == 404

    await OutboxDispatcher(session_factory, storage=storage).run_once()
    response = await client.get(f"/v1/payments/{portfolio.payment.id}/receipt")

    assert response.status_code == 200
    receipt = response.json()
    assert receipt["receipt_number"].startswith("RCP-")
    assert receipt["amount_cents"] == 150000
    assert receipt["download_url"].startswith("https://storage.test/owners/")
    assert receipt["download_url"].endswith(f"?ttl={receipt['expires_in_seconds']}")


async def test_reports_are_staff_only(client, login_as, portfolio):
    login_as(tenant_caller(portfolio.tenant))
    assert (await client.get("/v1/reports/dashboard")).status_code == 403

    login_as(owner_caller(portfolio.owner))
    response = await client.get("/v1/reports/dashboard")

    assert response.status_code == 200
    dashboard = response.json()
    assert dashboard["total_properties"] == 1
    assert dashboard["active_leases"] == 1
    assert dashboard["active_tenants"] == 1
    assert dashboard["pending_payments"] == 1


async def test_reports_are_gated_by_feature_flag(client, login_as, db, flag_cache, portfolio):
    await FeatureFlagService(db, flag_cache).set_flag(ANALYTICS_DASHBOARD, False)
    login_as(owner_caller(portfolio.owner))

    assert (await client.get("/v1/reports/dashboard")).status_code == 403
    assert (await client.get("/v1/payments/analytics")).status_code == 403


async def test_financial_csv_export(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    response = await client.get("/v1/reports/export", params={"report": "financial", "format": "csv"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Due Date,Property,Tenant,Amount")
    assert "Maple Court 1A" in lines[1]
    assert "Birch Lofts 3" not in response.text


async def test_payment_analytics_endpoint(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))

    response = await client.get("/v1/payments/analytics")

    assert response.status_code == 200
    assert response.json()["by_status"]["PENDING"] == {"count": 1, "amount_cents": 150000}


async def test_me_reports_role_and_features(client, login_as, portfolio):
    login_as(tenant_caller(portfolio.tenant))

    response = await client.get("/v1/auth/me")

    assert response.status_code == 200
    me = response.json()
    assert me["role"] == "TENANT"
    assert me["tenant_id"] == str(portfolio.tenant.id)
    assert me["user"]["email"]
    assert me["features"][PAYMENT_PROCESSING] is True


async def test_feature_flag_admin_is_super_admin_only(client, login_as, portfolio):
    login_as(owner_caller(portfolio.owner))
    assert (await client.get("/v1/admin/feature-flags")).status_code == 403

    login_as(admin_caller(portfolio.admin))
    updated = await client.put(f"/v1/admin/feature-flags/{ANALYTICS_DASHBOARD}", json={"enabled": False})
    listing = await client.get("/v1/admin/feature-flags")

    assert updated.status_code == 200
    assert listing.json()["flags"][ANALYTICS_DASHBOARD] is False


async def test_manual_sweep_run(client, login_as, portfolio):
    login_as(admin_caller(portfolio.admin))

    unknown = await client.post("/v1/admin/sweeps/compact-everything")
    response = await client.post("/v1/admin/sweeps/overdue-detection-daily")

    assert unknown.status_code == 404
    assert response.status_code == 200
    assert response.json() == {
        "sweep": "overdue-detection-daily",
        "result": {"marked_overdue": 2, "notices_enqueued": 2},
    }

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from leasekeeper.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from leasekeeper.core.money import format_cents
from leasekeeper.models.enums import PaymentMethod, PaymentStatus
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.payment import Payment
from leasekeeper.services.jobs import ISSUE_RECEIPT, SEND_NOTIFICATION
from leasekeeper.services.payments import PaymentService

from tests.factories import (
    admin_caller,
    make_payment,
    manager_caller,
    owner_caller,
    tenant_caller,
)


async def _jobs(db, job_type):
    result = await db.execute(select(JobsOutbox).where(JobsOutbox.type == job_type))
    return list(result.scalars().all())


async def test_create_records_pending_payment(db, portfolio):
    payment = await PaymentService(db).create(
        manager_caller(portfolio.manager),
        lease_id=portfolio.lease.id,
        tenant_id=portfolio.tenant.id,
        amount_cents=150000,
        due_date=date(2024, 3, 1),
    )

    assert payment.status == PaymentStatus.PENDING
    assert payment.tenant_id == portfolio.tenant.id
    reminders = await _jobs(db, SEND_NOTIFICATION)
    assert reminders[0].payload["user_ids"] == [str(portfolio.tenant.user_id)]


async def test_create_rejects_tenant_mismatch(db, portfolio):
    with pytest.raises(ValidationFailed):
        await PaymentService(db).create(
            owner_caller(portfolio.owner),
            lease_id=portfolio.lease.id,
            tenant_id=portfolio.other_tenant.id,
            amount_cents=150000,
            due_date=date(2024, 3, 1),
        )


async def test_tenant_cannot_read_another_tenants_payment(db, portfolio):
    service = PaymentService(db)

    with pytest.raises(Forbidden):
        await service.get(tenant_caller(portfolio.tenant), portfolio.other_payment.id)
    with pytest.raises(NotFound):
        await service.get(tenant_caller(portfolio.tenant), uuid.uuid4())

    own = await service.get(tenant_caller(portfolio.tenant), portfolio.payment.id)
    assert own.id == portfolio.payment.id


async def test_list_is_scoped(db, portfolio):
    service = PaymentService(db)

    tenant_view = await service.list_payments(tenant_caller(portfolio.tenant))
    admin_view = await service.list_payments(admin_caller(portfolio.admin))

    assert [p.id for p in tenant_view] == [portfolio.payment.id]
    assert {p.id for p in admin_view} == {portfolio.payment.id, portfolio.other_payment.id}


async def test_paid_payment_is_frozen(db, portfolio, paid_payment):
    service = PaymentService(db)
    caller = owner_caller(portfolio.owner)

    with pytest.raises(Conflict):
        await service.update(caller, paid_payment.id, {"amount_cents": 1000})
    with pytest.raises(Conflict):
        await service.delete(caller, paid_payment.id)
    with pytest.raises(Conflict, match="already paid"):
        await service.mark_paid(caller, paid_payment.id, PaymentMethod.CASH)


async def test_update_pending_payment(db, portfolio):
    payment = await PaymentService(db).update(
        owner_caller(portfolio.owner),
        portfolio.payment.id,
        {"amount_cents": 145000, "notes": "Prorated"},
    )

    assert payment.amount_cents == 145000
    assert payment.notes == "Prorated"
    assert payment.status == PaymentStatus.PENDING


async def test_update_rejects_null_amount_and_due_date(db, portfolio):
    service = PaymentService(db)
    caller = owner_caller(portfolio.owner)

    with pytest.raises(ValidationFailed, match="amount_cents cannot be null"):
        await service.update(caller, portfolio.payment.id, {"amount_cents": None})
    with pytest.raises(ValidationFailed, match="due_date cannot be null"):
        await service.update(caller, portfolio.payment.id, {"due_date": None})

    payment = await service.get(caller, portfolio.payment.id)
    assert payment.amount_cents == 150000
    assert payment.due_date == date(2024, 1, 1)


async def test_mark_paid_requires_approve_permission(db, portfolio):
    service = PaymentService(db)

    with pytest.raises(Forbidden):
        await service.mark_paid(manager_caller(portfolio.manager), portfolio.payment.id, PaymentMethod.CASH)

    payment = await service.mark_paid(owner_caller(portfolio.owner), portfolio.payment.id, PaymentMethod.CHECK)

    assert payment.status == PaymentStatus.PAID
    assert payment.method == PaymentMethod.CHECK
    assert payment.transaction_id.startswith("TXN-")
    assert payment.paid_date is not None
    receipts = await _jobs(db, ISSUE_RECEIPT)
    assert [job.payload["payment_id"] for job in receipts] == [str(portfolio.payment.id)]


async def test_manager_with_permission_marks_paid(db, portfolio):
    payment = await PaymentService(db).mark_paid(
        manager_caller(portfolio.approver),
        portfolio.payment.id,
        PaymentMethod.BANK_TRANSFER,
        transaction_id="BANK-7781",
    )

    assert payment.transaction_id == "BANK-7781"


async def test_settle_online_twice_gives_one_success(db, portfolio):
    service = PaymentService(db)
    caller = tenant_caller(portfolio.tenant)

    payment = await service.settle_online(caller, portfolio.payment.id)
    assert payment.status == PaymentStatus.PAID
    assert payment.method == PaymentMethod.ONLINE

    with pytest.raises(Conflict):
        await service.settle_online(caller, portfolio.payment.id)

    receipts = await _jobs(db, ISSUE_RECEIPT)
    assert len(receipts) == 1


async def test_claim_settlement_is_compare_and_set(db, portfolio):
    service = PaymentService(db)

    first = await service.claim_settlement(portfolio.payment.id, PaymentMethod.ONLINE, "TXN-A")
    second = await service.claim_settlement(portfolio.payment.id, PaymentMethod.ONLINE, "TXN-B")
    await db.commit()

    assert (first, second) == (True, False)
    transaction_id = await db.scalar(select(Payment.transaction_id).where(Payment.id == portfolio.payment.id))
    assert transaction_id == "TXN-A"


async def test_only_the_payer_settles_online(db, portfolio):
    with pytest.raises(Forbidden):
        await PaymentService(db).settle_online(tenant_caller(portfolio.other_tenant), portfolio.payment.id)


async def test_duplicate_transaction_id_is_a_conflict(db, portfolio):
    second = await make_payment(db, portfolio.lease, due_date=date(2024, 2, 1))
    second_id = second.id
    service = PaymentService(db)
    caller = owner_caller(portfolio.owner)

    await service.mark_paid(caller, portfolio.payment.id, PaymentMethod.CARD, transaction_id="CARD-1")

    with pytest.raises(Conflict):
        await service.mark_paid(caller, second_id, PaymentMethod.CARD, transaction_id="CARD-1")


async def test_cancel_and_refund_paths(db, portfolio, paid_payment):
    service = PaymentService(db)
    caller = owner_caller(portfolio.owner)

    cancelled = await service.cancel(caller, portfolio.payment.id, reason="Billed twice")
    assert cancelled.status == PaymentStatus.CANCELLED
    with pytest.raises(Conflict):
        await service.settle_online(tenant_caller(portfolio.tenant), portfolio.payment.id)
    with pytest.raises(Conflict):
        await service.cancel(caller, paid_payment.id)

    refunded = await service.refund(caller, paid_payment.id, reason="Deposit returned")
    assert refunded.status == PaymentStatus.REFUNDED
    assert refunded.refunded_at is not None
    with pytest.raises(Conflict):
        await service.refund(caller, paid_payment.id)
    with pytest.raises(Conflict):
        await service.delete(caller, paid_payment.id)


async def test_refund_requires_approve_permission(db, portfolio, paid_payment):
    with pytest.raises(Forbidden):
        await PaymentService(db).refund(manager_caller(portfolio.manager), paid_payment.id)


async def test_delete_pending_payment(db, portfolio):
    payment_id = portfolio.payment.id

    await PaymentService(db).delete(manager_caller(portfolio.approver), payment_id)

    assert await db.scalar(select(func.count(Payment.id)).where(Payment.id == payment_id)) == 0


async def test_overdue_list(db, portfolio):
    late = await make_payment(db, portfolio.lease, due_date=date(2023, 12, 1), status=PaymentStatus.OVERDUE)

    overdue = await PaymentService(db).list_overdue(owner_caller(portfolio.owner))

    assert [p.id for p in overdue] == [late.id]


async def test_analytics_sums_are_exact(db, portfolio):
    db.add_all(
        Payment(
            lease_id=portfolio.other_lease.id,
            tenant_id=portfolio.other_tenant.id,
            amount_cents=1999,
            due_date=date(2024, 3, 1),
            status=PaymentStatus.PAID,
            method=PaymentMethod.CARD,
        )
        for _ in range(9999)
    )
    await db.commit()

    summary = await PaymentService(db).analytics(owner_caller(portfolio.other_owner), start=date(2024, 3, 1))

    paid = summary["by_status"][PaymentStatus.PAID.value]
    assert paid["count"] == 9999
    assert paid["amount_cents"] == 9999 * 1999

    summary = await PaymentService(db).analytics(owner_caller(portfolio.other_owner))
    assert summary["total_count"] == 10000
    assert summary["total_amount_cents"] == 9999 * 1999 + 150000
    assert summary["outstanding_cents"] == 150000
    assert summary["by_method"]["CARD"]["amount_cents"] == 9999 * 1999


async def test_ten_thousand_amounts_add_up_exactly(db, portfolio):
    db.add_all(
        Payment(
            lease_id=portfolio.lease.id,
            tenant_id=portfolio.tenant.id,
            amount_cents=1999,
            due_date=date(2030, 1, 1),
            status=PaymentStatus.PENDING,
        )
        for _ in range(10000)
    )
    await db.commit()

    summary = await PaymentService(db).analytics(owner_caller(portfolio.owner), start=date(2030, 1, 1))

    assert summary["total_amount_cents"] == 19_990_000
    assert format_cents(summary["total_amount_cents"]) == "$199,900.00"

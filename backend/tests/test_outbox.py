from __future__ import annotations

import re
from datetime import datetime, timedelta

from sqlalchemy import func, select, update

from leasekeeper.models.enums import JobStatus, NotificationType, PaymentStatus, UserRole
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.notification import Notification
from leasekeeper.models.payment import Receipt
from leasekeeper.services.dispatcher import OutboxDispatcher
from leasekeeper.services.feature_flags import MOBILE_PUSH_NOTIFICATIONS, PAYMENT_PROCESSING
from leasekeeper.services.jobs import ISSUE_RECEIPT, JobsService
from leasekeeper.services.payments import PaymentService
from leasekeeper.services.receipts import ReceiptService

from tests.factories import make_user, tenant_caller
from tests.fakes import FailingChannel, RecordingChannel


async def _job(db, job_id) -> JobsOutbox:
    return await db.get(JobsOutbox, job_id, populate_existing=True)


async def _make_due_again(db, job_id) -> None:
    await db.execute(
        update(JobsOutbox)
        .where(JobsOutbox.id == job_id)
        .values(run_after=datetime.utcnow() - timedelta(seconds=1))
    )
    await db.commit()


async def test_enqueue_deduplicates_by_scope(db):
    jobs = JobsService(db)

    first = await jobs.enqueue("send_notification", {"title": "a"}, unique_scope="welcome:user:1")
    second = await jobs.enqueue("send_notification", {"title": "b"}, unique_scope="welcome:user:1")
    await db.commit()

    assert first is not None
    assert second is None
    assert await db.scalar(select(func.count(JobsOutbox.id))) == 1


async def test_enqueue_notification_without_recipients(db):
    assert await JobsService(db).enqueue_notification([], "Nobody", "home") is None


async def test_settlement_issues_receipt_and_notifies(db, session_factory, storage, storage_provider, portfolio):
    await PaymentService(db).settle_online(tenant_caller(portfolio.tenant), portfolio.payment.id)
    channel = RecordingChannel()
    dispatcher = OutboxDispatcher(session_factory, channels=[channel], storage=storage)

    assert await dispatcher.run_once() == 2
    assert await dispatcher.run_once() == 0

    receipt = await db.scalar(select(Receipt).where(Receipt.payment_id == portfolio.payment.id))
    assert re.fullmatch(r"RCP-\d{8}-[0-9A-F]{8}", receipt.receipt_number)
    assert receipt.amount_cents == 150000
    assert receipt.object_path == (
        f"owners/{portfolio.owner.id}/receipts/{portfolio.payment.id}/{receipt.receipt_number}.pdf"
    )
    content, content_type = storage_provider.objects[receipt.object_path]
    assert content.startswith(b"%PDF")
    assert content_type == "application/pdf"
    assert receipt.url.startswith("https://storage.test/")

    recipients = {message.user_id for message in channel.sent}
    assert recipients == {portfolio.tenant.user_id, portfolio.owner.user_id}
    assert all(message.type == NotificationType.PAYMENT.value for message in channel.sent)
    inbox = await db.scalar(
        select(func.count(Notification.id)).where(Notification.user_id == portfolio.tenant.user_id)
    )
    assert inbox == 1


async def test_receipt_issue_is_idempotent(db, storage, storage_provider, portfolio, paid_payment):
    service = ReceiptService(db, storage)

    first = await service.issue(paid_payment.id)
    second = await service.issue(paid_payment.id)

    assert first.id == second.id
    assert len(storage_provider.objects) == 1


async def test_no_receipt_for_unsettled_payment(db, storage, storage_provider, portfolio):
    assert await ReceiptService(db, storage).issue(portfolio.payment.id) is None
    assert storage_provider.objects == {}


async def test_failed_job_backs_off_then_dead_letters(db, session_factory, paid_payment):
    job_id = await JobsService(db).enqueue_issue_receipt(paid_payment.id)
    await db.commit()
    # No storage configured: every attempt fails
    dispatcher = OutboxDispatcher(session_factory, storage=None)

    await dispatcher.run_once()
    job = await _job(db, job_id)
    assert job.status == JobStatus.PENDING
    assert job.attempts == 1
    assert "No storage configured" in job.last_error
    delay = (job.run_after - datetime.utcnow()).total_seconds()
    assert 20 < delay <= 30

    # Not due yet
    assert await dispatcher.run_once() == 0

    await _make_due_again(db, job_id)
    await dispatcher.run_once()
    job = await _job(db, job_id)
    assert job.status == JobStatus.PENDING
    assert job.attempts == 2
    assert 50 < (job.run_after - datetime.utcnow()).total_seconds() <= 60

    await _make_due_again(db, job_id)
    await dispatcher.run_once()
    job = await _job(db, job_id)
    assert job.status == JobStatus.DEAD_LETTER
    assert job.attempts == 3


async def test_unknown_job_type_is_dead_lettered(db, session_factory):
    job_id = await JobsService(db).enqueue("fax_landlord", {}, unique_scope="fax:1")
    await db.commit()

    assert await OutboxDispatcher(session_factory).run_once() == 1

    job = await _job(db, job_id)
    assert job.status == JobStatus.DEAD_LETTER
    assert job.attempts == 1


async def test_failing_channel_does_not_fail_the_job(db, session_factory, portfolio):
    job_id = await JobsService(db).enqueue_notification(
        [portfolio.tenant.user_id], "Water shut-off", "Tuesday 9am to noon."
    )
    await db.commit()
    recording = RecordingChannel()

    await OutboxDispatcher(session_factory, channels=[FailingChannel(), recording]).run_once()

    assert (await _job(db, job_id)).status == JobStatus.COMPLETED
    assert [message.title for message in recording.sent] == ["Water shut-off"]


async def test_flag_gated_channel_is_skipped(db, session_factory, flag_cache, portfolio):
    await JobsService(db).enqueue_notification([portfolio.tenant.user_id], "Hello", "World")
    await db.commit()
    push = RecordingChannel(feature_flag=MOBILE_PUSH_NOTIFICATIONS)
    gated_on = RecordingChannel(feature_flag=PAYMENT_PROCESSING)

    await OutboxDispatcher(session_factory, channels=[push, gated_on], flag_cache=flag_cache).run_once()

    assert push.sent == []
    assert len(gated_on.sent) == 1


async def test_inactive_users_are_skipped(db, session_factory):
    dormant = await make_user(db, UserRole.TENANT, "Dora", is_active=False)
    await JobsService(db).enqueue_notification([dormant.id], "Hello", "World")
    await db.commit()
    channel = RecordingChannel()

    await OutboxDispatcher(session_factory, channels=[channel]).run_once()

    assert channel.sent == []
    assert await db.scalar(select(func.count(Notification.id))) == 0


async def test_receipt_job_uses_payment_status_at_run_time(db, session_factory, storage, portfolio):
    job_id = await JobsService(db).enqueue(
        ISSUE_RECEIPT, {"payment_id": str(portfolio.payment.id)}, unique_scope="issue_receipt:manual"
    )
    await db.commit()

    await OutboxDispatcher(session_factory, storage=storage).run_once()

    assert (await _job(db, job_id)).status == JobStatus.COMPLETED
    assert portfolio.payment.status == PaymentStatus.PENDING
    assert await db.scalar(select(func.count(Receipt.id))) == 0

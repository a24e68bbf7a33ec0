"""Scheduled sweeps.

Each sweep takes a session and an explicit ``now`` and is idempotent on the
same data: overdue marking only touches PENDING rows, reminders and notices
are de-duplicated by their outbox scope, and monthly snapshots are unique per
owner and period. Sweeps run across the whole store, never caller-scoped.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.config import get_settings
from leasekeeper.core.money import format_cents
from leasekeeper.models.analytics import AnalyticsSnapshot
from leasekeeper.models.enums import AnalyticsPeriod, NotificationType, PaymentStatus
from leasekeeper.models.lease import Lease
from leasekeeper.models.notification import Notification
from leasekeeper.models.payment import Payment
from leasekeeper.models.property import Property
from leasekeeper.models.user import LoginAttempt, Owner, Tenant
from leasekeeper.services.jobs import JobsService
from leasekeeper.services.reports import occupancy_bps, owner_occupancy

logger = logging.getLogger(__name__)

settings = get_settings()


def overdue_notice_scope(payment_id) -> str:
    return f"overdue_notice:payment:{payment_id}"


def due_reminder_scope(payment_id, on: date) -> str:
    return f"due_reminder:payment:{payment_id}:{on.isoformat()}"


def previous_month(now: datetime) -> tuple[date, date]:
    """[first day of last month, first day of this month)."""
    this_month = now.date().replace(day=1)
    last_month = (this_month - timedelta(days=1)).replace(day=1)
    return last_month, this_month


def _payment_rows(status: PaymentStatus):
    return (
        select(Payment.id, Payment.amount_cents, Payment.due_date, Tenant.user_id, Property.name)
        .join(Tenant, Payment.tenant_id == Tenant.id)
        .join(Lease, Payment.lease_id == Lease.id)
        .join(Property, Lease.property_id == Property.id)
        .where(Payment.status == status)
    )


async def mark_overdue(db: AsyncSession, now: datetime) -> dict[str, int]:
    """PENDING payments due before today become OVERDUE; tenants get one notice each."""
    today = now.date()
    logger.info(f"[SWEEP] Overdue detection started for {today}")

    rows = (await db.execute(_payment_rows(PaymentStatus.PENDING).where(Payment.due_date < today))).all()
    if not rows:
        logger.info("[SWEEP] Overdue detection finished: 0 payments marked overdue")
        return {"marked_overdue": 0, "notices_enqueued": 0}

    result = await db.execute(
        update(Payment)
        .where(Payment.id.in_([row.id for row in rows]), Payment.status == PaymentStatus.PENDING)
        .values(status=PaymentStatus.OVERDUE, updated_at=now)
    )
    marked = result.rowcount or 0

    jobs = JobsService(db)
    enqueued = 0
    # A failed notice rolls back to its savepoint; the status changes above still commit
    for row in rows:
        try:
            async with db.begin_nested():
                job_id = await jobs.enqueue_notification(
                    [row.user_id],
                    title="Payment overdue",
                    message=(
                        f"Your payment of {format_cents(row.amount_cents, settings.currency)} for "
                        f"{row.name} was due on {row.due_date} and is now overdue."
                    ),
                    notification_type=NotificationType.PAYMENT_OVERDUE,
                    data={"payment_id": str(row.id)},
                    unique_scope=overdue_notice_scope(row.id),
                )
            enqueued += 1 if job_id else 0
        except Exception:
            logger.exception(f"[SWEEP] Could not enqueue overdue notice for payment {row.id}")

    await db.commit()
    logger.info(f"[SWEEP] Overdue detection finished: {marked} payments marked overdue, {enqueued} notices queued")
    return {"marked_overdue": marked, "notices_enqueued": enqueued}


async def send_due_reminders(
    db: AsyncSession,
    now: datetime,
    horizon_days: Optional[int] = None,
) -> dict[str, int]:
    """Remind tenants of PENDING payments due within the horizon. No state change."""
    horizon = settings.reminder_horizon_days if horizon_days is None else horizon_days
    today = now.date()
    logger.info(f"[SWEEP] Due reminders started for {today} (+{horizon} days)")

    rows = (
        await db.execute(
            _payment_rows(PaymentStatus.PENDING).where(
                Payment.due_date >= today,
                Payment.due_date <= today + timedelta(days=horizon),
            )
        )
    ).all()

    jobs = JobsService(db)
    enqueued = 0
    for row in rows:
        days = (row.due_date - today).days
        when = "today" if days == 0 else f"in {days} day{'s' if days != 1 else ''}"
        try:
            async with db.begin_nested():
                job_id = await jobs.enqueue_notification(
                    [row.user_id],
                    title="Payment reminder",
                    message=(
                        f"Your payment of {format_cents(row.amount_cents, settings.currency)} for "
                        f"{row.name} is due {when} ({row.due_date})."
                    ),
                    notification_type=NotificationType.PAYMENT_REMINDER,
                    data={"payment_id": str(row.id)},
                    unique_scope=due_reminder_scope(row.id, today),
                )
            enqueued += 1 if job_id else 0
        except Exception:
            logger.exception(f"[SWEEP] Could not enqueue reminder for payment {row.id}")

    await db.commit()
    logger.info(f"[SWEEP] Due reminders finished: {len(rows)} payments due, {enqueued} reminders queued")
    return {"payments_due": len(rows), "reminders_enqueued": enqueued}


async def _snapshot_owner(db: AsyncSession, owner_id, start: date, end: date) -> bool:
    exists = await db.scalar(
        select(AnalyticsSnapshot.id).where(
            AnalyticsSnapshot.owner_id == owner_id,
            AnalyticsSnapshot.period == AnalyticsPeriod.MONTHLY,
            AnalyticsSnapshot.period_start == start,
        )
    )
    if exists is not None:
        return False

    window_start = datetime.combine(start, datetime.min.time())
    window_end = datetime.combine(end, datetime.min.time())
    revenue, count = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount_cents), 0), func.count(Payment.id))
            .join(Lease, Payment.lease_id == Lease.id)
            .join(Property, Lease.property_id == Property.id)
            .where(
                Property.owner_id == owner_id,
                Payment.status == PaymentStatus.PAID,
                Payment.paid_date >= window_start,
                Payment.paid_date < window_end,
            )
        )
    ).one()

    properties = await owner_occupancy(db, owner_id, None)
    occupied = sum(1 for row in properties if row["occupied"])

    db.add(AnalyticsSnapshot(
        owner_id=owner_id,
        period=AnalyticsPeriod.MONTHLY,
        period_start=start,
        period_end=end,
        revenue_cents=int(revenue),
        payments_count=int(count),
        total_properties=len(properties),
        occupied_properties=occupied,
        occupancy_bps=occupancy_bps(occupied, len(properties)),
        data={"properties": properties},
    ))
    await db.commit()
    return True


async def monthly_report(db: AsyncSession, now: datetime) -> dict[str, Any]:
    """Persist last month's revenue and occupancy per owner.

    One owner's failure is logged and rolled back; the rest still run.
    """
    start, end = previous_month(now)
    logger.info(f"[SWEEP] Monthly report started for {start} - {end}")

    owner_ids = list((await db.execute(select(Owner.id))).scalars().all())
    created, skipped, failed = 0, 0, []
    for owner_id in owner_ids:
        try:
            if await _snapshot_owner(db, owner_id, start, end):
                created += 1
            else:
                skipped += 1
        except IntegrityError:
            await db.rollback()
            skipped += 1
        except Exception:
            await db.rollback()
            failed.append(str(owner_id))
            logger.exception(f"[SWEEP] Monthly report failed for owner {owner_id}")

    logger.info(
        f"[SWEEP] Monthly report finished: {created} snapshots written, "
        f"{skipped} already present, {len(failed)} failed"
    )
    return {"snapshots_created": created, "skipped": skipped, "failed_owners": failed}


async def cleanup(db: AsyncSession, now: datetime) -> dict[str, int]:
    """Delete old login attempts and old read notifications."""
    logger.info("[SWEEP] Retention cleanup started")
    attempts_cutoff = now - timedelta(days=settings.login_attempt_retention_days)
    notifications_cutoff = now - timedelta(days=settings.notification_retention_days)

    attempts = await db.execute(delete(LoginAttempt).where(LoginAttempt.created_at < attempts_cutoff))
    notifications = await db.execute(
        delete(Notification).where(
            Notification.is_read.is_(True),
            Notification.created_at < notifications_cutoff,
        )
    )
    await db.commit()

    summary = {
        "login_attempts_deleted": attempts.rowcount or 0,
        "notifications_deleted": notifications.rowcount or 0,
    }
    logger.info(
        f"[SWEEP] Retention cleanup finished: {summary['login_attempts_deleted']} login attempts, "
        f"{summary['notifications_deleted']} notifications deleted"
    )
    return summary

"""Jobs outbox service for async side effects.

Side effects (notifications, receipts) are written to jobs_outbox inside the
transaction of the mutation that causes them. They run only after that
transaction commits, so a slow or failing channel can never roll back or
delay the primary change.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.models.enums import JobStatus, NotificationType
from leasekeeper.models.jobs import JobsOutbox

SEND_NOTIFICATION = "send_notification"
ISSUE_RECEIPT = "issue_receipt"

# Retry n waits RETRY_BACKOFF_SECONDS * 2 ** (n - 1)
RETRY_BACKOFF_SECONDS = 30


class JobsService:
    """Service for managing async jobs via outbox pattern."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        unique_scope: str,
        run_after: Optional[datetime] = None,
        max_attempts: int = 3,
    ) -> Optional[uuid.UUID]:
        """Enqueue a job with unique_scope de-duplication.

        Returns:
            Job ID if created, None if a job with the same scope exists
        """
        job_id = uuid.uuid4()
        values = dict(
            id=job_id,
            type=job_type,
            payload=payload,
            status=JobStatus.PENDING,
            unique_scope=unique_scope,
            attempts=0,
            max_attempts=max_attempts,
            run_after=run_after or datetime.utcnow(),
            created_at=datetime.utcnow(),
        )

        if self.db.get_bind().dialect.name == "postgresql":
            stmt = insert(JobsOutbox).values(**values).on_conflict_do_nothing(
                index_elements=["unique_scope"]
            )
            result = await self.db.execute(stmt)
            # rowcount will be 0 if conflict occurred
            return job_id if result.rowcount else None

        existing = await self.db.scalar(
            select(JobsOutbox.id).where(JobsOutbox.unique_scope == unique_scope)
        )
        if existing is not None:
            return None
        self.db.add(JobsOutbox(**values))
        await self.db.flush()
        return job_id

    async def enqueue_notification(
        self,
        user_ids: Iterable[uuid.UUID],
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.SYSTEM,
        data: Optional[dict[str, Any]] = None,
        email: bool = True,
        unique_scope: Optional[str] = None,
    ) -> Optional[uuid.UUID]:
        """Enqueue a multi-channel notification to one or more users."""
        recipients = [str(uid) for uid in dict.fromkeys(user_ids)]
        if not recipients:
            return None
        return await self.enqueue(
            job_type=SEND_NOTIFICATION,
            payload={
                "user_ids": recipients,
                "title": title,
                "message": message,
                "type": notification_type.value,
                "data": data or {},
                "email": email,
            },
            unique_scope=unique_scope or f"{SEND_NOTIFICATION}:{uuid.uuid4()}",
        )

    async def enqueue_issue_receipt(self, payment_id: uuid.UUID) -> Optional[uuid.UUID]:
        """Enqueue receipt PDF generation for a settled payment."""
        return await self.enqueue(
            job_type=ISSUE_RECEIPT,
            payload={"payment_id": str(payment_id)},
            unique_scope=f"{ISSUE_RECEIPT}:payment:{payment_id}",
        )

    async def claim_pending_jobs(
        self,
        job_type: Optional[str] = None,
        limit: int = 10,
    ) -> list[JobsOutbox]:
        """Claim pending jobs for processing.

        Only jobs whose status is still PENDING at update time are returned,
        so two dispatchers never claim the same job.
        """
        query = (
            select(JobsOutbox.id)
            .where(
                JobsOutbox.status == JobStatus.PENDING,
                JobsOutbox.run_after <= datetime.utcnow(),
            )
        )

        if job_type:
            query = query.where(JobsOutbox.type == job_type)

        query = query.order_by(JobsOutbox.run_after).limit(limit)

        result = await self.db.execute(query)
        candidate_ids = list(result.scalars().all())

        if not candidate_ids:
            return []

        claimed: list[JobsOutbox] = []
        for job_id in candidate_ids:
            outcome = await self.db.execute(
                update(JobsOutbox)
                .where(JobsOutbox.id == job_id, JobsOutbox.status == JobStatus.PENDING)
                .values(
                    status=JobStatus.PROCESSING,
                    started_at=datetime.utcnow(),
                    attempts=JobsOutbox.attempts + 1,
                )
            )
            if outcome.rowcount:
                job = await self.db.get(JobsOutbox, job_id, populate_existing=True)
                if job is not None:
                    claimed.append(job)

        return claimed

    async def complete_job(self, job_id: uuid.UUID) -> None:
        """Mark job as completed."""
        await self.db.execute(
            update(JobsOutbox)
            .where(JobsOutbox.id == job_id)
            .values(
                status=JobStatus.COMPLETED,
                completed_at=datetime.utcnow(),
            )
        )

    async def fail_job(
        self,
        job_id: uuid.UUID,
        error: str,
        dead_letter: bool = False,
    ) -> JobStatus:
        """Mark job as failed.

        If dead_letter=True or max attempts reached, moves to DEAD_LETTER.
        Otherwise, resets to PENDING for retry after an exponential backoff.
        """
        job = await self.db.get(JobsOutbox, job_id, populate_existing=True)

        if not job:
            return JobStatus.FAILED

        values: dict[str, Any] = {"last_error": error[:2000]}
        if dead_letter or job.attempts >= job.max_attempts:
            new_status = JobStatus.DEAD_LETTER
        else:
            new_status = JobStatus.PENDING
            delay = RETRY_BACKOFF_SECONDS * 2 ** max(job.attempts - 1, 0)
            values["run_after"] = datetime.utcnow() + timedelta(seconds=delay)

        await self.db.execute(
            update(JobsOutbox)
            .where(JobsOutbox.id == job_id)
            .values(status=new_status, **values)
        )
        return new_status

"""Outbox dispatcher.

Polls jobs_outbox after the fact and runs each job's side effect. A failed job
is retried until it reaches max_attempts and then parked in DEAD_LETTER. The
mutation that queued it has long since committed and is never touched.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leasekeeper.core.database import AsyncSessionLocal
from leasekeeper.models.enums import NotificationType
from leasekeeper.services.channels import NotificationChannel
from leasekeeper.services.feature_flags import FeatureFlagCache, FeatureFlagService
from leasekeeper.services.jobs import ISSUE_RECEIPT, SEND_NOTIFICATION, JobsService
from leasekeeper.services.notifications import NotificationService
from leasekeeper.services.receipts import ReceiptService
from leasekeeper.services.storage import StorageService

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, dict[str, Any]], Awaitable[None]]


class OutboxDispatcher:
    """Claims pending jobs in batches and runs their handlers."""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        channels: Sequence[NotificationChannel] = (),
        storage: Optional[StorageService] = None,
        flag_cache: Optional[FeatureFlagCache] = None,
        poll_seconds: float = 5.0,
        batch_size: int = 20,
    ):
        self.session_factory = session_factory
        self.channels = list(channels)
        self.storage = storage
        self.flag_cache = flag_cache or FeatureFlagCache()
        self.poll_seconds = poll_seconds
        self.batch_size = batch_size
        self.handlers: dict[str, Handler] = {
            SEND_NOTIFICATION: self._send_notification,
            ISSUE_RECEIPT: self._issue_receipt,
        }
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _send_notification(self, db: AsyncSession, payload: dict[str, Any]) -> None:
        service = NotificationService(
            db,
            channels=self.channels,
            flags=FeatureFlagService(db, self.flag_cache),
        )
        await service.deliver(
            user_ids=[UUID(uid) for uid in payload.get("user_ids", [])],
            title=payload["title"],
            message=payload["message"],
            notification_type=NotificationType(payload.get("type", NotificationType.SYSTEM.value)),
            data=payload.get("data") or {},
            send_email=payload.get("email", True),
        )

    async def _issue_receipt(self, db: AsyncSession, payload: dict[str, Any]) -> None:
        if self.storage is None:
            raise RuntimeError("No storage configured for receipts")
        await ReceiptService(db, self.storage).issue(UUID(payload["payment_id"]))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _run_job(self, db: AsyncSession, job_id: UUID, job_type: str, payload: dict[str, Any]) -> bool:
        jobs = JobsService(db)
        handler = self.handlers.get(job_type)
        if handler is None:
            await jobs.fail_job(job_id, f"Unknown job type: {job_type}", dead_letter=True)
            await db.commit()
            logger.error(f"[OUTBOX] Job {job_id} has unknown type {job_type}; dead-lettered")
            return False

        try:
            await handler(db, payload)
        except Exception as e:
            await db.rollback()
            status = await jobs.fail_job(job_id, f"{type(e).__name__}: {e}")
            await db.commit()
            logger.exception(f"[OUTBOX] Job {job_id} ({job_type}) failed; now {status.value}")
            return False

        await jobs.complete_job(job_id)
        await db.commit()
        return True

    async def run_once(self) -> int:
        """Claim and run one batch. Returns the number of jobs claimed."""
        async with self.session_factory() as db:
            jobs = await JobsService(db).claim_pending_jobs(limit=self.batch_size)
            # Plain values: a failed handler rolls back and expires every ORM instance
            claimed = [(job.id, job.type, dict(job.payload or {})) for job in jobs]
            await db.commit()
            if not claimed:
                return 0

            succeeded = 0
            for job_id, job_type, payload in claimed:
                if await self._run_job(db, job_id, job_type, payload):
                    succeeded += 1

        logger.info(f"[OUTBOX] Processed {len(claimed)} job(s), {succeeded} succeeded")
        return len(claimed)

    async def _loop(self) -> None:
        while True:
            try:
                processed = await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[OUTBOX] Dispatch cycle failed")
                processed = 0
            if not processed:
                await asyncio.sleep(self.poll_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
            logger.info("[OUTBOX] Dispatcher started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("[OUTBOX] Dispatcher stopped")

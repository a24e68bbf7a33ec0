"""In-process cron for the four sweeps (APScheduler, UTC)."""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leasekeeper.core.database import AsyncSessionLocal
from leasekeeper.services import sweeps

logger = logging.getLogger(__name__)

Sweep = Callable[[AsyncSession, datetime], Awaitable[Any]]

# name -> (sweep, cron fields)
SCHEDULE: dict[str, tuple[Sweep, dict[str, Any]]] = {
    "overdue-detection-daily": (sweeps.mark_overdue, {"hour": 9, "minute": 0}),
    "due-reminders-daily": (sweeps.send_due_reminders, {"hour": 8, "minute": 0}),
    "monthly-report": (sweeps.monthly_report, {"day": 1, "hour": 10, "minute": 0}),
    "retention-cleanup-weekly": (sweeps.cleanup, {"day_of_week": "sun", "hour": 23, "minute": 0}),
}


class SweepScheduler:
    """Runs each sweep on its cron in a fresh session.

    A sweep that raises is logged and dropped; the next fire still happens.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    def start(self) -> None:
        for name, (_, fields) in SCHEDULE.items():
            self.scheduler.add_job(
                func=self.run_sweep,
                args=[name],
                trigger=CronTrigger(timezone="UTC", **fields),
                id=name,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        self.scheduler.start()
        logger.info(f"[SWEEP] Scheduler started with {len(SCHEDULE)} jobs")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("[SWEEP] Scheduler stopped")

    async def run_sweep(self, name: str) -> Optional[Any]:
        sweep, _ = SCHEDULE[name]
        try:
            async with self.session_factory() as db:
                return await sweep(db, self.clock())
        except Exception:
            logger.exception(f"[SWEEP] {name} failed")
            return None

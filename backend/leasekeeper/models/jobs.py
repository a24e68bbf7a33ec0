"""Outbox rows for receipt issuance and notification fan-out."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from leasekeeper.core.database import Base, JSONVariant
from leasekeeper.models.enums import JobStatus


class JobsOutbox(Base):
    """A side effect owed by a committed mutation.

    Inserted in the same transaction as the payment, lease or complaint change
    that causes it, so a rolled-back change never leaves a job behind.
    ``unique_scope`` names the effect (``issue_receipt:payment:<id>``,
    ``overdue_notice:payment:<id>``) and the unique index makes re-queuing it
    a no-op.
    """

    __tablename__ = "jobs_outbox"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # send_notification | issue_receipt
    type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    unique_scope: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)

    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus), default=JobStatus.PENDING, nullable=False, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Not claimable before this instant (retry backoff)
    run_after: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_jobs_outbox_pending", "status", "run_after"),)

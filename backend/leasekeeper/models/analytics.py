"""Monthly analytics snapshot model."""

import uuid
from datetime import datetime, date
from typing import Any, Optional

from sqlalchemy import DateTime, Date, ForeignKey, Enum as SQLEnum, Integer, BigInteger, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from leasekeeper.core.database import Base, JSONVariant
from leasekeeper.models.enums import AnalyticsPeriod


class AnalyticsSnapshot(Base):
    """Immutable per-owner aggregate written by the monthly report sweep."""

    __tablename__ = "analytics_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period: Mapped[AnalyticsPeriod] = mapped_column(
        SQLEnum(AnalyticsPeriod),
        default=AnalyticsPeriod.MONTHLY,
        nullable=False,
    )
    # [period_start, period_end)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    revenue_cents: Mapped[int] = mapped_column(BigInteger, default=0)
    payments_count: Mapped[int] = mapped_column(Integer, default=0)
    total_properties: Mapped[int] = mapped_column(Integer, default=0)
    occupied_properties: Mapped[int] = mapped_column(Integer, default=0)
    # Occupancy in basis points (0-10000)
    occupancy_bps: Mapped[int] = mapped_column(Integer, default=0)

    # Per-property breakdown
    data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONVariant, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("owner_id", "period", "period_start", name="uq_analytics_owner_period"),
    )

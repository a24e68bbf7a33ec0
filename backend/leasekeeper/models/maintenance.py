"""MaintenanceRequest model."""

import uuid
from datetime import datetime, date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, Date, ForeignKey, Enum as SQLEnum, Text, BigInteger, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leasekeeper.core.database import Base
from leasekeeper.models.enums import MaintenanceStatus, MaintenanceCategory, Priority

if TYPE_CHECKING:
    from leasekeeper.models.property import Property


class MaintenanceRequest(Base):
    """A maintenance request for a property."""

    __tablename__ = "maintenance_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Request details
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[MaintenanceCategory] = mapped_column(
        SQLEnum(MaintenanceCategory),
        default=MaintenanceCategory.OTHER,
        nullable=False,
    )
    priority: Mapped[Priority] = mapped_column(
        SQLEnum(Priority),
        default=Priority.MEDIUM,
        nullable=False,
    )
    status: Mapped[MaintenanceStatus] = mapped_column(
        SQLEnum(MaintenanceStatus),
        default=MaintenanceStatus.OPEN,
        nullable=False,
        index=True,
    )

    # Costs (cents)
    estimated_cost_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    actual_cost_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    scheduled_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    property: Mapped["Property"] = relationship("Property")

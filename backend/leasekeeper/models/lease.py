"""Lease model."""

import uuid
from datetime import datetime, date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, DateTime, Date, ForeignKey, Enum as SQLEnum, Text, BigInteger, Uuid,
    CheckConstraint, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leasekeeper.core.database import Base
from leasekeeper.models.enums import LeaseStatus

if TYPE_CHECKING:
    from leasekeeper.models.property import Property
    from leasekeeper.models.user import Tenant
    from leasekeeper.models.payment import Payment


class Lease(Base):
    """Binds one Tenant to one Property for [start_date, end_date)."""

    __tablename__ = "leases"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    status: Mapped[LeaseStatus] = mapped_column(
        SQLEnum(LeaseStatus),
        default=LeaseStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Money (ALL INTEGER CENTS - BIGINT)
    monthly_rent_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    security_deposit_cents: Mapped[int] = mapped_column(BigInteger, default=0)

    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    utilities: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Termination
    termination_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    termination_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="leases")
    tenant: Mapped["Tenant"] = relationship("Tenant")
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="lease")

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_lease_dates_ordered"),
        # A tenant holds at most one ACTIVE lease
        Index(
            "uq_leases_tenant_active",
            "tenant_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_leases_property_status", "property_id", "status"),
    )

"""Payment and Receipt models."""

import uuid
from datetime import datetime, date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String, DateTime, Date, ForeignKey, Enum as SQLEnum, Text, BigInteger, Uuid,
    CheckConstraint, Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leasekeeper.core.database import Base
from leasekeeper.models.enums import PaymentStatus, PaymentMethod

if TYPE_CHECKING:
    from leasekeeper.models.lease import Lease
    from leasekeeper.models.user import Tenant


class Payment(Base):
    """Amount due against a lease.

    Status graph: PENDING -> {PAID, OVERDUE, CANCELLED}; OVERDUE -> {PAID, CANCELLED};
    PAID -> REFUNDED. CANCELLED and REFUNDED are terminal.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    lease_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("leases.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Redundant with lease.tenant_id, kept for scoped queries
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Money (ALL INTEGER CENTS - BIGINT)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    method: Mapped[Optional[PaymentMethod]] = mapped_column(SQLEnum(PaymentMethod), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    lease: Mapped["Lease"] = relationship("Lease", back_populates="payments")
    tenant: Mapped["Tenant"] = relationship("Tenant")
    receipt: Mapped[Optional["Receipt"]] = relationship(
        "Receipt", back_populates="payment", uselist=False
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payment_amount_positive"),
        Index("ix_payments_status_due", "status", "due_date"),
    )


class Receipt(Base):
    """Immutable receipt for a settled payment (one per payment)."""

    __tablename__ = "receipts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    payment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("payments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    receipt_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Storage location of the PDF
    object_path: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)

    issued_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    payment: Mapped["Payment"] = relationship("Payment", back_populates="receipt")

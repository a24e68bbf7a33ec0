"""User account and role profile models."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Enum as SQLEnum, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leasekeeper.core.database import Base, JSONVariant
from leasekeeper.models.enums import UserRole

if TYPE_CHECKING:
    from leasekeeper.models.property import Property


class User(Base):
    """User account linked to Firebase Auth.

    Exactly one of owner_profile / manager_profile / tenant_profile is set,
    chosen by ``role`` at creation. SUPER_ADMIN has none.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    # Linked on first sign-in when provisioned by email
    firebase_uid: Mapped[Optional[str]] = mapped_column(
        String(128),
        unique=True,
        nullable=True,
        index=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Firebase Cloud Messaging device token
    fcm_token: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    owner_profile: Mapped[Optional["Owner"]] = relationship(
        "Owner", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    manager_profile: Mapped[Optional["Manager"]] = relationship(
        "Manager", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    tenant_profile: Mapped[Optional["Tenant"]] = relationship(
        "Tenant", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Owner(Base):
    """Owner profile. Created only by SUPER_ADMIN."""

    __tablename__ = "owners"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="owner_profile")
    managers: Mapped[list["Manager"]] = relationship(
        "Manager", back_populates="owner", cascade="all, delete-orphan"
    )
    properties: Mapped[list["Property"]] = relationship("Property", back_populates="owner")


class Manager(Base):
    """Manager profile. Belongs to exactly one Owner."""

    __tablename__ = "managers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("owners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Capability -> bool (e.g. {"approvePayments": true})
    permissions: Mapped[dict[str, Any]] = mapped_column(JSONVariant, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="manager_profile")
    owner: Mapped["Owner"] = relationship("Owner", back_populates="managers")


class Tenant(Base):
    """Tenant profile. Assigned to a property at creation."""

    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    property_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # True while the tenant holds an ACTIVE lease
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)

    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="tenant_profile")
    property: Mapped[Optional["Property"]] = relationship("Property", back_populates="tenants")


class LoginAttempt(Base):
    """Record of a sign-in attempt; pruned by the weekly cleanup sweep."""

    __tablename__ = "login_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

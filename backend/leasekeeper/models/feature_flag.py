"""Feature flag and override models."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Boolean, ForeignKey, Enum as SQLEnum, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leasekeeper.core.database import Base
from leasekeeper.models.enums import UserRole


class FeatureFlag(Base):
    """Global on/off switch for a feature."""

    __tablename__ = "feature_flags"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    overrides: Mapped[list["FeatureFlagOverride"]] = relationship(
        "FeatureFlagOverride", back_populates="flag", cascade="all, delete-orphan"
    )


class FeatureFlagOverride(Base):
    """Per-user or per-role override. Exactly one of user_id / role is set."""

    __tablename__ = "feature_flag_overrides"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    flag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("feature_flags.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    role: Mapped[Optional[UserRole]] = mapped_column(SQLEnum(UserRole), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    flag: Mapped["FeatureFlag"] = relationship("FeatureFlag", back_populates="overrides")

    __table_args__ = (
        UniqueConstraint("flag_id", "user_id", name="uq_flag_override_user"),
        UniqueConstraint("flag_id", "role", name="uq_flag_override_role"),
    )

"""Feature flags with per-user and per-role overrides.

Evaluation order: user override, then role override, then the global value.
Unknown flags are off. The flag tables are read through ``FeatureFlagCache``,
an explicit TTL cache owned by the application (``app.state``), never a
module global, and invalidated on every write.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.errors import NotFound, ValidationFailed
from leasekeeper.models.enums import UserRole
from leasekeeper.models.feature_flag import FeatureFlag, FeatureFlagOverride

logger = logging.getLogger(__name__)

PAYMENT_PROCESSING = "PAYMENT_PROCESSING"
REAL_TIME_NOTIFICATIONS = "REAL_TIME_NOTIFICATIONS"
ANALYTICS_DASHBOARD = "ANALYTICS_DASHBOARD"
MOBILE_PUSH_NOTIFICATIONS = "MOBILE_PUSH_NOTIFICATIONS"

DEFAULT_FLAGS: dict[str, tuple[bool, str]] = {
    PAYMENT_PROCESSING: (True, "Online rent settlement by tenants"),
    REAL_TIME_NOTIFICATIONS: (True, "Socket push of in-app notifications"),
    ANALYTICS_DASHBOARD: (True, "Analytics, reports and exports"),
    MOBILE_PUSH_NOTIFICATIONS: (False, "Firebase Cloud Messaging push"),
    "ADVANCED_REPORTING": (False, "Extended report types"),
    "MAINTENANCE_SCHEDULING": (False, "Scheduled maintenance windows"),
    "AUTOMATED_RENT_COLLECTION": (False, "Automatic rent charge generation"),
    "TENANT_PORTAL": (True, "Tenant self-service portal"),
    "DOCUMENT_MANAGEMENT": (False, "Lease document storage"),
    "VIRTUAL_TOURS": (False, "Virtual property tours"),
}


@dataclass
class FlagSnapshot:
    """Everything needed to evaluate any flag without touching the database."""

    flags: dict[str, bool] = field(default_factory=dict)
    user_overrides: dict[tuple[str, UUID], bool] = field(default_factory=dict)
    role_overrides: dict[tuple[str, UserRole], bool] = field(default_factory=dict)

    def evaluate(self, name: str, user_id: Optional[UUID] = None, role: Optional[UserRole] = None) -> bool:
        if name not in self.flags:
            return False
        if user_id is not None and (name, user_id) in self.user_overrides:
            return self.user_overrides[(name, user_id)]
        if role is not None and (name, role) in self.role_overrides:
            return self.role_overrides[(name, role)]
        return self.flags[name]


def default_snapshot() -> FlagSnapshot:
    return FlagSnapshot(flags={name: enabled for name, (enabled, _) in DEFAULT_FLAGS.items()})


class FeatureFlagCache:
    """Holds one FlagSnapshot for ``ttl_seconds`` measured on ``clock``."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: Optional[FlagSnapshot] = None
        self._loaded_at: Optional[float] = None

    def get(self) -> Optional[FlagSnapshot]:
        if self._snapshot is None or self._loaded_at is None:
            return None
        if self.clock() - self._loaded_at >= self.ttl_seconds:
            return None
        return self._snapshot

    def stale(self) -> Optional[FlagSnapshot]:
        """Last snapshot regardless of age."""
        return self._snapshot

    def put(self, snapshot: FlagSnapshot) -> None:
        self._snapshot = snapshot
        self._loaded_at = self.clock()

    def invalidate(self) -> None:
        self._loaded_at = None


class FeatureFlagService:
    """Reads and writes flags; reads go through the cache."""

    def __init__(self, db: AsyncSession, cache: FeatureFlagCache):
        self.db = db
        self.cache = cache

    async def _load_snapshot(self) -> FlagSnapshot:
        snapshot = default_snapshot()

        result = await self.db.execute(select(FeatureFlag))
        for flag in result.scalars().all():
            snapshot.flags[flag.name] = bool(flag.enabled)

        result = await self.db.execute(
            select(FeatureFlagOverride, FeatureFlag.name).join(
                FeatureFlag, FeatureFlagOverride.flag_id == FeatureFlag.id
            )
        )
        for override, name in result.all():
            if override.user_id is not None:
                snapshot.user_overrides[(name, override.user_id)] = bool(override.enabled)
            elif override.role is not None:
                snapshot.role_overrides[(name, override.role)] = bool(override.enabled)

        return snapshot

    async def snapshot(self) -> FlagSnapshot:
        cached = self.cache.get()
        if cached is not None:
            return cached
        try:
            snapshot = await self._load_snapshot()
        except SQLAlchemyError:
            logger.exception("[FLAGS] Failed to load feature flags; using last known values")
            return self.cache.stale() or default_snapshot()
        self.cache.put(snapshot)
        return snapshot

    async def is_enabled(
        self,
        name: str,
        user_id: Optional[UUID] = None,
        role: Optional[UserRole] = None,
    ) -> bool:
        snapshot = await self.snapshot()
        if name not in snapshot.flags:
            logger.warning(f"[FLAGS] Unknown feature flag '{name}', defaulting to off")
        return snapshot.evaluate(name, user_id, role)

    async def all_flags(self) -> dict[str, bool]:
        return dict((await self.snapshot()).flags)

    async def seed_defaults(self) -> int:
        """Insert default flags that do not exist yet. Returns the number created."""
        result = await self.db.execute(select(FeatureFlag.name))
        existing = set(result.scalars().all())
        created = 0
        for name, (enabled, description) in DEFAULT_FLAGS.items():
            if name not in existing:
                self.db.add(FeatureFlag(name=name, enabled=enabled, description=description))
                created += 1
        if created:
            await self.db.commit()
            self.cache.invalidate()
        return created

    async def _get_flag(self, name: str) -> FeatureFlag:
        flag = await self.db.scalar(select(FeatureFlag).where(FeatureFlag.name == name))
        if flag is None:
            raise NotFound(f"Feature flag '{name}' not found")
        return flag

    async def set_flag(self, name: str, enabled: bool, description: Optional[str] = None) -> FeatureFlag:
        """Create or update a global flag."""
        flag = await self.db.scalar(select(FeatureFlag).where(FeatureFlag.name == name))
        if flag is None:
            flag = FeatureFlag(name=name, enabled=enabled, description=description)
            self.db.add(flag)
        else:
            flag.enabled = enabled
            if description is not None:
                flag.description = description
        await self.db.commit()
        self.cache.invalidate()
        logger.info(f"[FLAGS] '{name}' set to {enabled}")
        return flag

    async def set_override(
        self,
        name: str,
        enabled: bool,
        user_id: Optional[UUID] = None,
        role: Optional[UserRole] = None,
    ) -> FeatureFlagOverride:
        """Create or update a user or role override (exactly one target)."""
        if (user_id is None) == (role is None):
            raise ValidationFailed("Provide exactly one of user_id or role")

        flag = await self._get_flag(name)
        query = select(FeatureFlagOverride).where(FeatureFlagOverride.flag_id == flag.id)
        if user_id is not None:
            query = query.where(FeatureFlagOverride.user_id == user_id)
        else:
            query = query.where(FeatureFlagOverride.role == role)

        override = await self.db.scalar(query)
        if override is None:
            override = FeatureFlagOverride(flag_id=flag.id, user_id=user_id, role=role, enabled=enabled)
            self.db.add(override)
        else:
            override.enabled = enabled
        await self.db.commit()
        self.cache.invalidate()
        target = f"user {user_id}" if user_id else f"role {role.value}"
        logger.info(f"[FLAGS] Override '{name}' set to {enabled} for {target}")
        return override

    async def clear_overrides(self, name: str) -> int:
        flag = await self._get_flag(name)
        result = await self.db.execute(
            delete(FeatureFlagOverride).where(FeatureFlagOverride.flag_id == flag.id)
        )
        await self.db.commit()
        self.cache.invalidate()
        return result.rowcount or 0

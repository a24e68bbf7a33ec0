from __future__ import annotations

import uuid

import pytest
from sqlalchemy import update

from leasekeeper.core.errors import NotFound, ValidationFailed
from leasekeeper.models.enums import UserRole
from leasekeeper.models.feature_flag import FeatureFlag
from leasekeeper.services.feature_flags import (
    ANALYTICS_DASHBOARD,
    DEFAULT_FLAGS,
    MOBILE_PUSH_NOTIFICATIONS,
    PAYMENT_PROCESSING,
    FeatureFlagCache,
    FeatureFlagService,
    FlagSnapshot,
)

from tests.factories import make_user
from tests.fakes import FakeClock


@pytest.fixture
def clock():
    return FakeClock(1000.0)


@pytest.fixture
def flags(db, clock):
    return FeatureFlagService(db, FeatureFlagCache(ttl_seconds=300, clock=clock))


def test_user_override_beats_role_override_beats_global():
    alice, bob = uuid.uuid4(), uuid.uuid4()
    snapshot = FlagSnapshot(
        flags={"BETA": False},
        user_overrides={("BETA", alice): False},
        role_overrides={("BETA", UserRole.MANAGER): True},
    )

    assert snapshot.evaluate("BETA", alice, UserRole.MANAGER) is False
    assert snapshot.evaluate("BETA", bob, UserRole.MANAGER) is True
    assert snapshot.evaluate("BETA", bob, UserRole.TENANT) is False
    assert snapshot.evaluate("NO_SUCH_FLAG", alice, UserRole.SUPER_ADMIN) is False


async def test_defaults_apply_before_seeding(flags):
    assert await flags.is_enabled(PAYMENT_PROCESSING) is True
    assert await flags.is_enabled(MOBILE_PUSH_NOTIFICATIONS) is False
    assert await flags.is_enabled("NOT_A_FLAG") is False


async def test_seed_defaults_is_idempotent(flags):
    assert await flags.seed_defaults() == len(DEFAULT_FLAGS)
    assert await flags.seed_defaults() == 0


async def test_set_flag_invalidates_cache(flags):
    await flags.seed_defaults()
    assert await flags.is_enabled(ANALYTICS_DASHBOARD) is True

    await flags.set_flag(ANALYTICS_DASHBOARD, False)

    assert await flags.is_enabled(ANALYTICS_DASHBOARD) is False


async def test_out_of_band_change_waits_for_ttl(db, flags, clock):
    await flags.seed_defaults()
    assert await flags.is_enabled(PAYMENT_PROCESSING) is True

    await db.execute(update(FeatureFlag).where(FeatureFlag.name == PAYMENT_PROCESSING).values(enabled=False))
    await db.commit()

    clock.advance(299)
    assert await flags.is_enabled(PAYMENT_PROCESSING) is True
    clock.advance(1)
    assert await flags.is_enabled(PAYMENT_PROCESSING) is False


async def test_overrides_per_user_and_role(db, flags):
    tester = await make_user(db, UserRole.TENANT, "Tess")
    await flags.set_flag("BETA_PORTAL", False, description="New tenant portal")

    await flags.set_override("BETA_PORTAL", True, role=UserRole.TENANT)
    await flags.set_override("BETA_PORTAL", False, user_id=tester.id)

    assert await flags.is_enabled("BETA_PORTAL", role=UserRole.TENANT) is True
    assert await flags.is_enabled("BETA_PORTAL", user_id=tester.id, role=UserRole.TENANT) is False
    assert await flags.is_enabled("BETA_PORTAL", role=UserRole.OWNER) is False

    assert await flags.clear_overrides("BETA_PORTAL") == 2
    assert await flags.is_enabled("BETA_PORTAL", role=UserRole.TENANT) is False


async def test_override_updates_in_place(db, flags):
    await flags.set_flag("BETA_PORTAL", False)

    first = await flags.set_override("BETA_PORTAL", True, role=UserRole.OWNER)
    second = await flags.set_override("BETA_PORTAL", False, role=UserRole.OWNER)

    assert first.id == second.id
    assert await flags.is_enabled("BETA_PORTAL", role=UserRole.OWNER) is False


async def test_override_needs_exactly_one_target(flags):
    await flags.set_flag("BETA_PORTAL", False)

    with pytest.raises(ValidationFailed):
        await flags.set_override("BETA_PORTAL", True)
    with pytest.raises(ValidationFailed):
        await flags.set_override("BETA_PORTAL", True, user_id=uuid.uuid4(), role=UserRole.OWNER)


async def test_override_on_missing_flag(flags):
    with pytest.raises(NotFound):
        await flags.set_override("GHOST", True, role=UserRole.OWNER)


def test_cache_expiry_and_stale_read():
    clock = FakeClock()
    cache = FeatureFlagCache(ttl_seconds=10, clock=clock)
    snapshot = FlagSnapshot(flags={"X": True})

    assert cache.get() is None
    cache.put(snapshot)
    assert cache.get() is snapshot

    clock.advance(10)
    assert cache.get() is None
    assert cache.stale() is snapshot

    cache.put(snapshot)
    cache.invalidate()
    assert cache.get() is None

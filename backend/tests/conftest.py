from __future__ import annotations

import os

# Settings are cached on first import, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SKIP_ENV_VALIDATION"] = "1"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from datetime import date
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import leasekeeper.models  # noqa: F401
from leasekeeper.core.database import Base, get_db
from leasekeeper.core.security import get_current_caller
from leasekeeper.models.enums import PaymentStatus, UserRole
from leasekeeper.services.feature_flags import FeatureFlagCache
from leasekeeper.services.realtime import ConnectionManager
from leasekeeper.services.scheduler import SweepScheduler
from leasekeeper.services.storage import StorageService

from tests.factories import (
    make_lease,
    make_manager,
    make_owner,
    make_payment,
    make_property,
    make_tenant,
    make_user,
)
from tests.fakes import MemoryStorageProvider


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage_provider():
    return MemoryStorageProvider()


@pytest.fixture
def storage(storage_provider):
    return StorageService(storage_provider)


@pytest.fixture
def flag_cache():
    return FeatureFlagCache(ttl_seconds=300)


@pytest.fixture
async def portfolio(db):
    """Two owners with one leased property each, plus staff of the first owner.

    ``payment`` is a PENDING rent payment of ``tenant`` due 2024-01-01;
    ``other_payment`` belongs to the second owner's tenant.
    """
    admin = await make_user(db, UserRole.SUPER_ADMIN, "Ada", "Admin")

    owner = await make_owner(db)
    prop = await make_property(db, owner, name="Maple Court 1A")
    manager = await make_manager(db, owner)
    approver = await make_manager(
        db, owner, approvePayments=True, managePayments=True, manageLeases=True
    )
    tenant = await make_tenant(db, prop, first_name="Tina")
    lease = await make_lease(db, tenant, prop, date(2024, 1, 1), date(2025, 1, 1))
    payment = await make_payment(db, lease, due_date=date(2024, 1, 1))

    other_owner = await make_owner(db, company_name="Birch Holdings")
    other_prop = await make_property(db, other_owner, name="Birch Lofts 3", city="Shelbyville")
    other_tenant = await make_tenant(db, other_prop, first_name="Otto")
    other_lease = await make_lease(db, other_tenant, other_prop, date(2024, 1, 1), date(2025, 1, 1))
    other_payment = await make_payment(db, other_lease, due_date=date(2024, 1, 1))

    return SimpleNamespace(
        admin=admin,
        owner=owner,
        prop=prop,
        manager=manager,
        approver=approver,
        tenant=tenant,
        lease=lease,
        payment=payment,
        other_owner=other_owner,
        other_prop=other_prop,
        other_tenant=other_tenant,
        other_lease=other_lease,
        other_payment=other_payment,
    )


@pytest.fixture
async def paid_payment(db, portfolio):
    return await make_payment(
        db,
        portfolio.lease,
        due_date=date(2024, 2, 1),
        status=PaymentStatus.PAID,
        transaction_id="BANK-0001",
    )


@pytest.fixture
async def app(session_factory, flag_cache, storage):
    from leasekeeper.main import app as application

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.state.flag_cache = flag_cache
    application.state.connections = ConnectionManager()
    application.state.channels = []
    application.state.storage = storage
    application.state.scheduler = SweepScheduler(session_factory)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def login_as(app):
    def _login(caller):
        app.dependency_overrides[get_current_caller] = lambda: caller

    return _login


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

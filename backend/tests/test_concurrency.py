"""Two sessions racing for the same row.

These run on a file-backed database so each session gets its own connection.
Every transaction opens with BEGIN IMMEDIATE, which makes SQLite hold the
write lock for the whole transaction, the way a row lock does on PostgreSQL.
"""

from __future__ import annotations

import asyncio
from datetime import date

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leasekeeper.core.database import Base
from leasekeeper.core.errors import Conflict
from leasekeeper.models.enums import LeaseStatus, PaymentMethod, PaymentStatus
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.lease import Lease
from leasekeeper.models.payment import Payment
from leasekeeper.services.jobs import ISSUE_RECEIPT
from leasekeeper.services.leases import LeaseService
from leasekeeper.services.payments import PaymentService

from tests.factories import make_lease, make_owner, make_payment, make_property, make_tenant, owner_caller


@pytest.fixture
async def locking_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'leasekeeper.db'}",
        connect_args={"timeout": 15},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def _split(results):
    won = [r for r in results if not isinstance(r, BaseException)]
    lost = [r for r in results if isinstance(r, BaseException)]
    return won, lost


async def test_concurrent_mark_paid_settles_once(locking_factory):
    async with locking_factory() as db:
        owner = await make_owner(db)
        prop = await make_property(db, owner)
        tenant = await make_tenant(db, prop)
        lease = await make_lease(db, tenant, prop)
        payment = await make_payment(db, lease, due_date=date(2024, 1, 1))

    async def settle(transaction_id):
        async with locking_factory() as session:
            return await PaymentService(session).mark_paid(
                owner_caller(owner), payment.id, PaymentMethod.BANK_TRANSFER, transaction_id=transaction_id
            )

    won, lost = _split(await asyncio.gather(settle("BANK-A"), settle("BANK-B"), return_exceptions=True))

    assert len(won) == 1 and len(lost) == 1
    assert isinstance(lost[0], Conflict)
    async with locking_factory() as db:
        settled = await db.get(Payment, payment.id)
        receipts = await db.scalar(
            select(func.count(JobsOutbox.id)).where(JobsOutbox.type == ISSUE_RECEIPT)
        )
    assert settled.status == PaymentStatus.PAID
    assert settled.transaction_id == won[0].transaction_id
    assert receipts == 1


async def test_concurrent_lease_creation_on_one_property(locking_factory):
    async with locking_factory() as db:
        owner = await make_owner(db)
        prop = await make_property(db, owner)
        first = await make_tenant(db, prop, first_name="Fay")
        second = await make_tenant(db, prop, first_name="Sam")

    async def sign(tenant):
        async with locking_factory() as session:
            return await LeaseService(session).create(
                owner_caller(owner), tenant.id, prop.id, date(2025, 1, 1), date(2025, 12, 31), 150000
            )

    won, lost = _split(await asyncio.gather(sign(first), sign(second), return_exceptions=True))

    assert len(won) == 1 and len(lost) == 1
    assert isinstance(lost[0], Conflict)
    async with locking_factory() as db:
        active = await db.scalar(
            select(func.count(Lease.id)).where(Lease.property_id == prop.id, Lease.status == LeaseStatus.ACTIVE)
        )
    assert active == 1

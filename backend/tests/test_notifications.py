from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from leasekeeper.core.config import Settings
from leasekeeper.core.errors import Forbidden, NotFound, ValidationFailed
from leasekeeper.models.enums import NotificationType, UserRole
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.notification import Notification
from leasekeeper.services.channels import EmailChannel, OutboundMessage, SocketChannel
from leasekeeper.services.notifications import NotificationService, broadcast
from leasekeeper.services.realtime import ConnectionManager

from tests.factories import admin_caller, make_user, manager_caller, owner_caller, tenant_caller
from tests.fakes import ClosedSocket, FakeSocket, RecordingChannel


def _message(**overrides) -> OutboundMessage:
    fields = dict(
        user_id=uuid.uuid4(),
        title="Rent due",
        message="Pay <soon> & thanks",
        type=NotificationType.PAYMENT_REMINDER.value,
        email="tina@example.com",
        recipient_name="Tina",
    )
    fields.update(overrides)
    return OutboundMessage(**fields)


async def _seed_inbox(db, user_id, count: int) -> list[Notification]:
    service = NotificationService(db)
    created = []
    for n in range(count):
        created += await service.deliver([user_id], f"Notice {n}", "Body")
    return created


async def test_deliver_records_and_fans_out(db, portfolio):
    channel = RecordingChannel()

    records = await NotificationService(db, channels=[channel]).deliver(
        [portfolio.tenant.user_id, portfolio.tenant.user_id, portfolio.owner.user_id],
        "Inspection",
        "Smoke detectors on Friday",
        NotificationType.MAINTENANCE,
        data={"property_id": str(portfolio.prop.id)},
    )

    assert len(records) == 2
    assert {m.user_id for m in channel.sent} == {portfolio.tenant.user_id, portfolio.owner.user_id}
    assert all(m.notification_id is not None for m in channel.sent)
    assert channel.sent[0].data == {"property_id": str(portfolio.prop.id)}


async def test_inbox_listing_and_unread_count(db, portfolio):
    user_id = portfolio.tenant.user_id
    created = await _seed_inbox(db, user_id, 3)
    service = NotificationService(db)

    await service.mark_read(user_id, created[0].id)
    items, unread = await service.list_for_user(user_id)
    unread_items, _ = await service.list_for_user(user_id, unread_only=True)
    page, _ = await service.list_for_user(user_id, limit=1, offset=1)

    assert len(items) == 3
    assert unread == 2
    assert created[0].id not in {n.id for n in unread_items}
    assert len(page) == 1


async def test_mark_all_read(db, portfolio):
    user_id = portfolio.tenant.user_id
    await _seed_inbox(db, user_id, 2)
    service = NotificationService(db)

    assert await service.mark_all_read(user_id) == 2
    assert await service.mark_all_read(user_id) == 0
    _, unread = await service.list_for_user(user_id)
    assert unread == 0


async def test_only_recipient_changes_notification(db, portfolio):
    [notification] = await _seed_inbox(db, portfolio.tenant.user_id, 1)
    service = NotificationService(db)

    with pytest.raises(Forbidden):
        await service.mark_read(portfolio.owner.user_id, notification.id)
    with pytest.raises(Forbidden):
        await service.delete(portfolio.owner.user_id, notification.id)
    with pytest.raises(NotFound):
        await service.mark_read(portfolio.tenant.user_id, uuid.uuid4())

    await service.delete(portfolio.tenant.user_id, notification.id)
    assert await db.scalar(select(func.count(Notification.id))) == 0


async def test_tenant_cannot_broadcast(db, portfolio):
    with pytest.raises(Forbidden):
        await broadcast(db, tenant_caller(portfolio.tenant), "Hi", "All", role=UserRole.TENANT)


async def test_broadcast_needs_an_audience(db, portfolio):
    with pytest.raises(ValidationFailed):
        await broadcast(db, owner_caller(portfolio.owner), "Hi", "Nobody")


async def test_broadcast_by_role_stays_in_scope(db, portfolio):
    count = await broadcast(db, owner_caller(portfolio.owner), "Pool closed", "Until Monday", role=UserRole.TENANT)

    assert count == 1
    job = await db.scalar(select(JobsOutbox))
    assert job.payload["user_ids"] == [str(portfolio.tenant.user_id)]
    assert job.payload["type"] == NotificationType.SYSTEM.value
    assert job.payload["email"] is False


async def test_broadcast_to_foreign_user_is_forbidden(db, portfolio):
    with pytest.raises(Forbidden):
        await broadcast(
            db,
            manager_caller(portfolio.manager),
            "Hi",
            "There",
            user_ids=[portfolio.other_tenant.user_id],
        )


async def test_admin_broadcast_reaches_every_owner(db, portfolio):
    await make_user(db, UserRole.OWNER, "Idle", is_active=False)

    count = await broadcast(db, admin_caller(portfolio.admin), "Maintenance window", "Sunday 2am", role=UserRole.OWNER)

    assert count == 2


async def test_connection_manager_drops_closed_sockets():
    manager = ConnectionManager()
    user_id = uuid.uuid4()
    live, dead = FakeSocket(), ClosedSocket()
    await manager.connect(user_id, live)
    await manager.connect(user_id, dead)

    delivered = await manager.send_to_user(user_id, {"event": "ping"})

    assert delivered == 1
    assert live.accepted
    assert live.received == [{"event": "ping"}]
    assert manager.active_connections[user_id] == [live]

    await manager.disconnect(user_id, live)
    assert not manager.is_connected(user_id)


async def test_socket_channel_only_takes_connected_users():
    manager = ConnectionManager()
    socket = FakeSocket()
    message = _message()
    channel = SocketChannel(manager)

    assert not channel.accepts(message)
    await manager.connect(message.user_id, socket)
    assert channel.accepts(message)

    await channel.send(message)
    assert socket.received[0]["event"] == "notification"
    assert socket.received[0]["title"] == "Rent due"


def test_email_channel_requires_host_address_and_opt_in():
    configured = EmailChannel(Settings(smtp_host="smtp.example.com"))
    unconfigured = EmailChannel(Settings(smtp_host=""))

    assert configured.accepts(_message())
    assert not configured.accepts(_message(email=None))
    assert not configured.accepts(_message(send_email=False))
    assert not unconfigured.accepts(_message())


def test_email_body_is_escaped():
    mime = EmailChannel(Settings(smtp_host="smtp.example.com")).build(_message())

    plain, html = mime.get_payload()
    assert mime["To"] == "tina@example.com"
    assert "Pay <soon> & thanks" in plain.get_payload(decode=True).decode()
    assert "Pay &lt;soon&gt; &amp; thanks" in html.get_payload(decode=True).decode()

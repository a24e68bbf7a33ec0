"""Notification fan-out and inbox operations."""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller, SuperAdminCaller, TenantCaller
from leasekeeper.core.errors import Forbidden, NotFound, ValidationFailed
from leasekeeper.models.enums import NotificationType, UserRole
from leasekeeper.models.notification import Notification
from leasekeeper.models.user import Manager, Owner, Tenant, User
from leasekeeper.services.authorization import scope_owner_id, scope_tenants
from leasekeeper.services.channels import NotificationChannel, OutboundMessage
from leasekeeper.services.feature_flags import FeatureFlagService
from leasekeeper.services.jobs import JobsService

logger = logging.getLogger(__name__)


class NotificationService:
    """Writes in-app notifications and pushes them over the configured channels.

    Channel failures are logged per recipient and channel and never raised:
    notifications are best-effort and must not affect the caller.
    """

    def __init__(
        self,
        db: AsyncSession,
        channels: Sequence[NotificationChannel] = (),
        flags: Optional[FeatureFlagService] = None,
    ):
        self.db = db
        self.channels = list(channels)
        self.flags = flags

    async def deliver(
        self,
        user_ids: Iterable[UUID],
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.SYSTEM,
        data: Optional[dict[str, Any]] = None,
        send_email: bool = True,
    ) -> list[Notification]:
        """Record one in-app notification per active recipient, then fan out."""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []

        result = await self.db.execute(
            select(User).where(User.id.in_(ids), User.is_active.is_(True))
        )
        users = result.scalars().all()

        records: list[tuple[User, Notification]] = []
        for user in users:
            notification = Notification(
                user_id=user.id,
                type=notification_type,
                title=title,
                message=message,
                data=data or {},
            )
            self.db.add(notification)
            records.append((user, notification))
        await self.db.commit()

        for user, notification in records:
            outbound = OutboundMessage(
                user_id=user.id,
                title=title,
                message=message,
                type=notification_type.value,
                email=user.email,
                recipient_name=user.first_name,
                fcm_token=user.fcm_token,
                notification_id=notification.id,
                send_email=send_email,
                data=data or {},
            )
            await self._fan_out(user, outbound)

        logger.info(f"[NOTIFY] '{title}' delivered to {len(records)} user(s)")
        return [n for _, n in records]

    async def _fan_out(self, user: User, outbound: OutboundMessage) -> None:
        for channel in self.channels:
            try:
                if not channel.accepts(outbound):
                    continue
                if channel.feature_flag and self.flags is not None:
                    if not await self.flags.is_enabled(channel.feature_flag, user.id, user.role):
                        continue
                await channel.send(outbound)
            except Exception:
                logger.exception(f"[NOTIFY] {channel.name} delivery failed for user {user.id}")

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        """Newest-first notifications of a user and their unread count."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        result = await self.db.execute(
            query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
        )
        unread = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        return list(result.scalars().all()), int(unread or 0)

    async def _get_own(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFound("Notification not found")
        if notification.user_id != user_id:
            raise Forbidden("Only the recipient can change this notification")
        return notification

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self._get_own(user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            await self.db.commit()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=datetime.utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        notification = await self._get_own(user_id, notification_id)
        await self.db.execute(delete(Notification).where(Notification.id == notification.id))
        await self.db.commit()


async def _audience(db: AsyncSession, caller: Caller) -> Optional[set[UUID]]:
    """User ids a staff caller may address; None means everyone."""
    if isinstance(caller, SuperAdminCaller):
        return None
    owner_id = scope_owner_id(caller)
    owner_users = select(Owner.user_id).where(Owner.id == owner_id)
    manager_users = select(Manager.user_id).where(Manager.owner_id == owner_id)
    tenant_users = scope_tenants(select(Tenant.user_id), caller)
    ids: set[UUID] = set()
    for query in (owner_users, manager_users, tenant_users):
        ids.update((await db.execute(query)).scalars().all())
    return ids


async def broadcast(
    db: AsyncSession,
    caller: Caller,
    title: str,
    message: str,
    user_ids: Iterable[UUID] = (),
    role: Optional[UserRole] = None,
    send_email: bool = False,
) -> int:
    """Queue a SYSTEM notification to explicit users or every active user of a role in scope."""
    if isinstance(caller, TenantCaller):
        raise Forbidden("Tenants cannot broadcast notifications")
    requested = list(dict.fromkeys(user_ids))
    if not requested and role is None:
        raise ValidationFailed("Provide user_ids or a role")

    audience = await _audience(db, caller)
    if requested:
        if audience is not None and not set(requested) <= audience:
            raise Forbidden("Some recipients are outside your scope")
        recipients = requested
    else:
        query = select(User.id).where(User.role == role, User.is_active.is_(True))
        candidates = (await db.execute(query)).scalars().all()
        recipients = [uid for uid in candidates if audience is None or uid in audience]

    if recipients:
        await JobsService(db).enqueue_notification(
            recipients,
            title=title,
            message=message,
            notification_type=NotificationType.SYSTEM,
            data={"broadcast_by": str(caller.user_id)},
            email=send_email,
        )
        await db.commit()
    logger.info(f"[NOTIFY] Broadcast '{title}' queued for {len(recipients)} user(s)")
    return len(recipients)

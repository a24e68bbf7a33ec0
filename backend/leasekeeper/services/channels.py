"""Outbound notification channels: email, mobile push, socket push.

Each channel sends one message to one recipient and raises on failure.
The notification service decides what to do about failures.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any, Optional
from uuid import UUID

import aiosmtplib

from leasekeeper.core.config import Settings
from leasekeeper.services.realtime import ConnectionManager


@dataclass
class OutboundMessage:
    """One notification addressed to one user."""

    user_id: UUID
    title: str
    message: str
    type: str
    email: Optional[str] = None
    recipient_name: str = ""
    fcm_token: Optional[str] = None
    notification_id: Optional[UUID] = None
    send_email: bool = True
    data: dict[str, Any] = field(default_factory=dict)


class NotificationChannel(ABC):
    """A single delivery channel."""

    name: str = "channel"
    # Feature flag that must be on for the recipient, if any
    feature_flag: Optional[str] = None

    def accepts(self, message: OutboundMessage) -> bool:
        return True

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver or raise."""


class EmailChannel(NotificationChannel):
    """SMTP email via aiosmtplib."""

    name = "email"

    def __init__(self, settings: Settings):
        self.settings = settings

    def accepts(self, message: OutboundMessage) -> bool:
        return bool(self.settings.smtp_host and message.email and message.send_email)

    def build(self, message: OutboundMessage) -> MIMEMultipart:
        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6;">
            <h2>{escape(message.title)}</h2>
            <p>Hello {escape(message.recipient_name or "there")},</p>
            <p>{escape(message.message)}</p>
            <p>Best regards,<br>{escape(self.settings.app_name)}</p>
        </body>
        </html>
        """
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.title
        mime["From"] = self.settings.email_from
        mime["To"] = message.email
        mime.attach(MIMEText(message.message, "plain"))
        mime.attach(MIMEText(html_content, "html"))
        return mime

    async def send(self, message: OutboundMessage) -> None:
        await aiosmtplib.send(
            self.build(message),
            hostname=self.settings.smtp_host,
            port=self.settings.smtp_port,
            username=self.settings.smtp_username,
            password=self.settings.smtp_password,
            start_tls=self.settings.smtp_use_tls,
        )


class PushChannel(NotificationChannel):
    """Firebase Cloud Messaging push to the user's registered device."""

    name = "push"
    feature_flag = "MOBILE_PUSH_NOTIFICATIONS"

    def accepts(self, message: OutboundMessage) -> bool:
        return bool(message.fcm_token)

    async def send(self, message: OutboundMessage) -> None:
        from firebase_admin import messaging

        from leasekeeper.core.security import get_firebase_app

        fcm_message = messaging.Message(
            notification=messaging.Notification(title=message.title, body=message.message),
            data={
                "type": message.type,
                "notification_id": str(message.notification_id or ""),
                **{k: str(v) for k, v in message.data.items()},
            },
            token=message.fcm_token,
        )
        await asyncio.to_thread(messaging.send, fcm_message, app=get_firebase_app())


class SocketChannel(NotificationChannel):
    """Push to the user's open WebSocket connections."""

    name = "socket"
    feature_flag = "REAL_TIME_NOTIFICATIONS"

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    def accepts(self, message: OutboundMessage) -> bool:
        return self.manager.is_connected(message.user_id)

    async def send(self, message: OutboundMessage) -> None:
        await self.manager.send_to_user(
            message.user_id,
            {
                "event": "notification",
                "id": str(message.notification_id) if message.notification_id else None,
                "type": message.type,
                "title": message.title,
                "message": message.message,
                "data": message.data,
            },
        )


def default_channels(settings: Settings, manager: ConnectionManager) -> list[NotificationChannel]:
    return [SocketChannel(manager), EmailChannel(settings), PushChannel()]

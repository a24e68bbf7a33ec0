"""Notifications router: inbox, broadcast and the socket subscription."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import AsyncSessionLocal, get_db
from leasekeeper.core.errors import LeaseKeeperError
from leasekeeper.core.security import get_current_caller, require_staff, resolve_caller, verify_id_token
from leasekeeper.schemas.base import MessageResponse
from leasekeeper.schemas.notification import (
    BroadcastRequest,
    BroadcastResponse,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from leasekeeper.services import notifications
from leasekeeper.services.feature_flags import REAL_TIME_NOTIFICATIONS, FeatureFlagService
from leasekeeper.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])
ws_router = APIRouter(tags=["notifications"])


def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: NotificationService = Depends(get_notification_service),
    caller: Caller = Depends(get_current_caller),
):
    items, unread = await service.list_for_user(caller.user_id, unread_only, limit, offset)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        unread_count=unread,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    service: NotificationService = Depends(get_notification_service),
    caller: Caller = Depends(get_current_caller),
):
    return MarkAllReadResponse(updated=await service.mark_all_read(caller.user_id))


@router.post("/broadcast", response_model=BroadcastResponse, status_code=status.HTTP_202_ACCEPTED)
async def broadcast(
    data: BroadcastRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_staff),
):
    """Queue a notification to users in the caller's scope."""
    recipients = await notifications.broadcast(
        db,
        caller,
        title=data.title,
        message=data.message,
        user_ids=data.user_ids,
        role=data.role,
        send_email=data.send_email,
    )
    return BroadcastResponse(recipients=recipients)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    service: NotificationService = Depends(get_notification_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.mark_read(caller.user_id, notification_id)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: UUID,
    service: NotificationService = Depends(get_notification_service),
    caller: Caller = Depends(get_current_caller),
):
    await service.delete(caller.user_id, notification_id)
    return MessageResponse(message="Notification deleted")


async def _authenticate_socket(websocket: WebSocket, token: Optional[str]) -> Optional[Caller]:
    if not token:
        return None
    try:
        identity = verify_id_token(token)
        async with AsyncSessionLocal() as db:
            caller = await resolve_caller(db, identity)
            flags = FeatureFlagService(db, websocket.app.state.flag_cache)
            if not await flags.is_enabled(REAL_TIME_NOTIFICATIONS, caller.user_id, caller.role):
                return None
    except LeaseKeeperError as e:
        logger.info(f"[SOCKET] Rejected connection: {e.message}")
        return None
    return caller


@ws_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Push channel for in-app notifications. Client messages are ignored."""
    caller = await _authenticate_socket(websocket, token)
    if caller is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connections
    await manager.connect(caller.user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(caller.user_id, websocket)

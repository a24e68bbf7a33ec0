"""Request-scoped access to process-wide objects kept on ``app.state``."""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.errors import Forbidden
from leasekeeper.core.security import get_current_caller
from leasekeeper.services.channels import NotificationChannel
from leasekeeper.services.feature_flags import FeatureFlagCache, FeatureFlagService
from leasekeeper.services.realtime import ConnectionManager
from leasekeeper.services.storage import StorageService


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_flag_cache(request: Request) -> FeatureFlagCache:
    return request.app.state.flag_cache


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connections


def get_channels(request: Request) -> list[NotificationChannel]:
    return request.app.state.channels


def get_storage(request: Request) -> Optional[StorageService]:
    return getattr(request.app.state, "storage", None)


def get_flags(
    db: AsyncSession = Depends(get_db),
    cache: FeatureFlagCache = Depends(get_flag_cache),
) -> FeatureFlagService:
    return FeatureFlagService(db, cache)


def require_feature(name: str):
    """Dependency factory that rejects the request when a flag is off for the caller."""

    async def dependency(
        caller: Caller = Depends(get_current_caller),
        flags: FeatureFlagService = Depends(get_flags),
    ) -> Caller:
        if not await flags.is_enabled(name, caller.user_id, caller.role):
            raise Forbidden(f"Feature {name} is disabled")
        return caller

    return dependency

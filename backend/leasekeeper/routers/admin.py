"""Super admin router: feature flags, system settings, audit log and manual sweep runs."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip, get_flags
from leasekeeper.core.errors import NotFound
from leasekeeper.core.security import require_super_admin
from leasekeeper.models.enums import AuditAction
from leasekeeper.schemas.admin import (
    AuditLogListResponse,
    AuditLogResponse,
    ClearedResponse,
    FeatureFlagMapResponse,
    FeatureFlagOverrideRequest,
    FeatureFlagOverrideResponse,
    FeatureFlagResponse,
    FeatureFlagUpdate,
    SweepRunResponse,
    SystemSettingMapResponse,
    SystemSettingResponse,
    SystemSettingUpdate,
)
from leasekeeper.services.audit import AuditService
from leasekeeper.services.feature_flags import FeatureFlagService
from leasekeeper.services.scheduler import SCHEDULE, SweepScheduler
from leasekeeper.services.system_settings import SystemSettingsService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/feature-flags", response_model=FeatureFlagMapResponse)
async def list_feature_flags(
    flags: FeatureFlagService = Depends(get_flags),
    caller: Caller = Depends(require_super_admin),
):
    return FeatureFlagMapResponse(flags=await flags.all_flags())


@router.put("/feature-flags/{name}", response_model=FeatureFlagResponse)
async def set_feature_flag(
    name: str,
    data: FeatureFlagUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    flags: FeatureFlagService = Depends(get_flags),
    caller: Caller = Depends(require_super_admin),
):
    flag = await flags.set_flag(name, data.enabled, data.description)
    await AuditService(db).log(
        action=AuditAction.FEATURE_FLAG_CHANGED,
        resource_type="feature_flag",
        resource_id=flag.id,
        user_id=caller.user_id,
        details={"name": name, "enabled": data.enabled},
        ip_address=client_ip(request),
    )
    await db.commit()
    return flag


@router.put("/feature-flags/{name}/overrides", response_model=FeatureFlagOverrideResponse)
async def set_feature_flag_override(
    name: str,
    data: FeatureFlagOverrideRequest,
    flags: FeatureFlagService = Depends(get_flags),
    caller: Caller = Depends(require_super_admin),
):
    """Override a flag for one user or one role. A user override wins over a role override."""
    return await flags.set_override(name, data.enabled, user_id=data.user_id, role=data.role)


@router.delete("/feature-flags/{name}/overrides", response_model=ClearedResponse)
async def clear_feature_flag_overrides(
    name: str,
    flags: FeatureFlagService = Depends(get_flags),
    caller: Caller = Depends(require_super_admin),
):
    return ClearedResponse(deleted=await flags.clear_overrides(name))


@router.get("/settings", response_model=SystemSettingMapResponse)
async def list_system_settings(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_super_admin),
):
    settings = await SystemSettingsService(db).list_settings()
    return SystemSettingMapResponse(
        settings={s.key: SystemSettingResponse.model_validate(s) for s in settings}
    )


@router.put("/settings/{key}", response_model=SystemSettingResponse)
async def update_system_setting(
    key: str,
    data: SystemSettingUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_super_admin),
):
    """Create or replace one setting. The value must parse as its type."""
    service = SystemSettingsService(db, ip_address=client_ip(request))
    return await service.set_setting(
        key, data.value, caller.user_id, setting_type=data.type, description=data.description
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    action: Optional[AuditAction] = Query(None),
    resource_type: Optional[str] = Query(None, max_length=50),
    resource_id: Optional[UUID] = Query(None),
    user_id: Optional[UUID] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_super_admin),
):
    entries, total = await AuditService(db).list_entries(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        since=since,
        until=until,
        page=page,
        page_size=page_size,
    )
    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/sweeps/{name}", response_model=SweepRunResponse)
async def run_sweep(
    name: str,
    request: Request,
    caller: Caller = Depends(require_super_admin),
):
    """Run one scheduled sweep now. Sweeps are idempotent, so this is safe to repeat."""
    if name not in SCHEDULE:
        raise NotFound(f"Unknown sweep '{name}'")
    scheduler: SweepScheduler = request.app.state.scheduler
    return SweepRunResponse(sweep=name, result=await scheduler.run_sweep(name))

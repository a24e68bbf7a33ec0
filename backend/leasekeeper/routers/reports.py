"""Analytics and reports router."""

import io
from datetime import date
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import require_feature
from leasekeeper.core.security import require_staff
from leasekeeper.schemas.admin import SnapshotResponse
from leasekeeper.services.feature_flags import ANALYTICS_DASHBOARD
from leasekeeper.services.reports import ReportService

router = APIRouter(
    prefix="/reports",
    tags=["reports"],
    dependencies=[Depends(require_feature(ANALYTICS_DASHBOARD))],
)


def get_report_service(db: AsyncSession = Depends(get_db)) -> ReportService:
    return ReportService(db)


@router.get("/dashboard", response_model=dict[str, Any])
async def dashboard(
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    """Headline counts for the caller's portfolio."""
    return await service.dashboard(caller)


@router.get("/payments", response_model=dict[str, Any])
async def payment_report(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    property_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    return await service.payment_analytics(caller, start=start, end=end, property_id=property_id)


@router.get("/financial", response_model=dict[str, Any])
async def financial_report(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    property_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    """Payment rows in the window plus collected and outstanding totals."""
    return await service.financial_report(caller, start=start, end=end, property_id=property_id)


@router.get("/occupancy", response_model=dict[str, Any])
async def occupancy_report(
    property_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    return await service.occupancy_report(caller, property_id=property_id)


@router.get("/activity", response_model=dict[str, Any])
async def activity_report(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    property_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    return await service.activity_report(caller, start=start, end=end, property_id=property_id)


@router.get("/snapshots", response_model=list[SnapshotResponse])
async def list_snapshots(
    owner_id: Optional[UUID] = Query(None),
    limit: int = Query(12, ge=1, le=120),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    """Monthly snapshots written by the scheduled report, newest first."""
    return await service.list_snapshots(caller, owner_id=owner_id, limit=limit)


@router.get("/export")
async def export_report(
    report: str = Query(..., pattern="^(financial|occupancy)$"),
    fmt: str = Query("csv", alias="format", pattern="^(csv|pdf)$"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    property_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
    caller: Caller = Depends(require_staff),
):
    content, media_type, filename = await service.export(
        caller, report, fmt, start=start, end=end, property_id=property_id
    )
    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

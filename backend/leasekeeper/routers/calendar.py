"""Calendar router: dated events across payments, leases and maintenance."""

from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.security import get_current_caller
from leasekeeper.models.enums import CalendarEventType
from leasekeeper.schemas.calendar import CalendarEventResponse, CalendarResponse
from leasekeeper.services.calendar import DEFAULT_WINDOW_DAYS, CalendarService

router = APIRouter(prefix="/calendar", tags=["calendar"])


def get_calendar_service(db: AsyncSession = Depends(get_db)) -> CalendarService:
    return CalendarService(db)


def _response(start: date, end: date, events) -> CalendarResponse:
    return CalendarResponse(
        start=start,
        end=end,
        events=[CalendarEventResponse.model_validate(e) for e in events],
        total=len(events),
    )


@router.get("", response_model=CalendarResponse)
async def list_calendar_events(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    event_type: Optional[list[CalendarEventType]] = Query(None, alias="type"),
    service: CalendarService = Depends(get_calendar_service),
    caller: Caller = Depends(get_current_caller),
):
    """Events in [start, end]. Defaults to the next 30 days; repeat ``type`` to filter."""
    start = start or datetime.utcnow().date()
    end = end or start + timedelta(days=DEFAULT_WINDOW_DAYS)
    return _response(start, end, await service.events(caller, start=start, end=end, types=event_type))


@router.get("/upcoming", response_model=CalendarResponse)
async def upcoming_events(
    days: int = Query(7, ge=0, le=90),
    service: CalendarService = Depends(get_calendar_service),
    caller: Caller = Depends(get_current_caller),
):
    start = datetime.utcnow().date()
    end = start + timedelta(days=days)
    return _response(start, end, await service.events(caller, start=start, end=end))

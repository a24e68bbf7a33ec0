"""Calendar event schemas."""

from datetime import date
from typing import Optional
from uuid import UUID

from leasekeeper.models.enums import CalendarEventType
from leasekeeper.schemas.base import BaseSchema


class CalendarEventResponse(BaseSchema):
    id: str
    type: CalendarEventType
    date: date
    title: str
    description: str
    property_id: UUID
    resource_id: UUID
    status: Optional[str] = None
    priority: Optional[str] = None


class CalendarResponse(BaseSchema):
    start: date
    end: date
    events: list[CalendarEventResponse]
    total: int

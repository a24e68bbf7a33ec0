"""Complaints router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.security import get_current_caller, require_owner_or_admin, require_staff
from leasekeeper.models.enums import ComplaintCategory, ComplaintStatus, Priority
from leasekeeper.schemas.complaint import (
    AssignRequest,
    ComplaintCreate,
    ComplaintListResponse,
    ComplaintResponse,
    ComplaintUpdate,
    ResolveRequest,
)
from leasekeeper.services.complaints import ComplaintService

router = APIRouter(prefix="/complaints", tags=["complaints"])


def get_complaint_service(db: AsyncSession = Depends(get_db)) -> ComplaintService:
    return ComplaintService(db)


@router.get("", response_model=ComplaintListResponse)
async def list_complaints(
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    property_id: Optional[UUID] = Query(None),
    priority: Optional[Priority] = Query(None),
    category: Optional[ComplaintCategory] = Query(None),
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(get_current_caller),
):
    complaints = await service.list_complaints(
        caller, status=status_filter, property_id=property_id, priority=priority, category=category
    )
    return ComplaintListResponse(
        complaints=[ComplaintResponse.model_validate(c) for c in complaints],
        total=len(complaints),
    )


@router.post("", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    data: ComplaintCreate,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.create(caller, **data.model_dump())


@router.get("/{complaint_id}", response_model=ComplaintResponse)
async def get_complaint(
    complaint_id: UUID,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get(caller, complaint_id)


@router.patch("/{complaint_id}", response_model=ComplaintResponse)
async def update_complaint(
    complaint_id: UUID,
    data: ComplaintUpdate,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.update(caller, complaint_id, data.model_dump(exclude_unset=True))


@router.post("/{complaint_id}/assign", response_model=ComplaintResponse)
async def assign_complaint(
    complaint_id: UUID,
    data: AssignRequest,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(require_owner_or_admin),
):
    return await service.assign(caller, complaint_id, data.manager_id)


@router.post("/{complaint_id}/resolve", response_model=ComplaintResponse)
async def resolve_complaint(
    complaint_id: UUID,
    data: ResolveRequest,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(require_staff),
):
    return await service.resolve(caller, complaint_id, data.resolution)


@router.delete("/{complaint_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_complaint(
    complaint_id: UUID,
    service: ComplaintService = Depends(get_complaint_service),
    caller: Caller = Depends(require_staff),
):
    await service.delete(caller, complaint_id)

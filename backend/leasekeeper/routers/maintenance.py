"""Maintenance requests router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.security import get_current_caller, require_owner_or_admin, require_staff
from leasekeeper.models.enums import MaintenanceCategory, MaintenanceStatus, Priority
from leasekeeper.schemas.complaint import (
    AssignRequest,
    MaintenanceCreate,
    MaintenanceListResponse,
    MaintenanceResponse,
    MaintenanceUpdate,
)
from leasekeeper.services.maintenance import MaintenanceService

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


def get_maintenance_service(db: AsyncSession = Depends(get_db)) -> MaintenanceService:
    return MaintenanceService(db)


@router.get("", response_model=MaintenanceListResponse)
async def list_maintenance_requests(
    status_filter: Optional[MaintenanceStatus] = Query(None, alias="status"),
    property_id: Optional[UUID] = Query(None),
    priority: Optional[Priority] = Query(None),
    category: Optional[MaintenanceCategory] = Query(None),
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(get_current_caller),
):
    requests = await service.list_requests(
        caller, status=status_filter, property_id=property_id, priority=priority, category=category
    )
    return MaintenanceListResponse(
        requests=[MaintenanceResponse.model_validate(r) for r in requests],
        total=len(requests),
    )


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def create_maintenance_request(
    data: MaintenanceCreate,
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(get_current_caller),
):
    """Open a request. Tenants may only open requests for the property they live on."""
    return await service.create(caller, **data.model_dump())


@router.get("/{request_id}", response_model=MaintenanceResponse)
async def get_maintenance_request(
    request_id: UUID,
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get(caller, request_id)


@router.patch("/{request_id}", response_model=MaintenanceResponse)
async def update_maintenance_request(
    request_id: UUID,
    data: MaintenanceUpdate,
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(require_staff),
):
    return await service.update(caller, request_id, data.model_dump(exclude_unset=True))


@router.post("/{request_id}/assign", response_model=MaintenanceResponse)
async def assign_maintenance_request(
    request_id: UUID,
    data: AssignRequest,
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(require_staff),
):
    return await service.assign(caller, request_id, data.manager_id)


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_maintenance_request(
    request_id: UUID,
    service: MaintenanceService = Depends(get_maintenance_service),
    caller: Caller = Depends(require_owner_or_admin),
):
    await service.delete(caller, request_id)

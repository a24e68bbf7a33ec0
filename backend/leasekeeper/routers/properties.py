"""Properties router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip
from leasekeeper.core.security import get_current_caller, require_staff
from leasekeeper.models.enums import PropertyStatus, PropertyType
from leasekeeper.schemas.property import (
    PropertyCreate,
    PropertyListResponse,
    PropertyResponse,
    PropertyUpdate,
)
from leasekeeper.services.properties import PropertyService

router = APIRouter(prefix="/properties", tags=["properties"])


def get_property_service(request: Request, db: AsyncSession = Depends(get_db)) -> PropertyService:
    return PropertyService(db, ip_address=client_ip(request))


@router.get("", response_model=PropertyListResponse)
async def list_properties(
    status_filter: Optional[PropertyStatus] = Query(None, alias="status"),
    property_type: Optional[PropertyType] = Query(None),
    city: Optional[str] = Query(None, max_length=100),
    owner_id: Optional[UUID] = Query(None),
    service: PropertyService = Depends(get_property_service),
    caller: Caller = Depends(get_current_caller),
):
    """List properties visible to the caller."""
    properties = await service.list_properties(
        caller, status=status_filter, property_type=property_type, city=city, owner_id=owner_id
    )
    return PropertyListResponse(
        properties=[PropertyResponse.model_validate(p) for p in properties],
        total=len(properties),
    )


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    service: PropertyService = Depends(get_property_service),
    caller: Caller = Depends(require_staff),
):
    return await service.create(caller, data.model_dump(exclude={"owner_id"}), owner_id=data.owner_id)


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(
    property_id: UUID,
    service: PropertyService = Depends(get_property_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get(caller, property_id)


@router.patch("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: UUID,
    data: PropertyUpdate,
    service: PropertyService = Depends(get_property_service),
    caller: Caller = Depends(require_staff),
):
    return await service.update(caller, property_id, data.model_dump(exclude_unset=True))


@router.delete("/{property_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_property(
    property_id: UUID,
    service: PropertyService = Depends(get_property_service),
    caller: Caller = Depends(require_staff),
):
    """Delete a property that never had a lease and has no active tenants."""
    await service.delete(caller, property_id)

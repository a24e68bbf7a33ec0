"""Leases router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip
from leasekeeper.core.security import get_current_caller, require_staff
from leasekeeper.models.enums import LeaseStatus
from leasekeeper.schemas.lease import (
    LeaseCreate,
    LeaseListResponse,
    LeaseRenewalRequest,
    LeaseResponse,
    LeaseTerminationRequest,
    LeaseUpdate,
)
from leasekeeper.services.leases import LeaseService

router = APIRouter(prefix="/leases", tags=["leases"])


def get_lease_service(request: Request, db: AsyncSession = Depends(get_db)) -> LeaseService:
    return LeaseService(db, ip_address=client_ip(request))


@router.get("", response_model=LeaseListResponse)
async def list_leases(
    property_id: Optional[UUID] = Query(None),
    tenant_id: Optional[UUID] = Query(None),
    status_filter: Optional[LeaseStatus] = Query(None, alias="status"),
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(get_current_caller),
):
    leases = await service.list_leases(caller, property_id=property_id, tenant_id=tenant_id, status=status_filter)
    return LeaseListResponse(leases=[LeaseResponse.model_validate(lease) for lease in leases], total=len(leases))


@router.post("", response_model=LeaseResponse, status_code=status.HTTP_201_CREATED)
async def create_lease(
    data: LeaseCreate,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(require_staff),
):
    """Create an ACTIVE lease.

    Rejected when the tenant already holds an active lease or the window
    overlaps another active lease on the property.
    """
    return await service.create(caller, **data.model_dump())


@router.get("/{lease_id}", response_model=LeaseResponse)
async def get_lease(
    lease_id: UUID,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get(caller, lease_id)


@router.patch("/{lease_id}", response_model=LeaseResponse)
async def update_lease(
    lease_id: UUID,
    data: LeaseUpdate,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(require_staff),
):
    return await service.update(caller, lease_id, data.model_dump(exclude_unset=True))


@router.post("/{lease_id}/renew", response_model=LeaseResponse)
async def renew_lease(
    lease_id: UUID,
    data: LeaseRenewalRequest,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(require_staff),
):
    return await service.renew(
        caller, lease_id, new_end_date=data.new_end_date, new_monthly_rent_cents=data.new_monthly_rent_cents
    )


@router.post("/{lease_id}/terminate", response_model=LeaseResponse)
async def terminate_lease(
    lease_id: UUID,
    data: LeaseTerminationRequest,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(require_staff),
):
    return await service.terminate(
        caller, lease_id, reason=data.reason, termination_date=data.termination_date
    )


@router.delete("/{lease_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lease(
    lease_id: UUID,
    service: LeaseService = Depends(get_lease_service),
    caller: Caller = Depends(require_staff),
):
    await service.delete(caller, lease_id)

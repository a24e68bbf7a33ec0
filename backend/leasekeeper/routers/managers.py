"""Managers router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from leasekeeper.core.caller import Caller
from leasekeeper.core.security import get_current_caller, require_owner_or_admin, require_staff
from leasekeeper.routers.users import get_account_service
from leasekeeper.schemas.account import ManagerCreate, ManagerResponse, ManagerUpdate
from leasekeeper.services.accounts import AccountService

router = APIRouter(prefix="/managers", tags=["managers"])


@router.get("", response_model=list[ManagerResponse])
async def list_managers(
    owner_id: Optional[UUID] = Query(None),
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_staff),
):
    return await service.list_managers(caller, owner_id=owner_id)


@router.post("", response_model=ManagerResponse, status_code=status.HTTP_201_CREATED)
async def create_manager(
    data: ManagerCreate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_owner_or_admin),
):
    """Create a manager for the calling owner (or for ``owner_id`` as super admin)."""
    return await service.create_manager(caller, data.model_dump())


@router.get("/{manager_id}", response_model=ManagerResponse)
async def get_manager(
    manager_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get_manager(caller, manager_id)


@router.patch("/{manager_id}", response_model=ManagerResponse)
async def update_manager(
    manager_id: UUID,
    data: ManagerUpdate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_staff),
):
    return await service.update_manager(caller, manager_id, data.model_dump(exclude_unset=True))


@router.delete("/{manager_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_manager(
    manager_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_owner_or_admin),
):
    await service.delete_manager(caller, manager_id)

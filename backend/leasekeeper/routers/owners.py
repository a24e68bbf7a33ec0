"""Owners router."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from leasekeeper.core.caller import Caller
from leasekeeper.core.security import get_current_caller, require_super_admin
from leasekeeper.routers.users import get_account_service
from leasekeeper.schemas.account import OwnerCreate, OwnerResponse, OwnerUpdate
from leasekeeper.services.accounts import AccountService

router = APIRouter(prefix="/owners", tags=["owners"])


@router.get("", response_model=list[OwnerResponse])
async def list_owners(
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    return await service.list_owners()


@router.post("", response_model=OwnerResponse, status_code=status.HTTP_201_CREATED)
async def create_owner(
    data: OwnerCreate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    return await service.create_owner(caller, data.model_dump())


@router.get("/{owner_id}", response_model=OwnerResponse)
async def get_owner(
    owner_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get_owner(caller, owner_id)


@router.patch("/{owner_id}", response_model=OwnerResponse)
async def update_owner(
    owner_id: UUID,
    data: OwnerUpdate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.update_owner(caller, owner_id, data.model_dump(exclude_unset=True))


@router.delete("/{owner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_owner(
    owner_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    """Delete an owner with no properties."""
    await service.delete_owner(caller, owner_id)

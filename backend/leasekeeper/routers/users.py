"""Users router (super admin)."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip
from leasekeeper.core.security import require_super_admin
from leasekeeper.models.enums import UserRole
from leasekeeper.schemas.account import UserCreate, UserResponse, UserStatusUpdate
from leasekeeper.services.accounts import AccountService

router = APIRouter(prefix="/users", tags=["users"])


def get_account_service(request: Request, db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(db, ip_address=client_ip(request))


@router.get("", response_model=list[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    return await service.list_users(role=role, is_active=is_active, search=search)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    """Create a user with the profile its role requires."""
    return await service.create_user(caller, data.model_dump())


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    return await service.get_user(user_id)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    return await service.set_active(caller, user_id, data.is_active)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_super_admin),
):
    await service.delete_user(caller, user_id)

"""Tenants router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from leasekeeper.core.caller import Caller
from leasekeeper.core.security import get_current_caller, require_staff
from leasekeeper.routers.users import get_account_service
from leasekeeper.schemas.account import TenantCreate, TenantResponse, TenantUpdate
from leasekeeper.services.accounts import AccountService

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("", response_model=list[TenantResponse])
async def list_tenants(
    property_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.list_tenants(caller, property_id=property_id, is_active=is_active)


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    data: TenantCreate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_staff),
):
    """Provision a tenant on a property. The tenant becomes active with their first lease."""
    return await service.create_tenant(caller, data.model_dump())


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get_tenant(caller, tenant_id)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: UUID,
    data: TenantUpdate,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.update_tenant(caller, tenant_id, data.model_dump(exclude_unset=True))


@router.post("/{tenant_id}/deactivate", response_model=TenantResponse)
async def deactivate_tenant(
    tenant_id: UUID,
    service: AccountService = Depends(get_account_service),
    caller: Caller = Depends(require_staff),
):
    return await service.deactivate_tenant(caller, tenant_id)

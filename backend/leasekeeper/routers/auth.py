"""Auth router: the resolved caller."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip, get_flags
from leasekeeper.core.security import get_current_caller
from leasekeeper.schemas.account import MeResponse, MeUpdate, UserResponse
from leasekeeper.services.accounts import AccountService
from leasekeeper.services.feature_flags import FeatureFlagService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
    flags: FeatureFlagService = Depends(get_flags),
):
    """Current user, role, profile ids and the feature flags as evaluated for them."""
    user = await AccountService(db).get_user(caller.user_id)
    snapshot = await flags.snapshot()
    return MeResponse(
        user=UserResponse.model_validate(user),
        role=caller.role,
        owner_id=getattr(caller, "owner_id", None),
        manager_id=getattr(caller, "manager_id", None),
        tenant_id=getattr(caller, "tenant_id", None),
        property_id=getattr(caller, "property_id", None),
        permissions=dict(getattr(caller, "permissions", {}) or {}),
        features={name: snapshot.evaluate(name, caller.user_id, caller.role) for name in snapshot.flags},
    )


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: MeUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """Update own name, phone or push token."""
    service = AccountService(db, ip_address=client_ip(request))
    return await service.update_me(caller, data.model_dump(exclude_unset=True))

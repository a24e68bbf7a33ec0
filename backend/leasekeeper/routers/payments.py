"""Payments router."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.config import get_settings
from leasekeeper.core.database import get_db
from leasekeeper.core.deps import client_ip, get_storage, require_feature
from leasekeeper.core.security import get_current_caller, require_roles, require_staff
from leasekeeper.models.enums import PaymentStatus, UserRole
from leasekeeper.schemas.payment import (
    MarkPaidRequest,
    PaymentAnalyticsResponse,
    PaymentCreate,
    PaymentListResponse,
    PaymentReasonRequest,
    PaymentResponse,
    PaymentUpdate,
    ReceiptResponse,
)
from leasekeeper.services.feature_flags import ANALYTICS_DASHBOARD, PAYMENT_PROCESSING
from leasekeeper.services.payments import PaymentService
from leasekeeper.services.storage import StorageService

router = APIRouter(prefix="/payments", tags=["payments"])

settings = get_settings()

require_tenant = require_roles(UserRole.TENANT)


def get_payment_service(request: Request, db: AsyncSession = Depends(get_db)) -> PaymentService:
    return PaymentService(db, ip_address=client_ip(request))


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    lease_id: Optional[UUID] = Query(None),
    tenant_id: Optional[UUID] = Query(None),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    due_from: Optional[date] = Query(None),
    due_to: Optional[date] = Query(None),
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(get_current_caller),
):
    payments = await service.list_payments(
        caller,
        lease_id=lease_id,
        tenant_id=tenant_id,
        status=status_filter,
        due_from=due_from,
        due_to=due_to,
    )
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.get("/overdue", response_model=PaymentListResponse)
async def list_overdue_payments(
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(get_current_caller),
):
    payments = await service.list_overdue(caller)
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.get("/analytics", response_model=PaymentAnalyticsResponse)
async def payment_analytics(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    property_id: Optional[UUID] = Query(None),
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
    _: Caller = Depends(require_feature(ANALYTICS_DASHBOARD)),
):
    """Counts and cent totals by status and by settlement method."""
    return await service.analytics(caller, start=start, end=end, property_id=property_id)


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentCreate,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    return await service.create(caller, **data.model_dump())


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(get_current_caller),
):
    return await service.get(caller, payment_id)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: UUID,
    data: PaymentUpdate,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    """Edit amount, due date or notes of a PENDING payment."""
    return await service.update(caller, payment_id, data.model_dump(exclude_unset=True))


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    await service.delete(caller, payment_id)


@router.post("/{payment_id}/pay", response_model=PaymentResponse)
async def settle_payment_online(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_tenant),
    _: Caller = Depends(require_feature(PAYMENT_PROCESSING)),
):
    """Tenant settles their own payment. The receipt is issued asynchronously."""
    return await service.settle_online(caller, payment_id)


@router.post("/{payment_id}/mark-paid", response_model=PaymentResponse)
async def mark_payment_paid(
    payment_id: UUID,
    data: MarkPaidRequest,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    return await service.mark_paid(
        caller,
        payment_id,
        method=data.method,
        transaction_id=data.transaction_id,
        notes=data.notes,
        paid_date=data.paid_date,
    )


@router.post("/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment(
    payment_id: UUID,
    data: PaymentReasonRequest,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    return await service.cancel(caller, payment_id, reason=data.reason)


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: UUID,
    data: PaymentReasonRequest,
    service: PaymentService = Depends(get_payment_service),
    caller: Caller = Depends(require_staff),
):
    return await service.refund(caller, payment_id, reason=data.reason)


@router.get("/{payment_id}/receipt", response_model=ReceiptResponse)
async def get_payment_receipt(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    storage: Optional[StorageService] = Depends(get_storage),
    caller: Caller = Depends(get_current_caller),
):
    """Receipt metadata with a freshly signed download link."""
    receipt = await service.get_receipt(caller, payment_id)
    ttl = settings.receipt_url_ttl_seconds
    url = await storage.get_download_url(receipt.object_path, ttl) if storage else receipt.url
    return ReceiptResponse(
        id=receipt.id,
        payment_id=receipt.payment_id,
        receipt_number=receipt.receipt_number,
        amount_cents=receipt.amount_cents,
        issued_at=receipt.issued_at,
        download_url=url,
        expires_in_seconds=ttl,
    )

"""Payment and receipt schemas."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from leasekeeper.models.enums import PaymentMethod, PaymentStatus
from leasekeeper.schemas.base import BaseSchema, IDMixin, PatchSchema, TimestampMixin


class PaymentCreate(BaseSchema):
    lease_id: UUID
    tenant_id: UUID
    amount_cents: int = Field(..., gt=0)
    due_date: date
    notes: Optional[str] = None


class PaymentUpdate(PatchSchema):
    """Only PENDING payments can be edited."""

    NOT_NULL = ("amount_cents", "due_date")

    amount_cents: Optional[int] = Field(None, gt=0)
    due_date: Optional[date] = None
    notes: Optional[str] = None


class MarkPaidRequest(BaseSchema):
    method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None


class PaymentReasonRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseSchema, IDMixin, TimestampMixin):
    lease_id: UUID
    tenant_id: UUID
    amount_cents: int
    status: PaymentStatus
    due_date: date
    paid_date: Optional[datetime] = None
    method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None


class PaymentListResponse(BaseSchema):
    payments: list[PaymentResponse]
    total: int


class ReceiptResponse(BaseSchema, IDMixin):
    payment_id: UUID
    receipt_number: str
    amount_cents: int
    issued_at: datetime
    download_url: str
    expires_in_seconds: int


class StatusTotals(BaseSchema):
    count: int
    amount_cents: int


class PaymentAnalyticsResponse(BaseSchema):
    by_status: dict[str, StatusTotals]
    by_method: dict[str, StatusTotals]
    total_count: int
    total_amount_cents: int
    collected_cents: int
    outstanding_cents: int

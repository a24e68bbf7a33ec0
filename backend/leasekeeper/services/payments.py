"""Payment lifecycle.

States: PENDING -> {PAID, OVERDUE, CANCELLED}; OVERDUE -> {PAID, CANCELLED};
PAID -> REFUNDED. CANCELLED and REFUNDED are terminal, and only the overdue
sweep moves PENDING -> OVERDUE.

Every status flip is a conditional UPDATE guarded on the current status, so
two concurrent settlements of one payment give exactly one success. Receipts
and notifications go through the outbox and never roll back a settlement.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller
from leasekeeper.core.errors import Conflict, NotFound, ValidationFailed
from leasekeeper.core.money import format_cents
from leasekeeper.models.enums import AuditAction, NotificationType, PaymentMethod, PaymentStatus
from leasekeeper.models.lease import Lease
from leasekeeper.models.payment import Payment, Receipt
from leasekeeper.models.property import Property
from leasekeeper.models.user import Owner, Tenant
from leasekeeper.services.audit import AuditService
from leasekeeper.services.authorization import (
    Action,
    Capability,
    OwnershipChain,
    Resource,
    authorize,
    payment_chain,
    scope_payments,
)
from leasekeeper.services.jobs import JobsService

logger = logging.getLogger(__name__)

SETTLEABLE = (PaymentStatus.PENDING, PaymentStatus.OVERDUE)
OUTSTANDING = SETTLEABLE
UNDELETABLE = (PaymentStatus.PAID, PaymentStatus.REFUNDED)
EDITABLE_FIELDS = ("amount_cents", "due_date", "notes")


def settlement_conflict(status: PaymentStatus) -> Conflict:
    if status == PaymentStatus.PAID:
        return Conflict("Payment is already paid")
    return Conflict(f"Cannot settle a {status.value} payment")


def new_transaction_id() -> str:
    return f"TXN-{uuid.uuid4().hex[:16].upper()}"


class PaymentService:
    """Payment operations for an authenticated caller."""

    def __init__(self, db: AsyncSession, ip_address: Optional[str] = None):
        self.db = db
        self.ip_address = ip_address
        self.audit = AuditService(db)
        self.jobs = JobsService(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load(self, payment_id: UUID) -> tuple[Payment, Property]:
        result = await self.db.execute(
            select(Payment, Property)
            .join(Lease, Payment.lease_id == Lease.id)
            .join(Property, Lease.property_id == Property.id)
            .where(Payment.id == payment_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Payment not found")
        return row[0], row[1]

    async def _current_status(self, payment_id: UUID) -> Optional[PaymentStatus]:
        return await self.db.scalar(select(Payment.status).where(Payment.id == payment_id))

    async def _tenant_user_id(self, tenant_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(Tenant.user_id).where(Tenant.id == tenant_id))

    async def _owner_user_id(self, owner_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(Owner.user_id).where(Owner.id == owner_id))

    def _scoped(self, query, caller: Caller, property_id: Optional[UUID] = None):
        query = scope_payments(query, caller)
        if property_id:
            query = query.where(
                Payment.lease_id.in_(select(Lease.id).where(Lease.property_id == property_id))
            )
        return query

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_payments(
        self,
        caller: Caller,
        lease_id: Optional[UUID] = None,
        tenant_id: Optional[UUID] = None,
        status: Optional[PaymentStatus] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
    ) -> list[Payment]:
        query = self._scoped(select(Payment), caller)
        if lease_id:
            query = query.where(Payment.lease_id == lease_id)
        if tenant_id:
            query = query.where(Payment.tenant_id == tenant_id)
        if status:
            query = query.where(Payment.status == status)
        if due_from:
            query = query.where(Payment.due_date >= due_from)
        if due_to:
            query = query.where(Payment.due_date <= due_to)
        result = await self.db.execute(query.order_by(Payment.due_date.desc()))
        return list(result.scalars().all())

    async def list_overdue(self, caller: Caller) -> list[Payment]:
        query = self._scoped(select(Payment), caller).where(Payment.status == PaymentStatus.OVERDUE)
        result = await self.db.execute(query.order_by(Payment.due_date))
        return list(result.scalars().all())

    async def get(self, caller: Caller, payment_id: UUID) -> Payment:
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.READ)
        return payment

    async def get_receipt(self, caller: Caller, payment_id: UUID) -> Receipt:
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.READ)
        receipt = await self.db.scalar(select(Receipt).where(Receipt.payment_id == payment.id))
        if receipt is None:
            raise NotFound("No receipt has been issued for this payment")
        return receipt

    async def analytics(
        self,
        caller: Caller,
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        """Counts and cent sums by status and by method, within the caller's scope.

        Sums are taken over integer cents in the database, so totals are exact.
        """
        def windowed(query):
            query = self._scoped(query.select_from(Payment), caller, property_id)
            if start:
                query = query.where(Payment.due_date >= start)
            if end:
                query = query.where(Payment.due_date <= end)
            return query

        amount = func.coalesce(func.sum(Payment.amount_cents), 0)

        by_status: dict[str, dict[str, int]] = {
            s.value: {"count": 0, "amount_cents": 0} for s in PaymentStatus
        }
        rows = await self.db.execute(
            windowed(select(Payment.status, func.count(Payment.id), amount)).group_by(Payment.status)
        )
        for status, count, total in rows.all():
            by_status[status.value] = {"count": int(count), "amount_cents": int(total)}

        by_method: dict[str, dict[str, int]] = {}
        rows = await self.db.execute(
            windowed(select(Payment.method, func.count(Payment.id), amount))
            .where(Payment.status == PaymentStatus.PAID)
            .group_by(Payment.method)
        )
        for method, count, total in rows.all():
            key = method.value if method else "UNSPECIFIED"
            by_method[key] = {"count": int(count), "amount_cents": int(total)}

        return {
            "by_status": by_status,
            "by_method": by_method,
            "total_count": sum(v["count"] for v in by_status.values()),
            "total_amount_cents": sum(v["amount_cents"] for v in by_status.values()),
            "collected_cents": by_status[PaymentStatus.PAID.value]["amount_cents"],
            "outstanding_cents": sum(by_status[s.value]["amount_cents"] for s in OUTSTANDING),
        }

    # ------------------------------------------------------------------
    # Creation and edits
    # ------------------------------------------------------------------

    async def create(
        self,
        caller: Caller,
        lease_id: UUID,
        tenant_id: UUID,
        amount_cents: int,
        due_date: date,
        notes: Optional[str] = None,
    ) -> Payment:
        """Record an amount due against a lease."""
        result = await self.db.execute(
            select(Lease, Property)
            .join(Property, Lease.property_id == Property.id)
            .where(Lease.id == lease_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Lease not found")
        lease, prop = row

        authorize(
            caller,
            OwnershipChain(Resource.PAYMENT, owner_id=prop.owner_id, property_id=prop.id, tenant_id=lease.tenant_id),
            Action.CREATE,
        )

        if lease.tenant_id != tenant_id:
            raise ValidationFailed("tenant_id does not match the tenant on the lease")
        if amount_cents <= 0:
            raise ValidationFailed("amount_cents must be positive")

        payment = Payment(
            lease_id=lease.id,
            tenant_id=lease.tenant_id,
            amount_cents=amount_cents,
            due_date=due_date,
            status=PaymentStatus.PENDING,
            notes=notes,
        )
        self.db.add(payment)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.PAYMENT_CREATED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={"lease_id": str(lease.id), "amount_cents": amount_cents, "due_date": due_date.isoformat()},
            ip_address=self.ip_address,
        )
        tenant_user_id = await self._tenant_user_id(lease.tenant_id)
        if tenant_user_id:
            await self.jobs.enqueue_notification(
                [tenant_user_id],
                title="New payment due",
                message=f"A payment of {format_cents(amount_cents)} for {prop.name} is due on {due_date}.",
                notification_type=NotificationType.PAYMENT_REMINDER,
                data={"payment_id": str(payment.id), "lease_id": str(lease.id)},
            )

        await self.db.commit()
        logger.info(f"[PAYMENT] Created payment {payment.id} on lease {lease.id}")
        return payment

    async def update(self, caller: Caller, payment_id: UUID, changes: dict[str, Any]) -> Payment:
        """Amend amount, due date or notes. Only PENDING payments are editable."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.WRITE, Capability.MANAGE_PAYMENTS)

        if payment.status != PaymentStatus.PENDING:
            raise Conflict(f"Cannot update a {payment.status.value} payment")

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}")
        for field in ("amount_cents", "due_date"):
            if field in changes and changes[field] is None:
                raise ValidationFailed(f"{field} cannot be null")
        if "amount_cents" in changes and changes["amount_cents"] <= 0:
            raise ValidationFailed("amount_cents must be positive")

        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(**changes, updated_at=datetime.utcnow())
        )
        if not result.rowcount:
            status = await self._current_status(payment.id)
            raise Conflict(f"Cannot update a {status.value} payment")
        await self.db.refresh(payment)

        await self.audit.log(
            action=AuditAction.PAYMENT_UPDATED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={k: v.isoformat() if isinstance(v, date) else v for k, v in changes.items()},
            ip_address=self.ip_address,
        )
        await self.db.commit()
        return payment

    async def delete(self, caller: Caller, payment_id: UUID) -> None:
        """Delete an unsettled payment. Settled ones are refunded instead."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.DELETE, Capability.MANAGE_PAYMENTS)

        if payment.status == PaymentStatus.PAID:
            raise Conflict("Cannot delete a PAID payment; refund it instead")
        if payment.status in UNDELETABLE:
            raise Conflict(f"Cannot delete a {payment.status.value} payment")

        await self.audit.log(
            action=AuditAction.PAYMENT_DELETED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={"status": payment.status.value, "amount_cents": payment.amount_cents},
            ip_address=self.ip_address,
        )
        await self.db.delete(payment)
        await self.db.commit()
        logger.info(f"[PAYMENT] Deleted payment {payment_id}")

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def claim_settlement(
        self,
        payment_id: UUID,
        method: PaymentMethod,
        transaction_id: Optional[str],
        paid_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Flip PENDING/OVERDUE -> PAID. False when another settlement won."""
        values: dict[str, Any] = dict(
            status=PaymentStatus.PAID,
            method=method,
            transaction_id=transaction_id,
            paid_date=paid_date or datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        if notes is not None:
            values["notes"] = notes
        try:
            result = await self.db.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status.in_(SETTLEABLE))
                .values(**values)
            )
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(f"Transaction id {transaction_id} is already recorded on another payment")
        return bool(result.rowcount)

    async def _after_settlement(
        self,
        caller: Caller,
        payment: Payment,
        prop: Property,
        previous: PaymentStatus,
    ) -> Payment:
        await self.db.refresh(payment)

        await self.audit.log(
            action=AuditAction.PAYMENT_SETTLED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={
                "previous_status": previous.value,
                "method": payment.method.value if payment.method else None,
                "transaction_id": payment.transaction_id,
                "amount_cents": payment.amount_cents,
            },
            ip_address=self.ip_address,
        )
        await self.jobs.enqueue_issue_receipt(payment.id)

        recipients = [await self._tenant_user_id(payment.tenant_id), await self._owner_user_id(prop.owner_id)]
        await self.jobs.enqueue_notification(
            [uid for uid in recipients if uid],
            title="Payment received",
            message=(
                f"Payment of {format_cents(payment.amount_cents)} for {prop.name} "
                f"was received. Transaction: {payment.transaction_id or 'n/a'}."
            ),
            notification_type=NotificationType.PAYMENT,
            data={"payment_id": str(payment.id)},
            unique_scope=f"payment_confirmation:payment:{payment.id}",
        )

        await self.db.commit()
        logger.info(f"[PAYMENT] Settled payment {payment.id} via {payment.method.value if payment.method else '-'}")
        return payment

    async def settle_online(self, caller: Caller, payment_id: UUID) -> Payment:
        """Tenant pays their own payment. No gateway is involved."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.SETTLE)

        previous = payment.status
        if previous not in SETTLEABLE:
            raise settlement_conflict(previous)

        if not await self.claim_settlement(payment.id, PaymentMethod.ONLINE, new_transaction_id()):
            raise settlement_conflict(await self._current_status(payment.id))
        return await self._after_settlement(caller, payment, prop, previous)

    async def mark_paid(
        self,
        caller: Caller,
        payment_id: UUID,
        method: PaymentMethod,
        transaction_id: Optional[str] = None,
        notes: Optional[str] = None,
        paid_date: Optional[datetime] = None,
    ) -> Payment:
        """Staff records a payment received outside the system."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.WRITE, Capability.APPROVE_PAYMENTS)

        previous = payment.status
        if previous not in SETTLEABLE:
            raise settlement_conflict(previous)

        settled = await self.claim_settlement(
            payment.id,
            method,
            transaction_id or new_transaction_id(),
            paid_date=paid_date,
            notes=notes,
        )
        if not settled:
            raise settlement_conflict(await self._current_status(payment.id))
        return await self._after_settlement(caller, payment, prop, previous)

    async def cancel(self, caller: Caller, payment_id: UUID, reason: Optional[str] = None) -> Payment:
        """PENDING/OVERDUE -> CANCELLED."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.WRITE, Capability.MANAGE_PAYMENTS)

        previous = payment.status
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status.in_(SETTLEABLE))
            .values(status=PaymentStatus.CANCELLED, updated_at=datetime.utcnow())
        )
        if not result.rowcount:
            status = await self._current_status(payment.id)
            raise Conflict(f"Cannot cancel a {status.value} payment")
        await self.db.refresh(payment)

        await self.audit.log(
            action=AuditAction.PAYMENT_CANCELLED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={"previous_status": previous.value, "reason": reason},
            ip_address=self.ip_address,
        )
        tenant_user_id = await self._tenant_user_id(payment.tenant_id)
        if tenant_user_id:
            await self.jobs.enqueue_notification(
                [tenant_user_id],
                title="Payment cancelled",
                message=f"The payment of {format_cents(payment.amount_cents)} due {payment.due_date} was cancelled.",
                notification_type=NotificationType.PAYMENT,
                data={"payment_id": str(payment.id)},
            )
        await self.db.commit()
        return payment

    async def refund(self, caller: Caller, payment_id: UUID, reason: Optional[str] = None) -> Payment:
        """PAID -> REFUNDED. The receipt stays on record."""
        payment, prop = await self._load(payment_id)
        authorize(caller, payment_chain(payment, prop), Action.WRITE, Capability.APPROVE_PAYMENTS)

        now = datetime.utcnow()
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PAID)
            .values(status=PaymentStatus.REFUNDED, refunded_at=now, refund_reason=reason, updated_at=now)
        )
        if not result.rowcount:
            status = await self._current_status(payment.id)
            raise Conflict(f"Cannot refund a {status.value} payment; only PAID payments can be refunded")
        await self.db.refresh(payment)

        await self.audit.log(
            action=AuditAction.PAYMENT_REFUNDED,
            resource_type=Resource.PAYMENT.value,
            resource_id=payment.id,
            user_id=caller.user_id,
            details={"amount_cents": payment.amount_cents, "reason": reason},
            ip_address=self.ip_address,
        )
        tenant_user_id = await self._tenant_user_id(payment.tenant_id)
        if tenant_user_id:
            await self.jobs.enqueue_notification(
                [tenant_user_id],
                title="Payment refunded",
                message=f"Your payment of {format_cents(payment.amount_cents)} was refunded.",
                notification_type=NotificationType.PAYMENT,
                data={"payment_id": str(payment.id)},
            )
        await self.db.commit()
        logger.info(f"[PAYMENT] Refunded payment {payment.id}")
        return payment

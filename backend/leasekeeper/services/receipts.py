"""Receipt issuance for settled payments."""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.config import get_settings
from leasekeeper.core.money import format_cents
from leasekeeper.models.enums import PaymentStatus
from leasekeeper.models.lease import Lease
from leasekeeper.models.payment import Payment, Receipt
from leasekeeper.models.property import Property
from leasekeeper.models.user import Tenant, User
from leasekeeper.services.pdf_generator import PDFGenerator
from leasekeeper.services.storage import StorageService

logger = logging.getLogger(__name__)

settings = get_settings()


def receipt_number_for(payment: Payment) -> str:
    paid = payment.paid_date or datetime.utcnow()
    return f"RCP-{paid:%Y%m%d}-{payment.id.hex[:8].upper()}"


class ReceiptService:
    """Builds, stores and records the receipt of a settled payment.

    Idempotent: a payment that already has a receipt is returned unchanged,
    so a retried job never produces a second receipt.
    """

    def __init__(self, db: AsyncSession, storage: StorageService, pdf: Optional[PDFGenerator] = None):
        self.db = db
        self.storage = storage
        self.pdf = pdf or PDFGenerator(brand=settings.app_name)

    async def issue(self, payment_id: UUID) -> Optional[Receipt]:
        existing = await self.db.scalar(select(Receipt).where(Receipt.payment_id == payment_id))
        if existing is not None:
            return existing

        result = await self.db.execute(
            select(Payment, Lease, Property, Tenant, User)
            .join(Lease, Payment.lease_id == Lease.id)
            .join(Property, Lease.property_id == Property.id)
            .join(Tenant, Payment.tenant_id == Tenant.id)
            .join(User, Tenant.user_id == User.id)
            .where(Payment.id == payment_id)
        )
        row = result.one_or_none()
        if row is None:
            logger.warning(f"[RECEIPT] Payment {payment_id} not found; nothing to issue")
            return None

        payment, lease, prop, tenant, user = row
        if payment.status not in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            logger.warning(f"[RECEIPT] Payment {payment_id} is {payment.status.value}; not issuing")
            return None

        receipt_number = receipt_number_for(payment)
        issued_at = datetime.utcnow()
        content = await asyncio.to_thread(
            self.pdf.generate_receipt,
            {
                "receipt_number": receipt_number,
                "issued_at": issued_at,
                "tenant_name": user.full_name,
                "tenant_email": user.email,
                "property_name": prop.name,
                "property_address": f"{prop.address_line1}, {prop.city}, {prop.state} {prop.zip_code}",
                "amount": format_cents(payment.amount_cents, settings.currency),
                "due_date": payment.due_date.isoformat(),
                "paid_date": payment.paid_date,
                "method": payment.method.value if payment.method else None,
                "transaction_id": payment.transaction_id,
                "notes": payment.notes,
            },
        )

        object_path = self.storage.receipt_object_path(prop.owner_id, payment.id, receipt_number)
        url = await self.storage.store_pdf(object_path, content)

        receipt = Receipt(
            payment_id=payment.id,
            receipt_number=receipt_number,
            amount_cents=payment.amount_cents,
            object_path=object_path,
            url=url,
            issued_at=issued_at,
        )
        self.db.add(receipt)
        try:
            await self.db.commit()
        except IntegrityError:
            # Issued concurrently by another worker
            await self.db.rollback()
            return await self.db.scalar(select(Receipt).where(Receipt.payment_id == payment_id))

        logger.info(f"[RECEIPT] Issued {receipt_number} for payment {payment.id}")
        return receipt

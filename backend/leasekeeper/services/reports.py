"""Analytics and report aggregation.

All reports are read-only and narrowed to the caller's ownership scope.
Money stays in integer cents until it is formatted for export.
"""

import asyncio
import csv
import io
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leasekeeper.core.caller import Caller, TenantCaller
from leasekeeper.core.config import get_settings
from leasekeeper.core.errors import Forbidden, ValidationFailed
from leasekeeper.core.money import format_cents
from leasekeeper.models.analytics import AnalyticsSnapshot
from leasekeeper.models.complaint import Complaint
from leasekeeper.models.enums import (
    ComplaintStatus,
    LeaseStatus,
    MaintenanceStatus,
    PaymentStatus,
)
from leasekeeper.models.lease import Lease
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.models.payment import Payment
from leasekeeper.models.property import Property
from leasekeeper.models.user import Tenant, User
from leasekeeper.services.authorization import (
    scope_complaints,
    scope_maintenance,
    scope_owner_id,
    scope_payments,
    scope_properties,
    scope_tenants,
)
from leasekeeper.services.payments import PaymentService
from leasekeeper.services.pdf_generator import PDFGenerator

settings = get_settings()

FINANCIAL_HEADERS = ["Due Date", "Property", "Tenant", "Amount", "Status", "Method", "Paid On", "Transaction"]
OCCUPANCY_HEADERS = ["Property", "City", "Status", "Occupied", "Tenant", "Lease Ends", "Monthly Rent"]


def occupancy_bps(occupied: int, total: int) -> int:
    """Occupancy in basis points, rounded half up."""
    if total <= 0:
        return 0
    return (occupied * 10000 * 2 + total) // (total * 2)


async def owner_occupancy(
    db: AsyncSession,
    owner_id: Optional[UUID],
    on_date: Optional[date],
    property_id: Optional[UUID] = None,
) -> list[dict[str, Any]]:
    """Per-property occupancy: occupied iff an ACTIVE lease covers ``on_date``.

    With no ``on_date`` any ACTIVE lease counts.
    """
    query = select(Property)
    if owner_id is not None:
        query = query.where(Property.owner_id == owner_id)
    if property_id is not None:
        query = query.where(Property.id == property_id)
    properties = (await db.execute(query.order_by(Property.name))).scalars().all()
    if not properties:
        return []

    lease_query = (
        select(Lease, User)
        .join(Tenant, Lease.tenant_id == Tenant.id)
        .join(User, Tenant.user_id == User.id)
        .where(
            Lease.property_id.in_([p.id for p in properties]),
            Lease.status == LeaseStatus.ACTIVE,
        )
    )
    if on_date is not None:
        lease_query = lease_query.where(Lease.start_date <= on_date, Lease.end_date > on_date)
    leases = await db.execute(lease_query)
    active = {lease.property_id: (lease, user) for lease, user in leases.all()}

    rows = []
    for prop in properties:
        lease, user = active.get(prop.id, (None, None))
        rows.append({
            "property_id": str(prop.id),
            "name": prop.name,
            "city": prop.city,
            "status": prop.status.value,
            "occupied": lease is not None,
            "tenant_name": user.full_name if user else None,
            "lease_id": str(lease.id) if lease else None,
            "lease_end_date": lease.end_date.isoformat() if lease else None,
            "monthly_rent_cents": lease.monthly_rent_cents if lease else None,
        })
    return rows


class ReportService:
    def __init__(self, db: AsyncSession, pdf: Optional[PDFGenerator] = None):
        self.db = db
        self.pdf = pdf or PDFGenerator(brand=settings.app_name)

    def _require_staff(self, caller: Caller) -> None:
        if isinstance(caller, TenantCaller):
            raise Forbidden("Reports are available to staff only")

    async def _count(self, query) -> int:
        return int(await self.db.scalar(select(func.count()).select_from(query.subquery())) or 0)

    async def dashboard(self, caller: Caller) -> dict[str, Any]:
        self._require_staff(caller)
        today = datetime.utcnow().date()

        properties = scope_properties(select(Property.id, Property.status), caller)
        property_rows = (await self.db.execute(properties)).all()
        by_status: dict[str, int] = {}
        for _, status in property_rows:
            by_status[status.value] = by_status.get(status.value, 0) + 1

        occupancy = await owner_occupancy(self.db, scope_owner_id(caller), today)
        occupied = sum(1 for row in occupancy if row["occupied"])

        return {
            "total_properties": len(property_rows),
            "properties_by_status": by_status,
            "occupied_properties": occupied,
            "occupancy_bps": occupancy_bps(occupied, len(occupancy)),
            "active_tenants": await self._count(
                scope_tenants(select(Tenant.id), caller).where(Tenant.is_active.is_(True))
            ),
            "active_leases": await self._count(
                scope_properties(select(Lease.id).join(Property, Lease.property_id == Property.id), caller)
                .where(Lease.status == LeaseStatus.ACTIVE)
            ),
            "pending_payments": await self._count(
                scope_payments(select(Payment.id), caller).where(Payment.status == PaymentStatus.PENDING)
            ),
            "overdue_payments": await self._count(
                scope_payments(select(Payment.id), caller).where(Payment.status == PaymentStatus.OVERDUE)
            ),
            "open_complaints": await self._count(
                scope_complaints(select(Complaint.id), caller).where(
                    Complaint.status.in_([ComplaintStatus.OPEN, ComplaintStatus.IN_PROGRESS])
                )
            ),
            "open_maintenance_requests": await self._count(
                scope_maintenance(select(MaintenanceRequest.id), caller).where(
                    MaintenanceRequest.status.in_([MaintenanceStatus.OPEN, MaintenanceStatus.IN_PROGRESS])
                )
            ),
        }

    async def payment_analytics(
        self,
        caller: Caller,
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        self._require_staff(caller)
        return await PaymentService(self.db).analytics(caller, start, end, property_id)

    async def financial_report(
        self,
        caller: Caller,
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        self._require_staff(caller)
        if start and end and end < start:
            raise ValidationFailed("end must not be before start")

        query = (
            select(Payment, Property.name, User.first_name, User.last_name)
            .join(Lease, Payment.lease_id == Lease.id)
            .join(Property, Lease.property_id == Property.id)
            .join(Tenant, Payment.tenant_id == Tenant.id)
            .join(User, Tenant.user_id == User.id)
        )
        owner_id = scope_owner_id(caller)
        if owner_id is not None:
            query = query.where(Property.owner_id == owner_id)
        if property_id:
            query = query.where(Property.id == property_id)
        if start:
            query = query.where(Payment.due_date >= start)
        if end:
            query = query.where(Payment.due_date <= end)

        rows = []
        for payment, property_name, first_name, last_name in (
            await self.db.execute(query.order_by(Payment.due_date))
        ).all():
            rows.append({
                "payment_id": str(payment.id),
                "due_date": payment.due_date.isoformat(),
                "property_name": property_name,
                "tenant_name": f"{first_name} {last_name}".strip(),
                "amount_cents": payment.amount_cents,
                "status": payment.status.value,
                "method": payment.method.value if payment.method else None,
                "paid_date": payment.paid_date.isoformat() if payment.paid_date else None,
                "transaction_id": payment.transaction_id,
            })

        summary = await PaymentService(self.db).analytics(caller, start, end, property_id)
        return {
            "start": start.isoformat() if start else None,
            "end": end.isoformat() if end else None,
            "summary": summary,
            "payments": rows,
        }

    async def occupancy_report(self, caller: Caller, property_id: Optional[UUID] = None) -> dict[str, Any]:
        self._require_staff(caller)
        rows = await owner_occupancy(self.db, scope_owner_id(caller), datetime.utcnow().date(), property_id)
        occupied = sum(1 for row in rows if row["occupied"])
        return {
            "total_properties": len(rows),
            "occupied_properties": occupied,
            "vacant_properties": len(rows) - occupied,
            "occupancy_bps": occupancy_bps(occupied, len(rows)),
            "properties": rows,
        }

    async def activity_report(
        self,
        caller: Caller,
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        """Complaint and maintenance counts by status, category and priority."""
        self._require_staff(caller)

        async def breakdown(model, scope) -> dict[str, dict[str, int]]:
            out: dict[str, dict[str, int]] = {}
            for column in ("status", "category", "priority"):
                col = getattr(model, column)
                query = scope(select(col, func.count(model.id)), caller)
                if property_id:
                    query = query.where(model.property_id == property_id)
                if start:
                    query = query.where(model.created_at >= datetime.combine(start, datetime.min.time()))
                if end:
                    query = query.where(model.created_at <= datetime.combine(end, datetime.max.time()))
                result = await self.db.execute(query.group_by(col))
                out[column] = {value.value: int(count) for value, count in result.all()}
            return out

        return {
            "complaints": await breakdown(Complaint, scope_complaints),
            "maintenance": await breakdown(MaintenanceRequest, scope_maintenance),
        }

    async def list_snapshots(
        self,
        caller: Caller,
        owner_id: Optional[UUID] = None,
        limit: int = 12,
    ) -> list[AnalyticsSnapshot]:
        self._require_staff(caller)
        query = select(AnalyticsSnapshot)
        scope = scope_owner_id(caller)
        if scope is not None:
            query = query.where(AnalyticsSnapshot.owner_id == scope)
        elif owner_id:
            query = query.where(AnalyticsSnapshot.owner_id == owner_id)
        result = await self.db.execute(query.order_by(AnalyticsSnapshot.period_start.desc()).limit(limit))
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _financial_table(self, report: dict[str, Any]) -> tuple[list[list[str]], list[list[str]]]:
        currency = settings.currency
        rows = [
            [
                p["due_date"], p["property_name"], p["tenant_name"],
                format_cents(p["amount_cents"], currency), p["status"], p["method"] or "",
                (p["paid_date"] or "")[:10], p["transaction_id"] or "",
            ]
            for p in report["payments"]
        ]
        s = report["summary"]
        summary = [
            ["Payments:", str(s["total_count"])],
            ["Total billed:", format_cents(s["total_amount_cents"], currency)],
            ["Collected:", format_cents(s["collected_cents"], currency)],
            ["Outstanding:", format_cents(s["outstanding_cents"], currency)],
        ]
        return rows, summary

    def _occupancy_table(self, report: dict[str, Any]) -> tuple[list[list[str]], list[list[str]]]:
        rows = [
            [
                p["name"], p["city"], p["status"], "yes" if p["occupied"] else "no",
                p["tenant_name"] or "", p["lease_end_date"] or "",
                format_cents(p["monthly_rent_cents"], settings.currency) if p["monthly_rent_cents"] else "",
            ]
            for p in report["properties"]
        ]
        summary = [
            ["Properties:", str(report["total_properties"])],
            ["Occupied:", str(report["occupied_properties"])],
            ["Occupancy:", f"{report['occupancy_bps'] / 100:.2f}%"],
        ]
        return rows, summary

    async def export(
        self,
        caller: Caller,
        report: str,
        fmt: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[UUID] = None,
    ) -> tuple[bytes, str, str]:
        """Render a report as CSV or PDF. Returns (content, media type, filename)."""
        if report == "financial":
            data = await self.financial_report(caller, start, end, property_id)
            headers = FINANCIAL_HEADERS
            rows, summary = self._financial_table(data)
            title = "Financial Report"
            period = f"{data['start'] or 'beginning'} to {data['end'] or 'today'}"
        elif report == "occupancy":
            data = await self.occupancy_report(caller, property_id)
            headers = OCCUPANCY_HEADERS
            rows, summary = self._occupancy_table(data)
            title = "Occupancy Report"
            period = f"as of {datetime.utcnow().date().isoformat()}"
        else:
            raise ValidationFailed(f"Unknown report: {report}")

        filename = f"{report}-report-{datetime.utcnow():%Y%m%d}"
        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer)
            writer.writerow(headers)
            writer.writerows(rows)
            return buffer.getvalue().encode("utf-8"), "text/csv", f"{filename}.csv"
        if fmt == "pdf":
            content = await asyncio.to_thread(
                self.pdf.generate_table_report, title, period, headers, rows, summary
            )
            return content, "application/pdf", f"{filename}.pdf"
        raise ValidationFailed(f"Unknown export format: {fmt}")

"""
PDF Generator Service for LeaseKeeper.

Generates:
- Payment receipts
- Tabular report exports (financial, occupancy)
"""

import io
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
)

HEADER_COLOR = colors.HexColor('#1a1a2e')
RULE_COLOR = colors.HexColor('#e0e0e0')
MUTED_COLOR = colors.HexColor('#666666')


class PDFGenerator:
    """Generates receipts and report exports."""

    def __init__(self, brand: str = "LeaseKeeper"):
        self.brand = brand
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Add custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name='DocTitle',
            parent=self.styles['Heading1'],
            fontSize=22,
            spaceAfter=24,
            alignment=TA_CENTER,
            textColor=HEADER_COLOR,
        ))
        self.styles.add(ParagraphStyle(
            name='DocSubtitle',
            parent=self.styles['Normal'],
            fontSize=12,
            spaceAfter=18,
            alignment=TA_CENTER,
            textColor=MUTED_COLOR,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=13,
            spaceBefore=16,
            spaceAfter=8,
            textColor=HEADER_COLOR,
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.HexColor('#888888'),
            alignment=TA_CENTER,
            spaceBefore=20,
        ))

    def _label_table(self, rows: List[List[str]]) -> Table:
        table = Table(rows, colWidths=[2.2*inch, 4.3*inch])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('TEXTCOLOR', (0, 0), (0, -1), MUTED_COLOR),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
        ]))
        return table

    def _footer(self, story: list) -> None:
        story.append(Spacer(1, 0.4*inch))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
        story.append(Paragraph(
            f"Generated by {self.brand} on {datetime.utcnow().strftime('%Y-%m-%d %H:%M UTC')}",
            self.styles['Footer']
        ))

    def generate_receipt(self, receipt: Dict[str, Any]) -> bytes:
        """
        Generate a payment receipt.

        Args:
            receipt: receipt_number, issued_at, tenant_name, tenant_email,
                property_name, property_address, amount, due_date, paid_date,
                method, transaction_id, notes

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=0.75*inch,
            leftMargin=0.75*inch,
            topMargin=0.75*inch,
            bottomMargin=0.75*inch,
        )

        story = []
        story.append(Paragraph(self.brand, self.styles['DocTitle']))
        story.append(Paragraph("Rent Payment Receipt", self.styles['DocSubtitle']))

        story.append(Paragraph("RECEIPT", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
        story.append(self._label_table([
            ["Receipt Number:", receipt.get("receipt_number", "N/A")],
            ["Issued:", self._format_datetime(receipt.get("issued_at"))],
        ]))

        story.append(Paragraph("TENANT", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
        story.append(self._label_table([
            ["Name:", receipt.get("tenant_name") or "N/A"],
            ["Email:", receipt.get("tenant_email") or "N/A"],
            ["Property:", receipt.get("property_name") or "N/A"],
            ["Address:", receipt.get("property_address") or "N/A"],
        ]))

        story.append(Paragraph("PAYMENT", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
        payment_rows = [
            ["Amount Paid:", receipt.get("amount", "N/A")],
            ["Due Date:", str(receipt.get("due_date", "N/A"))],
            ["Paid On:", self._format_datetime(receipt.get("paid_date"))],
            ["Method:", receipt.get("method") or "N/A"],
            ["Transaction ID:", receipt.get("transaction_id") or "N/A"],
        ]
        if receipt.get("notes"):
            payment_rows.append(["Notes:", receipt["notes"]])
        story.append(self._label_table(payment_rows))

        self._footer(story)
        doc.build(story)
        buffer.seek(0)
        return buffer.read()

    def generate_table_report(
        self,
        title: str,
        subtitle: str,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        summary: Optional[List[List[str]]] = None,
    ) -> bytes:
        """Render a titled table (with an optional summary block) as a landscape PDF."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=landscape(letter),
            rightMargin=0.5*inch,
            leftMargin=0.5*inch,
            topMargin=0.6*inch,
            bottomMargin=0.6*inch,
        )

        story = []
        story.append(Paragraph(title, self.styles['DocTitle']))
        story.append(Paragraph(subtitle, self.styles['DocSubtitle']))

        if summary:
            story.append(Paragraph("SUMMARY", self.styles['SectionHeader']))
            story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
            story.append(self._label_table(summary))
            story.append(Spacer(1, 0.2*inch))

        story.append(Paragraph("DETAIL", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))

        if rows:
            data = [list(headers)] + [[str(cell) for cell in row] for row in rows]
            table = Table(data, repeatRows=1)
            table.setStyle(TableStyle([
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 8),
                ('BACKGROUND', (0, 0), (-1, 0), HEADER_COLOR),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
                ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
                ('GRID', (0, 0), (-1, -1), 0.5, RULE_COLOR),
                ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
                ('TOPPADDING', (0, 0), (-1, -1), 6),
                ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f9f9f9')]),
            ]))
            story.append(table)
        else:
            story.append(Paragraph("No rows for the selected period.", self.styles['Normal']))

        self._footer(story)
        doc.build(story)
        buffer.seek(0)
        return buffer.read()

    def _format_datetime(self, dt: Any) -> str:
        """Format datetime for display."""
        if dt is None:
            return "N/A"
        if isinstance(dt, str):
            return dt[:19].replace("T", " ")
        if hasattr(dt, 'strftime'):
            return dt.strftime("%Y-%m-%d %H:%M")
        return str(dt)


def get_pdf_generator() -> PDFGenerator:
    """Get PDF generator instance."""
    return PDFGenerator()

"""
Document PDF Generator
Renders estimates, invoices and purchase orders: header, parties, line items
and totals
"""

import io
import logging
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models import CompanySettings
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

DOCUMENT_TITLES = {
    "estimate": "ESTIMATE",
    "invoice": "INVOICE",
    "purchase_order": "PURCHASE ORDER",
}


def money(value: Optional[float]) -> str:
    return f"${(value or 0):,.2f}"


def line_item_amount(item: dict) -> float:
    if item.get("amount") is not None:
        return float(item["amount"])
    return float(item.get("quantity") or 0) * float(item.get("unit_price") or 0)


class DocumentPDFGenerator:
    """Generate a PDF for an estimate, invoice or purchase order"""

    def __init__(self, document, document_type: str, settings: Optional[CompanySettings] = None):
        if document_type not in DOCUMENT_TITLES:
            raise ValueError(f"Unsupported document type: {document_type}")
        self.document = document
        self.document_type = document_type
        self.settings = settings

        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        self.brand_color = colors.HexColor("#1d4ed8")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def _party_lines(self) -> list[list[str]]:
        company = (self.settings.company_name if self.settings else None) or "CommandX"
        if self.document_type == "purchase_order":
            party_label, party_name = "Vendor:", self.document.vendor_name
        else:
            party_label, party_name = "Customer:", self.document.customer_name

        created = self.document.created_at or datetime.utcnow()
        rows = [
            ["From:", company],
            [party_label, party_name or "N/A"],
            ["Number:", self.document.number],
            ["Date:", created.strftime("%B %d, %Y")],
        ]
        if getattr(self.document, "due_date", None):
            rows.append(["Due:", self.document.due_date.strftime("%B %d, %Y")])
        if getattr(self.document, "valid_until", None):
            rows.append(["Valid Until:", self.document.valid_until.strftime("%B %d, %Y")])
        return rows

    def _items_table(self, body_style: ParagraphStyle) -> Table:
        rows = [["Description", "Qty", "Unit Price", "Amount"]]
        for item in self.document.line_items or []:
            rows.append(
                [
                    Paragraph(sanitize_string(str(item.get("description", ""))), body_style),
                    f"{float(item.get('quantity') or 0):g}",
                    money(item.get("unit_price")),
                    money(line_item_amount(item)),
                ]
            )

        table = Table(
            rows,
            colWidths=[
                self.content_width * 0.55,
                self.content_width * 0.1,
                self.content_width * 0.17,
                self.content_width * 0.18,
            ],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#cbd5e1")),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _totals_table(self) -> Table:
        rows = [
            ["Subtotal:", money(self.document.subtotal)],
            ["Tax:", money(self.document.tax_amount)],
            ["Total:", money(self.document.total)],
        ]
        if self.document_type == "invoice":
            paid = self.document.amount_paid or 0
            rows.append(["Paid:", money(paid)])
            rows.append(["Balance Due:", money((self.document.total or 0) - paid)])

        table = Table(rows, colWidths=[1.5 * inch, 1.3 * inch], hAlign="RIGHT")
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (-1, -1), "Helvetica", 10),
                    ("FONT", (0, 2), (-1, 2), "Helvetica-Bold", 11),
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("LINEABOVE", (0, 2), (-1, 2), 0.75, self.dark_gray),
                ]
            )
        )
        return table

    def generate(self) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating {self.document_type} PDF for {self.document.number}")

        buffer = io.BytesIO()
        title = DOCUMENT_TITLES[self.document_type]
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"{title.title()} {self.document.number}",
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "DocTitle",
            parent=styles["Heading1"],
            fontSize=22,
            textColor=self.brand_color,
            spaceAfter=12,
        )
        body_style = ParagraphStyle(
            "DocBody",
            parent=styles["Normal"],
            fontSize=9,
            textColor=self.dark_gray,
        )

        story = [Paragraph(title, title_style), Spacer(1, 0.15 * inch)]

        info_table = Table(self._party_lines(), colWidths=[1.3 * inch, 4.7 * inch])
        info_table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        story.append(info_table)
        story.append(Spacer(1, 0.3 * inch))
        story.append(self._items_table(body_style))
        story.append(Spacer(1, 0.2 * inch))
        story.append(self._totals_table())

        if self.document.notes:
            story.append(Spacer(1, 0.3 * inch))
            story.append(Paragraph(f"<b>Notes:</b> {sanitize_string(self.document.notes)}", body_style))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()
        logger.info(f"✅ {title.title()} PDF generated ({len(pdf_bytes)} bytes)")
        return pdf_bytes

"""Invoice document rendering: one-invoice PDF and list spreadsheet.

Both renderers take already-loaded Invoice rows and return raw bytes. They
never touch the session, so a failed render cannot change stored data.
"""

import io
import logging
from datetime import datetime
from typing import Iterable
from xml.sax.saxutils import escape as xml_escape

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from invoicer.config import settings
from invoicer.models.invoice import Invoice

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SPREADSHEET_COLUMNS = [
    "Invoice No",
    "Date",
    "Customer",
    "Phone",
    "Items",
    "Total",
    "Advance",
    "Grand Total",
    "Status",
]


def money(value) -> str:
    return f"{float(value or 0):,.2f}"


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


def pdf_filename(invoice: Invoice) -> str:
    return f"Invoice-{invoice.invoice_number}.pdf"


def render_invoice_pdf(invoice: Invoice, company_name: str | None = None) -> bytes:
    """Render a single invoice as an A4 PDF."""
    company_name = company_name or settings.COMPANY_NAME
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title=f"Invoice {invoice.invoice_number}",
    )

    styles = getSampleStyleSheet()
    heading = ParagraphStyle("Company", parent=styles["Title"], textColor=colors.navy)
    right = ParagraphStyle("Right", parent=styles["Normal"], alignment=TA_RIGHT)

    story = [
        Paragraph(xml_escape(company_name), heading),
        Spacer(1, 4 * mm),
    ]

    meta = Table(
        [
            [Paragraph("<b>INVOICE</b>", styles["Heading2"]),
             Paragraph(f"Invoice No: {invoice.invoice_number}", right)],
            ["", Paragraph(f"Date: {_format_date(invoice.created_at)}", right)],
        ],
        colWidths=[90 * mm, 92 * mm],
    )
    story.append(meta)
    story.append(Spacer(1, 4 * mm))
    story.append(Paragraph(f"<b>Customer Name:</b> {xml_escape(invoice.customer_name or '-')}", styles["Normal"]))
    story.append(Paragraph(f"Phone No: {xml_escape(invoice.customer_phone or '-')}", styles["Normal"]))
    story.append(Spacer(1, 6 * mm))

    rows = [["Sr.", "Description", "Qty", "Price", "Line Total"]]
    for idx, item in enumerate(invoice.items or [], start=1):
        qty = item.get("qty") or 0
        price = item.get("price") or 0
        rows.append([
            str(idx),
            Paragraph(xml_escape(item.get("description") or ""), styles["Normal"]),
            f"{qty:g}",
            money(price),
            money(qty * price),
        ])

    items_table = Table(rows, colWidths=[14 * mm, 92 * mm, 18 * mm, 28 * mm, 30 * mm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.black),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 6 * mm))

    story.append(Paragraph(f"<b>Total:</b> {money(invoice.total)}", right))
    if invoice.advance:
        story.append(Paragraph(f"Advance: {money(invoice.advance)}", right))
        story.append(Paragraph(f"<b>Grand Total:</b> {money(invoice.grand_total)}", right))
    if invoice.status.value != "open":
        story.append(Spacer(1, 4 * mm))
        story.append(Paragraph(f"Status: {invoice.status.value.upper()}", right))

    doc.build(story)
    logger.debug("Rendered PDF for invoice %s", invoice.invoice_number)
    return buffer.getvalue()


def render_invoices_xlsx(invoices: Iterable[Invoice]) -> bytes:
    """Render invoices as one worksheet, one row per invoice, with a totals row."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Invoices"

    ws.append(SPREADSHEET_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    count = 0
    sum_total = 0.0
    sum_grand_total = 0.0
    for invoice in invoices:
        items = invoice.items or []
        ws.append([
            invoice.invoice_number,
            _format_date(invoice.created_at),
            invoice.customer_name or "",
            invoice.customer_phone or "",
            "; ".join(
                f"{item.get('description') or ''} x{item.get('qty') or 0:g}" for item in items
            ),
            float(invoice.total or 0),
            float(invoice.advance or 0),
            float(invoice.grand_total),
            invoice.status.value,
        ])
        count += 1
        sum_total += float(invoice.total or 0)
        sum_grand_total += float(invoice.grand_total)

    ws.append([f"{count} invoices", "", "", "", "", sum_total, "", sum_grand_total, ""])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)

    for column, width in zip("ABCDEFGHI", (14, 12, 28, 16, 48, 12, 12, 14, 12)):
        ws.column_dimensions[column].width = width

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()

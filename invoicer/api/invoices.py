from datetime import date, timezone
from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, Response, status

from invoicer.api.deps import Store
from invoicer.models.invoice import Invoice, InvoiceStatus
from invoicer.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceDeleteResponse,
    InvoiceFilters,
    InvoiceSummary,
    BulkDeleteRequest,
    BulkUpdateRequest,
    BulkActionResponse,
)
from invoicer.services import exports

logger = logging.getLogger(__name__)
router = APIRouter()


def _isoformat(value) -> Optional[str]:
    if not value:
        return None
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _line_item(item: dict) -> dict:
    return {
        "description": item.get("description") or "",
        "qty": item.get("qty") or 0,
        "price": item.get("price") or 0,
    }


def invoice_to_response(invoice: Invoice) -> dict:
    """Convert Invoice model to response dict with string IDs.

    Rows written by older schema variants may hold NULL flags, advance or
    item fields; they read as False / 0.
    """
    return {
        "id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "customer_name": invoice.customer_name,
        "customer_phone": invoice.customer_phone,
        "items": [_line_item(item) for item in invoice.items or []],
        "total": invoice.total or 0,
        "advance": invoice.advance or 0,
        "grand_total": invoice.grand_total,
        "canceled": bool(invoice.canceled),
        "collected": bool(invoice.collected),
        "status": invoice.status,
        "created_at": _isoformat(invoice.created_at),
        "updated_at": _isoformat(invoice.updated_at),
    }


def invoice_filters(
    search: Optional[str] = Query(None, description="Match invoice number or customer name"),
    date_from: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    status: Optional[InvoiceStatus] = Query(None, description="open | collected | canceled"),
) -> InvoiceFilters:
    return InvoiceFilters(search=search, date_from=date_from, date_to=date_to, status=status)


@router.get("", response_model=list[InvoiceResponse])
async def list_invoices(
    store: Store,
    filters: InvoiceFilters = Depends(invoice_filters),
):
    """List invoices, newest first."""
    invoices = await store.list_invoices(filters)
    return [invoice_to_response(inv) for inv in invoices]


@router.get("/summary", response_model=InvoiceSummary)
async def invoice_summary(
    store: Store,
    filters: InvoiceFilters = Depends(invoice_filters),
):
    """Counts and amounts per lifecycle status."""
    return await store.summary(filters)


@router.get("/export.xlsx")
async def export_invoices_xlsx(
    store: Store,
    filters: InvoiceFilters = Depends(invoice_filters),
):
    """Download the filtered invoice list as a spreadsheet."""
    invoices = await store.list_invoices(filters)
    content = exports.render_invoices_xlsx(invoices)
    return Response(
        content=content,
        media_type=exports.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="invoices.xlsx"'},
    )


@router.post("/bulk-delete", response_model=BulkActionResponse)
async def bulk_delete_invoices(
    request: BulkDeleteRequest,
    store: Store,
):
    """Delete several invoices in one batch, reporting per-id outcome."""
    return await store.bulk_delete(request.ids)


@router.post("/bulk-update", response_model=BulkActionResponse)
async def bulk_update_invoices(
    request: BulkUpdateRequest,
    store: Store,
):
    """Cancel or collect several invoices in one batch."""
    return await store.bulk_update_flags(
        request.ids,
        canceled=request.canceled,
        collected=request.collected,
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    store: Store,
):
    """Get a single invoice by ID."""
    invoice = await store.get(invoice_id)
    return invoice_to_response(invoice)


@router.get("/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    store: Store,
):
    """Download a single invoice as PDF."""
    invoice = await store.get(invoice_id)
    content = exports.render_invoice_pdf(invoice)
    return Response(
        content=content,
        media_type=exports.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{exports.pdf_filename(invoice)}"'},
    )


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    store: Store,
):
    """Create a new invoice. The server assigns the number and total."""
    invoice = await store.create(invoice_data)
    return invoice_to_response(invoice)


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    store: Store,
):
    """Partially update an invoice."""
    invoice = await store.update(invoice_id, invoice_data)
    return invoice_to_response(invoice)


@router.delete("/{invoice_id}", response_model=InvoiceDeleteResponse)
async def delete_invoice(
    invoice_id: int,
    store: Store,
):
    """Delete an invoice permanently."""
    invoice = await store.delete(invoice_id)
    return {
        "message": "Invoice deleted successfully",
        "deleted_invoice": invoice_to_response(invoice),
    }

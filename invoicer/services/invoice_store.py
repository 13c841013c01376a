"""
Invoice persistence operations.

Every write is a single-request, last-write-wins operation. The only atomic
guarantee beyond one statement is that create allocates its number and
inserts the invoice in one transaction, and that each bulk operation commits
once for the whole batch.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import select, delete, func, and_, or_, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.exceptions import BusinessRuleError, ConflictError, NotFoundError, StorageError
from invoicer.models.invoice import Invoice, InvoiceStatus
from invoicer.schemas.invoice import InvoiceCreate, InvoiceFilters, InvoiceUpdate, InvoiceSummary
from invoicer.services import invoice_numbers, lifecycle

logger = logging.getLogger(__name__)

# Columns that cannot hold NULL; an explicit null in a patch is ignored
_NON_NULLABLE_PATCH_FIELDS = ("items", "advance", "canceled", "collected")

_open = and_(Invoice.canceled.is_(False), Invoice.collected.is_(False))
_collected = and_(Invoice.collected.is_(True), Invoice.canceled.is_(False))
_canceled = Invoice.canceled.is_(True)

STATUS_CONDITIONS = {
    InvoiceStatus.open: _open,
    InvoiceStatus.collected: _collected,
    InvoiceStatus.canceled: _canceled,
}


def _start_of_day(day) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def apply_filters(query, filters: Optional[InvoiceFilters]):
    """Narrow a select over Invoice by search text, date range and status."""
    if filters is None:
        return query

    if filters.search:
        term = filters.search.strip()
        if term:
            query = query.where(
                or_(
                    Invoice.invoice_number.icontains(term, autoescape=True),
                    Invoice.customer_name.icontains(term, autoescape=True),
                )
            )

    if filters.date_from:
        query = query.where(Invoice.created_at >= _start_of_day(filters.date_from))

    if filters.date_to:
        # Inclusive of the whole end day
        query = query.where(Invoice.created_at < _start_of_day(filters.date_to + timedelta(days=1)))

    if filters.status:
        query = query.where(STATUS_CONDITIONS[filters.status])

    return query


def _unique_ids(ids) -> list[int]:
    seen = set()
    ordered = []
    for invoice_id in ids:
        if invoice_id not in seen:
            seen.add(invoice_id)
            ordered.append(invoice_id)
    return ordered


def _bulk_response(action: str, total: int, success: list, failed: list) -> dict:
    return {
        "action": action,
        "total": total,
        "success_count": len(success),
        "failed_count": len(failed),
        "results": {"success": success, "failed": failed},
    }


class InvoiceStore:
    """Invoice CRUD bound to one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, operation: str):
        try:
            return await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(operation) from e

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Integrity error during %s: %s", operation, type(e.orig).__name__)
            raise ConflictError(f"Could not {operation}: conflicting record") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(operation) from e

    async def create(self, data: InvoiceCreate) -> Invoice:
        """Allocate a number, total the items and persist a new invoice."""
        try:
            invoice_number = await invoice_numbers.allocate(self.db)
        except StorageError:
            await self.db.rollback()
            raise

        invoice = Invoice(
            invoice_number=invoice_number,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            items=[item.model_dump() for item in data.items],
            advance=data.advance,
            canceled=False,
            collected=False,
        )
        invoice.calculate_totals()

        self.db.add(invoice)
        await self._commit("create invoice")
        logger.info("Created invoice %s (id=%s, total=%s)", invoice.invoice_number, invoice.id, invoice.total)
        return invoice

    async def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> list[Invoice]:
        """All matching invoices, newest first. Not paginated."""
        query = apply_filters(select(Invoice), filters)
        query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        result = await self._execute(query, "list invoices")
        return list(result.scalars().all())

    async def get(self, invoice_id: int) -> Invoice:
        result = await self._execute(
            select(Invoice).where(Invoice.id == invoice_id), "load invoice"
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    async def update(self, invoice_id: int, patch: InvoiceUpdate) -> Invoice:
        """Apply a partial update; fields absent from the patch stay untouched."""
        invoice = await self.get(invoice_id)

        changes = patch.model_dump(exclude_unset=True)
        for field in _NON_NULLABLE_PATCH_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        lifecycle.check_update(invoice, changes)

        for field, value in changes.items():
            setattr(invoice, field, value)

        if "items" in changes:
            invoice.calculate_totals()

        await self._commit("update invoice")
        await self.db.refresh(invoice)
        logger.info("Updated invoice %s fields=%s", invoice.invoice_number, sorted(changes))
        return invoice

    async def delete(self, invoice_id: int) -> Invoice:
        """Hard delete. The number is never handed out again."""
        invoice = await self.get(invoice_id)
        await self.db.delete(invoice)
        await self._commit("delete invoice")
        logger.info("Deleted invoice %s (id=%s)", invoice.invoice_number, invoice_id)
        return invoice

    async def bulk_delete(self, ids: list[int]) -> dict:
        """Delete many invoices in one statement and one transaction.

        Ids that do not resolve are reported as failed; the rest are removed.
        """
        requested = _unique_ids(ids)
        result = await self._execute(
            select(Invoice.id).where(Invoice.id.in_(requested)), "load invoices"
        )
        found = set(result.scalars().all())

        success = [invoice_id for invoice_id in requested if invoice_id in found]
        failed = [
            {"id": str(invoice_id), "error": "Not found"}
            for invoice_id in requested
            if invoice_id not in found
        ]

        if success:
            await self._execute(
                delete(Invoice).where(Invoice.id.in_(success)), "bulk delete invoices"
            )
            await self._commit("bulk delete invoices")

        logger.info("Bulk delete: %d deleted, %d failed", len(success), len(failed))
        return _bulk_response("delete", len(requested), [str(i) for i in success], failed)

    async def bulk_update_flags(
        self,
        ids: list[int],
        canceled: Optional[bool] = None,
        collected: Optional[bool] = None,
    ) -> dict:
        """Set lifecycle flags on many invoices with a single commit."""
        changes = {}
        if canceled is not None:
            changes["canceled"] = canceled
        if collected is not None:
            changes["collected"] = collected

        requested = _unique_ids(ids)
        result = await self._execute(
            select(Invoice).where(Invoice.id.in_(requested)), "load invoices"
        )
        invoices = {invoice.id: invoice for invoice in result.scalars().all()}

        success, failed = [], []
        for invoice_id in requested:
            invoice = invoices.get(invoice_id)
            if invoice is None:
                failed.append({"id": str(invoice_id), "error": "Not found"})
                continue
            try:
                lifecycle.check_update(invoice, changes)
            except BusinessRuleError as e:
                failed.append({"id": str(invoice_id), "error": e.detail})
                continue
            for field, value in changes.items():
                setattr(invoice, field, value)
            success.append(str(invoice_id))

        if success:
            await self._commit("bulk update invoices")

        action = "+".join(
            f"{field}={str(value).lower()}" for field, value in sorted(changes.items())
        )
        logger.info("Bulk update %s: %d updated, %d failed", action, len(success), len(failed))
        return _bulk_response(action, len(requested), success, failed)

    async def summary(self, filters: Optional[InvoiceFilters] = None) -> InvoiceSummary:
        """Status counts and amounts over the filtered invoices."""
        grand_total = Invoice.total - func.coalesce(Invoice.advance, 0)
        query = select(
            func.count(Invoice.id).label("total"),
            func.coalesce(func.sum(case((_open, 1), else_=0)), 0).label("open"),
            func.coalesce(func.sum(case((_collected, 1), else_=0)), 0).label("collected"),
            func.coalesce(func.sum(case((_canceled, 1), else_=0)), 0).label("canceled"),
            func.coalesce(func.sum(case((_canceled, 0), else_=Invoice.total)), 0).label("total_amount"),
            func.coalesce(func.sum(case((_collected, Invoice.total), else_=0)), 0).label("collected_amount"),
            func.coalesce(func.sum(case((_open, grand_total), else_=0)), 0).label("outstanding_amount"),
        ).select_from(Invoice)
        query = apply_filters(query, filters)

        result = await self._execute(query, "summarize invoices")
        row = result.one()
        return InvoiceSummary(
            total=row.total or 0,
            open=row.open or 0,
            collected=row.collected or 0,
            canceled=row.canceled or 0,
            total_amount=float(row.total_amount or 0),
            collected_amount=float(row.collected_amount or 0),
            outstanding_amount=float(row.outstanding_amount or 0),
        )

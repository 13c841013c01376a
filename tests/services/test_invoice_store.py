"""Tests for InvoiceStore persistence operations."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from invoicer.exceptions import NotFoundError
from invoicer.models.invoice import Invoice, InvoiceStatus, compute_total
from invoicer.schemas.invoice import InvoiceCreate, InvoiceFilters, InvoiceUpdate
from invoicer.services.invoice_numbers import current_sequence
from invoicer.services.invoice_store import InvoiceStore
from factories import CanceledInvoiceFactory, CollectedInvoiceFactory, InvoiceFactory


def _create_payload(**overrides) -> InvoiceCreate:
    data = {
        "customer_name": "Ann",
        "customer_phone": "0300-1234567",
        "items": [
            {"description": "Widget", "qty": 2, "price": 5.0},
            {"description": "Gadget", "qty": 1, "price": 2.5},
        ],
    }
    data.update(overrides)
    return InvoiceCreate(**data)


class TestComputeTotal:

    def test_sums_qty_times_price(self):
        assert compute_total([{"qty": 2, "price": 5.0}, {"qty": 3, "price": 1.5}]) == 14.5

    def test_missing_values_count_as_zero(self):
        assert compute_total([{"qty": 2}, {"price": 9}, {"qty": None, "price": 1}]) == 0

    def test_empty(self):
        assert compute_total([]) == 0
        assert compute_total(None) == 0


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_persists_number_and_total(self, test_db):
        store = InvoiceStore(test_db)

        invoice = await store.create(_create_payload())

        assert invoice.id is not None
        assert invoice.invoice_number == "INV-00001"
        assert invoice.total == 12.5
        assert invoice.canceled is False
        assert invoice.collected is False
        assert invoice.status == InvoiceStatus.open
        assert invoice.created_at is not None
        assert await current_sequence(test_db) == 1

    @pytest.mark.asyncio
    async def test_line_items_stored_as_plain_dicts(self, test_db):
        invoice = await InvoiceStore(test_db).create(_create_payload())

        stored = (await test_db.execute(select(Invoice.items).where(Invoice.id == invoice.id))).scalar_one()
        assert stored[0] == {"description": "Widget", "qty": 2.0, "price": 5.0}


class TestGetAndList:

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, test_db):
        with pytest.raises(NotFoundError) as exc_info:
            await InvoiceStore(test_db).get(404)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_list_orders_by_creation_then_id(self, test_db):
        stamp = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
        older = InvoiceFactory(created_at=datetime(2026, 4, 1, tzinfo=timezone.utc))
        first = InvoiceFactory(created_at=stamp)
        second = InvoiceFactory(created_at=stamp)
        test_db.add_all([older, first, second])
        await test_db.commit()

        invoices = await InvoiceStore(test_db).list_invoices()

        assert [inv.id for inv in invoices] == [second.id, first.id, older.id]

    @pytest.mark.asyncio
    async def test_list_combines_filters(self, test_db):
        test_db.add_all([
            InvoiceFactory(customer_name="Kiran", created_at=datetime(2026, 6, 10, tzinfo=timezone.utc)),
            CollectedInvoiceFactory(customer_name="Kiran", created_at=datetime(2026, 6, 11, tzinfo=timezone.utc)),
            InvoiceFactory(customer_name="Kiran", created_at=datetime(2026, 7, 1, tzinfo=timezone.utc)),
            InvoiceFactory(customer_name="Other", created_at=datetime(2026, 6, 12, tzinfo=timezone.utc)),
        ])
        await test_db.commit()

        filters = InvoiceFilters(
            search="kir",
            date_from=date(2026, 6, 1),
            date_to=date(2026, 6, 30),
            status=InvoiceStatus.open,
        )
        invoices = await InvoiceStore(test_db).list_invoices(filters)

        assert len(invoices) == 1
        assert invoices[0].created_at.day == 10


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_without_items_keeps_total(self, test_db):
        store = InvoiceStore(test_db)
        invoice = await store.create(_create_payload())

        updated = await store.update(invoice.id, InvoiceUpdate(customer_name="Ann B"))

        assert updated.customer_name == "Ann B"
        assert updated.total == 12.5
        assert len(updated.items) == 2

    @pytest.mark.asyncio
    async def test_update_items_recomputes_total(self, test_db):
        store = InvoiceStore(test_db)
        invoice = await store.create(_create_payload())

        updated = await store.update(
            invoice.id,
            InvoiceUpdate(items=[{"description": "Bulk", "qty": 100, "price": 0.1}]),
        )

        assert updated.total == pytest.approx(10.0)
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_never_changes_number(self, test_db):
        store = InvoiceStore(test_db)
        invoice = await store.create(_create_payload())

        updated = await store.update(invoice.id, InvoiceUpdate(collected=True))

        assert updated.invoice_number == "INV-00001"
        assert updated.status == InvoiceStatus.collected

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, test_db):
        with pytest.raises(NotFoundError):
            await InvoiceStore(test_db).update(77, InvoiceUpdate(collected=True))


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_keeps_counter(self, test_db):
        store = InvoiceStore(test_db)
        invoice = await store.create(_create_payload())

        deleted = await store.delete(invoice.id)

        assert deleted.invoice_number == "INV-00001"
        assert await store.list_invoices() == []
        assert await current_sequence(test_db) == 1
        assert (await store.create(_create_payload())).invoice_number == "INV-00002"


class TestBulkOperations:

    @pytest.mark.asyncio
    async def test_bulk_delete_all_missing(self, test_db):
        result = await InvoiceStore(test_db).bulk_delete([5, 6])

        assert result["success_count"] == 0
        assert result["failed_count"] == 2
        assert result["results"]["failed"][0] == {"id": "5", "error": "Not found"}

    @pytest.mark.asyncio
    async def test_bulk_cancel_and_collect_together(self, test_db):
        invoice = InvoiceFactory()
        test_db.add(invoice)
        await test_db.commit()

        result = await InvoiceStore(test_db).bulk_update_flags(
            [invoice.id], canceled=True, collected=True
        )

        assert result["action"] == "canceled=true+collected=true"
        assert result["results"]["success"] == [str(invoice.id)]
        await test_db.refresh(invoice)
        assert invoice.status == InvoiceStatus.canceled

    @pytest.mark.asyncio
    async def test_bulk_update_reports_lifecycle_violations(self, test_db, monkeypatch):
        from invoicer.services import lifecycle

        monkeypatch.setattr(lifecycle.settings, "ENFORCE_LIFECYCLE_TRANSITIONS", True)
        open_invoice = InvoiceFactory()
        canceled_invoice = CanceledInvoiceFactory()
        test_db.add_all([open_invoice, canceled_invoice])
        await test_db.commit()

        result = await InvoiceStore(test_db).bulk_update_flags(
            [open_invoice.id, canceled_invoice.id], collected=True
        )

        assert result["results"]["success"] == [str(open_invoice.id)]
        assert result["failed_count"] == 1
        assert result["results"]["failed"][0]["id"] == str(canceled_invoice.id)
        assert "canceled" in result["results"]["failed"][0]["error"]


class TestSummary:

    @pytest.mark.asyncio
    async def test_empty_summary(self, test_db):
        summary = await InvoiceStore(test_db).summary()

        assert summary.total == 0
        assert summary.total_amount == 0
        assert summary.outstanding_amount == 0

    @pytest.mark.asyncio
    async def test_summary_respects_filters(self, test_db):
        test_db.add_all([
            InvoiceFactory(customer_name="Hina", items=[{"qty": 1, "price": 10.0}], total=10.0),
            InvoiceFactory(customer_name="Omar", items=[{"qty": 1, "price": 99.0}], total=99.0),
        ])
        await test_db.commit()

        summary = await InvoiceStore(test_db).summary(InvoiceFilters(search="hina"))

        assert summary.total == 1
        assert summary.open == 1
        assert summary.total_amount == 10.0
        assert summary.outstanding_amount == 10.0

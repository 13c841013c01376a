"""Tests for invoice number formatting and atomic allocation."""

import asyncio
import re

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError

from invoicer.exceptions import StorageError
from invoicer.schemas.invoice import InvoiceCreate
from invoicer.services import invoice_numbers
from invoicer.services.invoice_numbers import (
    allocate,
    current_sequence,
    format_invoice_number,
    parse_invoice_number,
)
from invoicer.services.invoice_store import InvoiceStore

INVOICE_NUMBER_PATTERN = re.compile(r"^INV-\d{5}$")


class TestFormatting:
    """Pure formatting helpers."""

    def test_zero_pads_to_five_digits(self):
        assert format_invoice_number(1) == "INV-00001"
        assert format_invoice_number(42) == "INV-00042"
        assert format_invoice_number(99999) == "INV-99999"

    def test_grows_past_width(self):
        """Values wider than the pad width are never truncated."""
        assert format_invoice_number(123456) == "INV-123456"

    def test_custom_prefix_and_width(self):
        assert format_invoice_number(7, prefix="B-", width=3) == "B-007"

    def test_parse_round_trip(self):
        assert parse_invoice_number("INV-00017") == 17

    def test_parse_rejects_foreign_prefix(self):
        with pytest.raises(ValueError):
            parse_invoice_number("SEED-00001")


class TestAllocation:
    """Counter upsert and increment against SQLite."""

    @pytest.mark.asyncio
    async def test_first_allocation_on_fresh_counter(self, test_db):
        assert await current_sequence(test_db) == 0

        number = await allocate(test_db)
        await test_db.commit()

        assert number == "INV-00001"
        assert await current_sequence(test_db) == 1

    @pytest.mark.asyncio
    async def test_sequential_allocations_increase_by_one(self, test_db):
        numbers = []
        for _ in range(5):
            numbers.append(await allocate(test_db))
            await test_db.commit()

        assert numbers == ["INV-00001", "INV-00002", "INV-00003", "INV-00004", "INV-00005"]

    @pytest.mark.asyncio
    async def test_rollback_returns_number_to_pool(self, test_db):
        """Allocation shares the caller's transaction, so an aborted create leaves no gap."""
        await allocate(test_db)
        await test_db.rollback()

        assert await allocate(test_db) == "INV-00001"

    @pytest.mark.asyncio
    async def test_counters_are_independent(self, test_db):
        await allocate(test_db, counter_id="a")
        await allocate(test_db, counter_id="a")
        assert await allocate(test_db, counter_id="b") == "INV-00001"

    @pytest.mark.asyncio
    async def test_storage_failure_raises_storage_error(self, test_db):
        failure = OperationalError("INSERT", {}, Exception("database is locked"))
        with patch.object(test_db, "execute", AsyncMock(side_effect=failure)):
            with pytest.raises(StorageError) as exc_info:
                await allocate(test_db)

        assert exc_info.value.status_code == 500
        assert "locked" not in exc_info.value.detail

    def test_unsupported_dialect(self):
        with pytest.raises(NotImplementedError):
            invoice_numbers._upsert_increment("mssql", "invoice_number")


class TestConcurrentAllocation:
    """Separate sessions on one database racing for numbers."""

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_distinct_and_consecutive(self, file_session_factory):
        async with file_session_factory() as session:
            prior = await current_sequence(session)

        async def allocate_in_own_session():
            async with file_session_factory() as session:
                number = await allocate(session)
                await session.commit()
                return number

        n = 12
        numbers = await asyncio.gather(*(allocate_in_own_session() for _ in range(n)))

        assert len(set(numbers)) == n
        assert all(INVOICE_NUMBER_PATTERN.match(number) for number in numbers)
        sequences = sorted(parse_invoice_number(number) for number in numbers)
        assert sequences == list(range(prior + 1, prior + n + 1))

    @pytest.mark.asyncio
    async def test_two_simultaneous_creates_on_fresh_counter(self, file_session_factory):
        async def create_in_own_session(name):
            async with file_session_factory() as session:
                invoice = await InvoiceStore(session).create(
                    InvoiceCreate(
                        customer_name=name,
                        items=[{"description": "Widget", "qty": 1, "price": 1.0}],
                    )
                )
                return invoice.invoice_number

        numbers = await asyncio.gather(
            create_in_own_session("First"),
            create_in_own_session("Second"),
        )

        assert sorted(numbers) == ["INV-00001", "INV-00002"]

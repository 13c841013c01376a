"""
Invoice number allocation.

Numbers are minted from a single counter row with one atomic
upsert-increment-returning statement:

    INSERT INTO invoice_counters (id, sequence_value) VALUES (:id, 1)
    ON CONFLICT (id) DO UPDATE SET sequence_value = sequence_value + 1
    RETURNING sequence_value

There is no read-then-write window, so concurrent callers always receive
distinct values. The statement runs in the caller's transaction: if the
invoice insert that follows fails and is rolled back, the increment is
rolled back with it and the sequence stays gap-free.
"""

import logging

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicer.config import settings
from invoicer.exceptions import StorageError
from invoicer.models.counter import InvoiceCounter

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def format_invoice_number(
    sequence: int,
    prefix: str | None = None,
    width: int | None = None,
) -> str:
    """Format a sequence value, e.g. 1 -> "INV-00001"."""
    prefix = settings.INVOICE_NUMBER_PREFIX if prefix is None else prefix
    width = settings.INVOICE_NUMBER_WIDTH if width is None else width
    return f"{prefix}{sequence:0{width}d}"


def parse_invoice_number(invoice_number: str, prefix: str | None = None) -> int:
    """Inverse of format_invoice_number. Raises ValueError on foreign formats."""
    prefix = settings.INVOICE_NUMBER_PREFIX if prefix is None else prefix
    if not invoice_number.startswith(prefix):
        raise ValueError(f"Invoice number {invoice_number!r} lacks prefix {prefix!r}")
    return int(invoice_number[len(prefix):])


def _upsert_increment(dialect_name: str, counter_id: str):
    try:
        insert = _DIALECT_INSERTS[dialect_name]
    except KeyError:
        raise NotImplementedError(f"No atomic counter upsert for dialect {dialect_name!r}")

    stmt = insert(InvoiceCounter).values(id=counter_id, sequence_value=1)
    return stmt.on_conflict_do_update(
        index_elements=[InvoiceCounter.id],
        set_={"sequence_value": InvoiceCounter.sequence_value + 1},
    ).returning(InvoiceCounter.sequence_value)


async def next_sequence(db: AsyncSession, counter_id: str | None = None) -> int:
    """Atomically increment the counter and return the new value."""
    counter_id = counter_id or settings.INVOICE_COUNTER_ID
    stmt = _upsert_increment(db.get_bind().dialect.name, counter_id)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as e:
        raise StorageError("allocate invoice number") from e
    return result.scalar_one()


async def allocate(db: AsyncSession, counter_id: str | None = None) -> str:
    """Mint the next invoice number.

    The caller commits; nothing is persisted until it does.
    """
    sequence = await next_sequence(db, counter_id)
    invoice_number = format_invoice_number(sequence)
    logger.debug("Allocated invoice number %s", invoice_number)
    return invoice_number


async def current_sequence(db: AsyncSession, counter_id: str | None = None) -> int:
    """Last allocated sequence value, 0 before the first allocation."""
    counter_id = counter_id or settings.INVOICE_COUNTER_ID
    try:
        result = await db.execute(
            select(InvoiceCounter.sequence_value).where(InvoiceCounter.id == counter_id)
        )
    except SQLAlchemyError as e:
        raise StorageError("read invoice counter") from e
    return result.scalar_one_or_none() or 0

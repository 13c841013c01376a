from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, JSON
from invoicer.database import Base

# Bumped whenever a column is added that older rows need back-filled
CURRENT_SCHEMA_VERSION = 2


class InvoiceStatus(str, Enum):
    """Lifecycle status derived from the canceled/collected flags."""

    open = "open"
    collected = "collected"
    canceled = "canceled"


def derive_status(canceled: bool, collected: bool) -> InvoiceStatus:
    # canceled wins when both flags are set
    if canceled:
        return InvoiceStatus.canceled
    if collected:
        return InvoiceStatus.collected
    return InvoiceStatus.open


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_total(items) -> float:
    """Sum qty * price over line items.

    Accepts dicts or objects exposing ``qty`` and ``price``. Missing values
    count as zero so legacy rows with partial items still total.
    """
    total = 0
    for item in items or []:
        if isinstance(item, dict):
            qty, price = item.get("qty"), item.get("price")
        else:
            qty, price = item.qty, item.price
        total += (qty or 0) * (price or 0)
    return total


class Invoice(Base):
    """Invoice with line items, derived total and lifecycle flags."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)

    customer_name = Column(String(255))
    customer_phone = Column(String(50))

    # Line items stored as JSON array
    # Each item: {description, qty, price}
    items = Column(JSON, default=list, nullable=False)

    # Derived from items, never set directly by requests
    total = Column(Float, default=0, nullable=False)
    advance = Column(Float, default=0, nullable=False)

    # Lifecycle flags
    canceled = Column(Boolean, default=False, nullable=False)
    collected = Column(Boolean, default=False, nullable=False)

    schema_version = Column(Integer, default=CURRENT_SCHEMA_VERSION, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    def __repr__(self):
        return f"<Invoice {self.invoice_number}>"

    def calculate_totals(self):
        """Recalculate total from line items."""
        self.total = compute_total(self.items)

    @property
    def status(self) -> InvoiceStatus:
        return derive_status(bool(self.canceled), bool(self.collected))

    @property
    def grand_total(self) -> float:
        return (self.total or 0) - (self.advance or 0)

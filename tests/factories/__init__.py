"""
Test factories for generating realistic test data.

Uses factory_boy for declarative test data generation.
"""

from .invoice import (
    LineItemFactory,
    InvoicePayloadFactory,
    InvoiceFactory,
    CollectedInvoiceFactory,
    CanceledInvoiceFactory,
)

__all__ = [
    "LineItemFactory",
    "InvoicePayloadFactory",
    "InvoiceFactory",
    "CollectedInvoiceFactory",
    "CanceledInvoiceFactory",
]

from invoicer.models.invoice import Invoice
from invoicer.models.counter import InvoiceCounter

__all__ = [
    "Invoice",
    "InvoiceCounter",
]

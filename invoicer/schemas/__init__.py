from invoicer.schemas.invoice import (
    LineItem,
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

__all__ = [
    "LineItem",
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceResponse",
    "InvoiceDeleteResponse",
    "InvoiceFilters",
    "InvoiceSummary",
    "BulkDeleteRequest",
    "BulkUpdateRequest",
    "BulkActionResponse",
]

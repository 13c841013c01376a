from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date
from typing import Optional
import math
from invoicer.models.invoice import InvoiceStatus, compute_total


def _require_finite_total(items) -> None:
    if items is not None and not math.isfinite(compute_total(items)):
        raise ValueError("line items total is too large")


class LineItem(BaseModel):
    """Schema for invoice line item."""
    description: str = ""
    qty: float = Field(..., ge=0, allow_inf_nan=False)
    price: float = Field(..., ge=0, allow_inf_nan=False)


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice.

    The invoice number and total are assigned by the server.
    """
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    items: list[LineItem] = Field(..., min_length=1)
    advance: float = Field(0, ge=0, allow_inf_nan=False)

    @field_validator("customer_name")
    @classmethod
    def customer_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("customer_name must not be blank")
        return v

    @model_validator(mode="after")
    def total_is_finite(self) -> "InvoiceCreate":
        _require_finite_total(self.items)
        return self


class InvoiceUpdate(BaseModel):
    """Schema for updating an invoice (all fields optional)."""
    customer_name: Optional[str] = Field(None, max_length=255)
    customer_phone: Optional[str] = Field(None, max_length=50)
    items: Optional[list[LineItem]] = Field(None, min_length=1)
    advance: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    canceled: Optional[bool] = None
    collected: Optional[bool] = None

    @model_validator(mode="after")
    def total_is_finite(self) -> "InvoiceUpdate":
        _require_finite_total(self.items)
        return self


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""
    id: str
    invoice_number: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: list[LineItem]
    total: float
    advance: float
    grand_total: float
    canceled: bool
    collected: bool
    status: InvoiceStatus
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceDeleteResponse(BaseModel):
    """Confirmation payload for a hard delete."""
    message: str
    deleted_invoice: InvoiceResponse


class InvoiceFilters(BaseModel):
    """Filters shared by list, summary and export."""
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[InvoiceStatus] = None


class InvoiceSummary(BaseModel):
    """Counts and amounts across the filtered invoices."""
    total: int
    open: int
    collected: int
    canceled: int
    total_amount: float
    collected_amount: float
    outstanding_amount: float


class BulkDeleteRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1)


class BulkUpdateRequest(BaseModel):
    ids: list[int] = Field(..., min_length=1)
    canceled: Optional[bool] = None
    collected: Optional[bool] = None

    @model_validator(mode="after")
    def require_a_flag(self) -> "BulkUpdateRequest":
        if self.canceled is None and self.collected is None:
            raise ValueError("at least one of canceled or collected is required")
        return self


class BulkFailure(BaseModel):
    id: str
    error: str


class BulkResults(BaseModel):
    success: list[str] = []
    failed: list[BulkFailure] = []


class BulkActionResponse(BaseModel):
    """Per-id outcome of a batched operation."""
    action: str
    total: int
    success_count: int
    failed_count: int
    results: BulkResults

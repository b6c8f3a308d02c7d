"""
API Response Models for the Transport Billing Ledger.

These Pydantic models define the data contracts between the backend API and
the billing UI. They are designed to prevent drift and enable OpenAPI generation.

Hierarchy:
- MemoListResponse: memo list with derived invoicing status per row
- InvoiceListResponse / InvoiceResponse: invoice list items and detail
- InvoiceWriteRequest: create/update payload (totals are recomputed server-side)
- TotalsPreviewRequest / TotalsPreviewResponse: live totals for a selection
- EligibleMemosResponse: memos offered for selection on an invoice
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict

from models.ledger import (
    Customer,
    DateValue,
    DecimalValue,
    Invoice,
    InvoiceStatus,
    Memo,
)


# =============================================================================
# BASE MODELS
# =============================================================================

class ResponseBase(BaseModel):
    """Base class for all API responses."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# MEMO MODELS
# =============================================================================

class MemoRowResponse(ResponseBase):
    """Single memo row with its invoicing status and action gates."""
    memo: Memo
    invoice_no: Optional[str] = Field(None, description="Owning invoice number, None when uninvoiced")
    status_label: str = Field(..., description="Owning invoice number or 'Uninvoiced'")
    can_edit: bool
    can_delete: bool
    edit_disabled_reason: Optional[str] = None
    delete_disabled_reason: Optional[str] = None


class MemoListResponse(ResponseBase):
    """Memo list (sorted by memo number, newest first)."""
    items: List[MemoRowResponse]
    total: int
    invoiced_count: int = Field(..., description="Rows linked to an invoice")
    linkage_conflicts: dict = Field(
        default_factory=dict,
        description="memo_no -> invoice numbers, when a memo is linked more than once",
    )


# =============================================================================
# INVOICE MODELS
# =============================================================================

class InvoiceResponse(ResponseBase):
    """Invoice with derived totals and any non-blocking status advisories."""
    invoice: Invoice
    memos: List[Memo] = Field(default_factory=list, description="Linked memos found in the ledger")
    missing_memo_nos: List[str] = Field(
        default_factory=list,
        description="Linked memo numbers with no memo record (contribute zero)",
    )
    advisories: List[str] = Field(default_factory=list)


class InvoiceListResponse(ResponseBase):
    """Invoice list (sorted by invoice number, newest first)."""
    items: List[Invoice]
    total: int
    outstanding_balance: Decimal = Field(..., description="Sum of balances across listed invoices")


class InvoiceWriteRequest(ResponseBase):
    """Create/update payload. total_amount and balance are derived, never accepted."""
    invoice_no: Optional[str] = Field(None, description="Required on create; ignored on update")
    invoice_date: DateValue = None
    customer_name: str = ""
    memo_nos: List[str] = Field(default_factory=list)
    amount_paid: DecimalValue = Decimal("0")
    status: InvoiceStatus = InvoiceStatus.DRAFT


class TotalsPreviewRequest(ResponseBase):
    """Selection to price."""
    memo_nos: List[str] = Field(default_factory=list)
    amount_paid: DecimalValue = Decimal("0")


class TotalsPreviewResponse(ResponseBase):
    """Derived totals for a selection."""
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    missing_memo_nos: List[str] = Field(default_factory=list)


class EligibleMemosResponse(ResponseBase):
    """Memos that may be selected on an invoice for a customer."""
    customer_name: str
    invoice_id: Optional[int] = None
    items: List[Memo]
    selected_memo_nos: List[str] = Field(default_factory=list)


class NextInvoiceNumberResponse(ResponseBase):
    """Freshly generated invoice number."""
    invoice_no: str
    invoice_date: date


class CustomerListResponse(ResponseBase):
    """Customer reference list."""
    items: List[Customer]
    total: int

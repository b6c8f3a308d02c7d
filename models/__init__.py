"""Models Package.

Data models for the Transport Billing Ledger including:
- Ledger records (memos, invoices, customers)
- The derived invoicing map
- API response models
"""

from models.ledger import (
    Customer,
    Memo,
    Invoice,
    InvoiceStatus,
    InvoicingMap,
    DecimalValue,
    DateValue,
    money,
    normalize_name,
)

from models.api_responses import (
    MemoRowResponse,
    MemoListResponse,
    InvoiceResponse,
    InvoiceListResponse,
    InvoiceWriteRequest,
    TotalsPreviewRequest,
    TotalsPreviewResponse,
    EligibleMemosResponse,
    NextInvoiceNumberResponse,
    CustomerListResponse,
)

__all__ = [
    # Ledger records
    "Customer",
    "Memo",
    "Invoice",
    "InvoiceStatus",
    "InvoicingMap",
    "DecimalValue",
    "DateValue",
    "money",
    "normalize_name",

    # API Response models
    "MemoRowResponse",
    "MemoListResponse",
    "InvoiceResponse",
    "InvoiceListResponse",
    "InvoiceWriteRequest",
    "TotalsPreviewRequest",
    "TotalsPreviewResponse",
    "EligibleMemosResponse",
    "NextInvoiceNumberResponse",
    "CustomerListResponse",
]

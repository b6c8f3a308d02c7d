"""
Mock ledger data for development and testing.

Rows use the column names of the trip-entry sheet so they exercise the same
parsing path as data coming from the remote ledger web app.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List

from models.ledger import Customer, Invoice, InvoiceStatus, Memo


# =============================================================================
# MOCK CUSTOMERS
# =============================================================================

MOCK_CUSTOMERS: List[dict] = [
    {"customers_name": "Acme Traders", "code": "C-001", "phone": "98400-11223", "address": "Guindy, Chennai"},
    {"customers_name": "Chennai Cargo Movers", "code": "C-002", "phone": "98410-22334", "address": "Ambattur, Chennai"},
    {"customers_name": "Sri Murugan Steels", "code": "C-003", "phone": "94440-33445", "address": "Sriperumbudur"},
    {"customers_name": "Coastal Agro Exports", "code": "C-004", "phone": "90030-44556", "address": "Ennore Port"},
]


# =============================================================================
# MOCK MEMOS
# =============================================================================

_BASE_DATE = date(2026, 9, 1)

MOCK_MEMOS: Dict[str, dict] = {
    "M-1001": {
        "trips_memo_no": "M-1001",
        "customers_name": "Acme Traders",
        "trips_vehicle_no": "TN 09 AB 4521",
        "trip_operated_date1": _BASE_DATE.isoformat(),
        "trips_total_amt": "12,500.00",
        "trips_balance": "12,500.00",
    },
    "M-1002": {
        "trips_memo_no": "M-1002",
        "customers_name": "Acme Traders",
        "trips_vehicle_no": "TN 09 AB 4521",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=2)).isoformat(),
        "trips_total_amt": "8,750.00",
        "trips_balance": "8,750.00",
    },
    "M-1003": {
        "trips_memo_no": "M-1003",
        "customers_name": "Acme Traders",
        "trips_vehicle_no": "TN 22 CK 1187",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=5)).isoformat(),
        "trips_total_amt": "15,200.00",
        "trips_balance": "5,200.00",
    },
    "M-1004": {
        "trips_memo_no": "M-1004",
        "customers_name": "Chennai Cargo Movers",
        "trips_vehicle_no": "TN 04 BZ 9010",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=3)).isoformat(),
        "trips_total_amt": "22,000.00",
        "trips_balance": "22,000.00",
    },
    "M-1005": {
        "trips_memo_no": "M-1005",
        "customers_name": "Chennai Cargo Movers",
        "trips_vehicle_no": "TN 04 BZ 9010",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=9)).isoformat(),
        "trips_total_amt": "18,400.00",
        "trips_balance": "18,400.00",
    },
    "M-1006": {
        "trips_memo_no": "M-1006",
        "customers_name": "Sri Murugan Steels",
        "trips_vehicle_no": "TN 18 AQ 3344",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=11)).isoformat(),
        "trips_total_amt": "31,650.00",
        "trips_balance": "31,650.00",
    },
    "M-1007": {
        "trips_memo_no": "M-1007",
        "customers_name": "Coastal Agro Exports",
        "trips_vehicle_no": "TN 20 DX 7765",
        "trip_operated_date1": (_BASE_DATE + timedelta(days=14)).isoformat(),
        "trips_total_amt": "9,800.00",
        "trips_balance": "9,800.00",
    },
}


# =============================================================================
# MOCK INVOICES
# =============================================================================

MOCK_INVOICES: List[dict] = [
    {
        "invoice_no": "INV-2026-0001",
        "invoice_date": date(2026, 9, 20).isoformat(),
        "customer_name": "Chennai Cargo Movers",
        "memo_nos": ["M-1004"],
        "amount_paid": Decimal("10000.00"),
        "status": InvoiceStatus.FINALIZED,
    },
]


# =============================================================================
# BUILDERS
# =============================================================================

def build_customers() -> List[Customer]:
    """Customers as models."""
    return [Customer.model_validate(row) for row in MOCK_CUSTOMERS]


def build_memos() -> List[Memo]:
    """Memos as models."""
    return [Memo.model_validate(row) for row in MOCK_MEMOS.values()]


def build_invoices(memos: List[Memo]) -> List[Invoice]:
    """Invoices as models with totals derived from the given memos."""
    from reconciliation.engine import compute_totals, index_memos

    lookup = index_memos(memos)
    invoices = []
    for row in MOCK_INVOICES:
        invoice = Invoice.model_validate(row)
        totals = compute_totals(invoice.memo_nos, invoice.amount_paid, lookup)
        invoices.append(invoice.model_copy(update={
            "total_amount": totals.total_amount,
            "balance": totals.balance,
        }))
    return invoices

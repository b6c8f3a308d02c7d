"""
Ledger Store Package

Data access for memos, invoices and customers behind one async interface.

Backends:
- InMemoryLedgerStore: mock data service (development, tests, demos)
- SqliteLedgerStore: local SQLite file with write-time linkage enforcement
- HttpLedgerStore: remote ledger web app over HTTP

Usage:
    from ledger_store import InMemoryLedgerStore

    store = InMemoryLedgerStore.with_demo_data()
    invoices = await store.list_invoices()
"""

from .base import LedgerStore, format_invoice_number, parse_invoice_sequence
from .errors import (
    LedgerError,
    NotFound,
    StoreFailure,
    MemoAlreadyInvoiced,
    MemoLockedError,
)
from .memory import InMemoryLedgerStore
from .sqlite_store import SqliteLedgerStore

__all__ = [
    # Interface
    "LedgerStore",
    "format_invoice_number",
    "parse_invoice_sequence",

    # Errors
    "LedgerError",
    "NotFound",
    "StoreFailure",
    "MemoAlreadyInvoiced",
    "MemoLockedError",

    # Backends
    "InMemoryLedgerStore",
    "SqliteLedgerStore",
]

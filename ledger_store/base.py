"""Abstract Ledger Store Interface.

This module defines the interface every ledger backend implements. Controllers,
the API and the print flow depend ONLY on this interface; the in-memory mock,
SQLite and HTTP backends live beside it.

Key Design Principles:
- All operations are coroutines and all of them may fail (StoreFailure)
- Records cross the boundary as ledger models (Memo, Invoice, Customer), never raw rows
- Reads may be retried by a backend; writes are never assumed idempotent
- The store offers no transactions. The one-memo-one-invoice rule is checked by
  callers against a fresh invoice list (optimistic); only backends that say so
  (SqliteLedgerStore) enforce it at write time
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from models.ledger import Customer, Invoice, Memo, normalize_name


class LedgerStore(ABC):
    """Abstract base class for ledger backends.

    Usage:
        store = InMemoryLedgerStore.with_demo_data()
        memos = await store.list_memos()
        invoice = await store.create_invoice(draft)
    """

    name: str = "ledger"

    # =========================================================================
    # Memos
    # =========================================================================

    @abstractmethod
    async def list_memos(self) -> List[Memo]:
        """List every memo."""
        pass

    @abstractmethod
    async def get_memo(self, memo_no: str) -> Optional[Memo]:
        """Get a memo by number.

        Returns:
            Memo if found, None otherwise
        """
        pass

    @abstractmethod
    async def delete_memo(self, memo_no: str) -> None:
        """Delete a memo.

        Raises:
            NotFound: If the memo does not exist
            MemoLockedError: If the memo is linked to an invoice
        """
        pass

    async def list_uninvoiced_memos_for_customer(self, customer_name: str) -> List[Memo]:
        """List the customer's memos that no invoice links.

        Default implementation filters list_memos()/list_invoices(); backends
        can override with a server-side query.
        """
        memos = await self.list_memos()
        invoices = await self.list_invoices()
        linked = {memo_no for inv in invoices for memo_no in inv.memo_nos}
        key = normalize_name(customer_name)
        return [
            m for m in memos
            if normalize_name(m.customer_name) == key and m.memo_no not in linked
        ]

    # =========================================================================
    # Invoices
    # =========================================================================

    @abstractmethod
    async def list_invoices(self) -> List[Invoice]:
        """List every persisted invoice."""
        pass

    @abstractmethod
    async def get_invoice_by_id(self, invoice_id: int) -> Optional[Invoice]:
        """Get an invoice by id.

        Returns:
            Invoice if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_invoice(self, draft: Invoice) -> Invoice:
        """Persist a new invoice and assign its id.

        Raises:
            StoreFailure: On write failure (MemoAlreadyInvoiced on linkage conflict
                for backends that enforce it)
        """
        pass

    @abstractmethod
    async def update_invoice(self, invoice: Invoice) -> Invoice:
        """Replace a persisted invoice.

        Raises:
            NotFound: If no invoice has this id
        """
        pass

    @abstractmethod
    async def delete_invoice(self, invoice_id: int) -> None:
        """Delete an invoice, releasing its memos.

        Raises:
            NotFound: If no invoice has this id
        """
        pass

    @abstractmethod
    async def generate_invoice_number(self) -> str:
        """Hand out a new, unique invoice number.

        Numbers are never reused, even when the draft is never saved.
        """
        pass

    # =========================================================================
    # Customers
    # =========================================================================

    @abstractmethod
    async def list_customers(self) -> List[Customer]:
        """List customers."""
        pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Release backend resources."""
        return None


def format_invoice_number(prefix: str, year: int, sequence: int) -> str:
    """Invoice number layout shared by backends: INV-2026-0007."""
    return f"{prefix}-{year}-{sequence:04d}"


def parse_invoice_sequence(invoice_no: str, prefix: str, year: Optional[int] = None) -> Optional[int]:
    """Sequence part of an invoice number in this layout, None for other layouts."""
    parts = (invoice_no or "").rsplit("-", 2)
    if len(parts) != 3 or parts[0] != prefix:
        return None
    if year is not None and parts[1] != str(year):
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


def current_year() -> int:
    return date.today().year

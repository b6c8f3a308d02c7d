"""Ledger store exceptions.

- NotFound: the requested invoice or memo does not exist
- StoreFailure: the store (or the network in front of it) failed; retryable by the user
- MemoAlreadyInvoiced: a write would link a memo that another invoice owns
- MemoLockedError: a memo edit/delete was attempted while it is invoiced
"""

from typing import Iterable, Optional


class LedgerError(Exception):
    """Base exception for ledger store errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NotFound(LedgerError):
    """Requested record does not exist (404)."""
    def __init__(self, kind: str, key):
        super().__init__(f"{kind} {key} not found", 404)
        self.kind = kind
        self.key = key


class StoreFailure(LedgerError):
    """Store or network failure on fetch/save/delete."""
    pass


class MemoAlreadyInvoiced(StoreFailure):
    """Memo linkage conflict (409)."""
    def __init__(self, memo_nos: Iterable[str], owner_invoice_no: Optional[str] = None):
        memo_nos = list(memo_nos)
        owner = f" (owned by {owner_invoice_no})" if owner_invoice_no else ""
        super().__init__(
            f"Memo(s) already linked to another invoice{owner}: {', '.join(memo_nos)}",
            409,
        )
        self.memo_nos = memo_nos
        self.owner_invoice_no = owner_invoice_no


class MemoLockedError(LedgerError):
    """Memo is part of an invoice and cannot be edited or deleted (409)."""
    def __init__(self, memo_no: str, invoice_no: Optional[str], action: str = "delete"):
        super().__init__(
            f"Cannot {action} a memo that is part of an invoice "
            f"(memo {memo_no} is on {invoice_no or 'an invoice'}).",
            409,
        )
        self.memo_no = memo_no
        self.invoice_no = invoice_no
        self.action = action

"""
In-memory ledger store.

Stands in for the remote ledger web app during development and tests:
every call is a coroutine, returns deep copies, and can be slowed down or made
to fail on demand.

Linkage is NOT enforced on write: like the remote sheet, two sessions that both
believed a memo was free can both save it. Callers re-check linkage against a
fresh invoice list before saving (see reconciliation.engine.check_linkage).
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Set

from core.observability.logging import get_logger
from ledger_store.base import (
    LedgerStore,
    current_year,
    format_invoice_number,
    parse_invoice_sequence,
)
from ledger_store.errors import MemoLockedError, NotFound, StoreFailure
from models.ledger import Customer, Invoice, Memo


logger = get_logger(__name__)


class InMemoryLedgerStore(LedgerStore):
    """Mock ledger data service.

    Usage:
        store = InMemoryLedgerStore(memos=[...], customers=[...])
        store.fail_next("create_invoice")  # next create raises StoreFailure
    """

    name = "memory"

    def __init__(
        self,
        memos: Optional[Iterable[Memo]] = None,
        invoices: Optional[Iterable[Invoice]] = None,
        customers: Optional[Iterable[Customer]] = None,
        invoice_prefix: str = "INV",
        latency: float = 0.0,
    ):
        self.invoice_prefix = invoice_prefix
        self.latency = latency
        self._memos: Dict[str, Memo] = {m.memo_no: m.model_copy(deep=True) for m in (memos or [])}
        self._customers: List[Customer] = [c.model_copy(deep=True) for c in (customers or [])]
        self._invoices: Dict[int, Invoice] = {}
        self._next_id = 1
        self._issued_numbers: Set[str] = set()
        self._failures: Dict[str, int] = {}
        self.calls: List[str] = []

        for invoice in invoices or []:
            invoice_id = invoice.id if invoice.id is not None else self._next_id
            self._invoices[invoice_id] = invoice.model_copy(deep=True, update={"id": invoice_id})
            self._next_id = max(self._next_id, invoice_id + 1)

        year = current_year()
        sequences = [
            parse_invoice_sequence(inv.invoice_no, invoice_prefix, year)
            for inv in self._invoices.values()
        ]
        self._sequence = max([s for s in sequences if s is not None], default=0)

    @classmethod
    def with_demo_data(
        cls,
        seed: bool = True,
        invoice_prefix: str = "INV",
        latency: float = 0.0,
    ) -> "InMemoryLedgerStore":
        """Store seeded from ledger_store.mock_data."""
        if not seed:
            return cls(invoice_prefix=invoice_prefix, latency=latency)

        from ledger_store.mock_data import build_customers, build_invoices, build_memos

        memos = build_memos()
        return cls(
            memos=memos,
            invoices=build_invoices(memos),
            customers=build_customers(),
            invoice_prefix=invoice_prefix,
            latency=latency,
        )

    # =========================================================================
    # Failure injection
    # =========================================================================

    def fail_next(self, operation: str, times: int = 1) -> None:
        """Make the next ``times`` calls of ``operation`` raise StoreFailure."""
        self._failures[operation] = self._failures.get(operation, 0) + times

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.latency:
            await asyncio.sleep(self.latency)
        remaining = self._failures.get(operation, 0)
        if remaining:
            self._failures[operation] = remaining - 1
            logger.warning(f"Injected failure: {operation}")
            raise StoreFailure(f"Ledger store unavailable during {operation}", 503)

    # =========================================================================
    # Memos
    # =========================================================================

    async def list_memos(self) -> List[Memo]:
        await self._enter("list_memos")
        return [m.model_copy(deep=True) for m in self._memos.values()]

    async def get_memo(self, memo_no: str) -> Optional[Memo]:
        await self._enter("get_memo")
        memo = self._memos.get(memo_no)
        return memo.model_copy(deep=True) if memo else None

    async def delete_memo(self, memo_no: str) -> None:
        await self._enter("delete_memo")
        if memo_no not in self._memos:
            raise NotFound("Memo", memo_no)
        for invoice in self._invoices.values():
            if memo_no in invoice.memo_nos:
                raise MemoLockedError(memo_no, invoice.invoice_no, "delete")
        del self._memos[memo_no]
        logger.info(f"Memo deleted: {memo_no}")

    def add_memo(self, memo: Memo) -> None:
        """Seed helper for the out-of-scope trip-entry side."""
        self._memos[memo.memo_no] = memo.model_copy(deep=True)

    # =========================================================================
    # Invoices
    # =========================================================================

    async def list_invoices(self) -> List[Invoice]:
        await self._enter("list_invoices")
        return [inv.model_copy(deep=True) for inv in self._invoices.values()]

    async def get_invoice_by_id(self, invoice_id: int) -> Optional[Invoice]:
        await self._enter("get_invoice_by_id")
        invoice = self._invoices.get(invoice_id)
        return invoice.model_copy(deep=True) if invoice else None

    async def create_invoice(self, draft: Invoice) -> Invoice:
        await self._enter("create_invoice")
        invoice_id = self._next_id
        self._next_id += 1
        stored = draft.model_copy(deep=True, update={"id": invoice_id})
        self._invoices[invoice_id] = stored
        self._issued_numbers.add(stored.invoice_no)
        logger.info(
            f"Invoice created: {stored.invoice_no}",
            extra_fields={"invoice_id": invoice_id, "memo_count": len(stored.memo_nos)},
        )
        return stored.model_copy(deep=True)

    async def update_invoice(self, invoice: Invoice) -> Invoice:
        await self._enter("update_invoice")
        if invoice.id is None or invoice.id not in self._invoices:
            raise NotFound("Invoice", invoice.id)
        existing = self._invoices[invoice.id]
        stored = invoice.model_copy(deep=True, update={"invoice_no": existing.invoice_no})
        self._invoices[invoice.id] = stored
        logger.info(
            f"Invoice updated: {stored.invoice_no}",
            extra_fields={"invoice_id": invoice.id, "memo_count": len(stored.memo_nos)},
        )
        return stored.model_copy(deep=True)

    async def delete_invoice(self, invoice_id: int) -> None:
        await self._enter("delete_invoice")
        if invoice_id not in self._invoices:
            raise NotFound("Invoice", invoice_id)
        removed = self._invoices.pop(invoice_id)
        logger.info(
            f"Invoice deleted: {removed.invoice_no}",
            extra_fields={"released_memos": len(removed.memo_nos)},
        )

    async def generate_invoice_number(self) -> str:
        await self._enter("generate_invoice_number")
        year = current_year()
        taken = {inv.invoice_no for inv in self._invoices.values()} | self._issued_numbers
        while True:
            self._sequence += 1
            candidate = format_invoice_number(self.invoice_prefix, year, self._sequence)
            if candidate not in taken:
                self._issued_numbers.add(candidate)
                return candidate

    # =========================================================================
    # Customers
    # =========================================================================

    async def list_customers(self) -> List[Customer]:
        await self._enter("list_customers")
        return [c.model_copy(deep=True) for c in self._customers]

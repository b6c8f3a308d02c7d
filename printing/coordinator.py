"""Print-on-load coordinator.

Download mode for an invoice or memo:

    load -> render -> (print_delay) platform.print_document()
         -> after-print signal -> (return_delay) on_complete()

The completion callback fires at most once. teardown() cancels the pending
timers and the after-print listener; done() is the manual way back when the
print dialog was dismissed and no signal will come.
"""

import asyncio
from enum import Enum
from typing import Callable, Optional

from controllers.notices import NoticeBoard
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from ledger_store.errors import LedgerError
from printing.platform import PrintPlatform
from printing.render import PrintDocument, render_invoice, render_memo
from reconciliation.engine import build_invoicing_map, index_memos


logger = get_logger(__name__)

DEFAULT_PRINT_DELAY = 0.3
DEFAULT_RETURN_DELAY = 0.1


class PrintState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SCHEDULED = "scheduled"
    PRINTING = "printing"
    RETURNING = "returning"
    COMPLETED = "completed"
    FAILED = "failed"
    TORN_DOWN = "torn_down"


class PrintCoordinator:
    """
    Drives one print-on-load session.

    Usage:
        coordinator = PrintCoordinator(platform, on_complete=back_to_list)
        await coordinator.print_invoice(store, invoice_id)
        ...
        coordinator.teardown()   # when the view goes away
    """

    def __init__(
        self,
        platform: PrintPlatform,
        on_complete: Optional[Callable[[], None]] = None,
        notices: Optional[NoticeBoard] = None,
        print_delay: float = DEFAULT_PRINT_DELAY,
        return_delay: float = DEFAULT_RETURN_DELAY,
        letterhead=None,
    ):
        self.platform = platform
        self.on_complete = on_complete
        self.notices = notices or NoticeBoard()
        self.print_delay = print_delay
        self.return_delay = return_delay
        self.letterhead = letterhead

        self.state = PrintState.IDLE
        self.document: Optional[PrintDocument] = None
        self._print_timer: Optional[asyncio.TimerHandle] = None
        self._return_timer: Optional[asyncio.TimerHandle] = None
        self._listening = False
        self._finished = asyncio.Event()

    @property
    def completed(self) -> bool:
        return self.state == PrintState.COMPLETED

    @property
    def is_active(self) -> bool:
        return self.state in (PrintState.SCHEDULED, PrintState.PRINTING, PrintState.RETURNING)

    # =========================================================================
    # Load + render
    # =========================================================================

    async def print_invoice(self, store: LedgerStore, invoice_id: int) -> Optional[PrintDocument]:
        """Load the invoice with its memos, render it and schedule printing."""
        if not self._begin_load():
            return None
        with with_correlation(controller="print", invoice_id=invoice_id):
            try:
                invoice, memos = await asyncio.gather(
                    store.get_invoice_by_id(invoice_id),
                    store.list_memos(),
                )
            except LedgerError as e:
                logger.error(f"Failed to load invoice #{invoice_id} for printing: {e}")
                return self._load_failed("Failed to load initial data.")

            if invoice is None:
                return self._load_failed("Invoice not found.")

            document = render_invoice(invoice, index_memos(memos), self.letterhead)
        return self.schedule(document)

    async def print_memo(self, store: LedgerStore, memo_no: str) -> Optional[PrintDocument]:
        """Load a memo and its invoicing state, render it and schedule printing."""
        if not self._begin_load():
            return None
        with with_correlation(controller="print", memo_no=memo_no):
            try:
                memo, invoices = await asyncio.gather(
                    store.get_memo(memo_no),
                    store.list_invoices(),
                )
            except LedgerError as e:
                logger.error(f"Failed to load memo {memo_no} for printing: {e}")
                return self._load_failed("Failed to load memo.")

            if memo is None:
                return self._load_failed("Memo not found.")

            owner = build_invoicing_map(invoices).invoice_no_for(memo_no)
            document = render_memo(memo, owner, self.letterhead)
        return self.schedule(document)

    def _begin_load(self) -> bool:
        if self.state == PrintState.TORN_DOWN:
            logger.warning("Print session torn down, not loading")
            return False
        self.state = PrintState.LOADING
        return True

    def _load_failed(self, message: str) -> None:
        if self.state == PrintState.TORN_DOWN:
            logger.debug(f"Load finished after teardown, dropping: {message}")
            return None
        self.state = PrintState.FAILED
        self.notices.error(message, source="print")
        self._finished.set()
        if self.on_complete:
            self.on_complete()
        return None

    # =========================================================================
    # Print protocol
    # =========================================================================

    def schedule(self, document: PrintDocument) -> PrintDocument:
        """Register the after-print listener and print after ``print_delay``."""
        if self.state in (PrintState.COMPLETED, PrintState.TORN_DOWN):
            logger.warning("Print session already finished, not scheduling")
            return document

        self._cancel_timers()
        self._remove_listener()
        self.document = document
        loop = asyncio.get_running_loop()
        self.platform.add_after_print_listener(self._on_after_print)
        self._listening = True
        self._print_timer = loop.call_later(self.print_delay, self._fire_print)
        self.state = PrintState.SCHEDULED
        logger.debug(f"Print of {document.filename} scheduled in {self.print_delay:.3f}s")
        return document

    def _fire_print(self) -> None:
        self._print_timer = None
        if self.state != PrintState.SCHEDULED or self.document is None:
            return
        self.state = PrintState.PRINTING
        try:
            self.platform.print_document(self.document)
        except (OSError, RuntimeError, ValueError) as e:
            logger.error(f"Printing {self.document.filename} failed: {e}")
            self._remove_listener()
            self.state = PrintState.FAILED
            self._finished.set()
            self.notices.error("Failed to print document.", source="print")

    def _on_after_print(self) -> None:
        # One-shot: later signals are ignored
        self._remove_listener()
        if self.state not in (PrintState.SCHEDULED, PrintState.PRINTING):
            return
        self.state = PrintState.RETURNING
        loop = asyncio.get_running_loop()
        self._return_timer = loop.call_later(self.return_delay, self._complete)

    def _remove_listener(self) -> None:
        if self._listening:
            self.platform.remove_after_print_listener(self._on_after_print)
            self._listening = False

    def _complete(self) -> None:
        self._return_timer = None
        if self.state in (PrintState.COMPLETED, PrintState.FAILED, PrintState.TORN_DOWN):
            return
        self._cancel_timers()
        self._remove_listener()
        self.state = PrintState.COMPLETED
        self._finished.set()
        if self.on_complete:
            self.on_complete()

    def _cancel_timers(self) -> None:
        if self._print_timer is not None:
            self._print_timer.cancel()
            self._print_timer = None
        if self._return_timer is not None:
            self._return_timer.cancel()
            self._return_timer = None

    def done(self) -> None:
        """Manual fallback when the print dialog was cancelled."""
        self._complete()

    def teardown(self) -> None:
        """Cancel pending work; the completion callback will not fire afterwards."""
        self._cancel_timers()
        self._remove_listener()
        if self.state not in (PrintState.COMPLETED, PrintState.FAILED):
            self.state = PrintState.TORN_DOWN
            self._finished.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the session completes or is torn down. Returns True on completion."""
        await asyncio.wait_for(self._finished.wait(), timeout)
        return self.completed

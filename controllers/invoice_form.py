"""Invoice form controller.

Drives one create/edit session of an invoice:

    LOADING -> NEW | EDITING_EXISTING -> SAVING -> SAVED | SAVE_FAILED -> CLOSED

plus NOT_FOUND (requested invoice missing, navigates back) and LOAD_FAILED
(store error while loading; call initialize() again to retry).

Totals are recomputed synchronously on every selection or payment change, so
no stale recomputation can overwrite a newer one.
"""

import asyncio
from datetime import date
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from controllers.notices import NoticeBoard
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from ledger_store.errors import LedgerError, MemoAlreadyInvoiced, NotFound
from models.ledger import Customer, Invoice, InvoiceStatus, Memo
from reconciliation.engine import (
    CustomerLockedError,
    InvoiceValidationError,
    Totals,
    ValidationReason,
    apply_totals,
    check_linkage,
    compute_totals,
    eligible_memos,
    ensure_customer_change_allowed,
    index_memos,
    merge_display_memos,
    status_advisories,
    to_decimal,
    validate_for_save,
)


logger = get_logger(__name__)


class FormState(str, Enum):
    LOADING = "loading"
    LOAD_FAILED = "load_failed"
    NOT_FOUND = "not_found"
    NEW = "new"
    EDITING_EXISTING = "editing_existing"
    SAVING = "saving"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"
    CLOSED = "closed"


EDITABLE_STATES = (FormState.NEW, FormState.EDITING_EXISTING, FormState.SAVE_FAILED)


class InvoiceFormController:
    """
    Create or edit one invoice against a ledger store.

    Usage:
        form = InvoiceFormController(store, notices, on_saved=back_to_list, on_close=back_to_list)
        await form.initialize()              # new invoice
        await form.change_customer("Acme Traders")
        form.toggle_memo("M-1001", True)
        form.set_amount_paid("200")
        await form.save()
    """

    def __init__(
        self,
        store: LedgerStore,
        notices: Optional[NoticeBoard] = None,
        on_saved: Optional[Callable[[Invoice], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.notices = notices or NoticeBoard()
        self.on_saved = on_saved
        self.on_close = on_close
        self._today = today

        self.state = FormState.LOADING
        self.invoice = self._blank_invoice()
        self.totals = compute_totals([], 0, {})
        self.customers: List[Customer] = []
        self.memo_lookup: Dict[str, Memo] = {}
        self.available_memos: List[Memo] = []
        self.advisories: List[str] = []

        self.is_loading = False
        self.is_saving = False
        self.load_error: Optional[str] = None
        self.last_validation_error: Optional[InvoiceValidationError] = None

        self._mounted = True
        self._eligibility_request = 0

    def _blank_invoice(self, invoice_no: str = "") -> Invoice:
        return Invoice(
            invoice_no=invoice_no,
            invoice_date=self._today(),
            status=InvoiceStatus.DRAFT,
        )

    # =========================================================================
    # Derived view state
    # =========================================================================

    @property
    def is_editable(self) -> bool:
        return self._mounted and self.state in EDITABLE_STATES

    @property
    def is_new(self) -> bool:
        return self.invoice.id is None

    @property
    def customer_locked(self) -> bool:
        """Customer is fixed once any memo is selected."""
        return bool(self.invoice.memo_nos)

    @property
    def can_download(self) -> bool:
        """Only saved invoices can be downloaded."""
        return self.invoice.id is not None

    @property
    def title(self) -> str:
        if self.invoice.id is not None:
            return f"Edit Invoice {self.invoice.invoice_no}"
        return "Create New Invoice"

    @property
    def selected_memos(self) -> List[Memo]:
        """Selected memos with a ledger record, in selection order."""
        return [self.memo_lookup[n] for n in self.invoice.memo_nos if n in self.memo_lookup]

    def is_selected(self, memo_no: str) -> bool:
        return memo_no in self.invoice.memo_nos

    # =========================================================================
    # Loading
    # =========================================================================

    async def initialize(self, invoice_id: Optional[int] = None) -> FormState:
        """Load reference data and the invoice to edit, or start a new draft."""
        self.state = FormState.LOADING
        self.is_loading = True
        self.load_error = None

        with with_correlation(controller="invoice_form", invoice_id=invoice_id):
            try:
                customers, memos = await asyncio.gather(
                    self.store.list_customers(),
                    self.store.list_memos(),
                )
                if not self._mounted:
                    return self.state
                self.customers = customers
                self.memo_lookup = index_memos(memos)

                if invoice_id is not None:
                    loaded = await self.store.get_invoice_by_id(invoice_id)
                    if not self._mounted:
                        return self.state
                    if loaded is None:
                        self._not_found(invoice_id)
                        return self.state
                    self.invoice = loaded
                    self._recompute()
                    await self._refresh_eligible(loaded.customer_name)
                    if not self._mounted:
                        return self.state
                    self.state = FormState.EDITING_EXISTING
                    logger.info(
                        f"Editing invoice {loaded.invoice_no}",
                        extra_fields={"memo_count": len(loaded.memo_nos)},
                    )
                else:
                    invoice_no = await self.store.generate_invoice_number()
                    if not self._mounted:
                        return self.state
                    self.invoice = self._blank_invoice(invoice_no)
                    self.available_memos = []
                    self._recompute()
                    self.state = FormState.NEW
                    logger.info(f"New invoice draft {invoice_no}")
            except LedgerError as e:
                if self._mounted:
                    self.state = FormState.LOAD_FAILED
                    self.load_error = str(e)
                logger.error(f"Initial load failed: {e}")
                self.notices.error("Failed to load initial data.", source="invoice_form")
            finally:
                self.is_loading = False

        return self.state

    def _not_found(self, invoice_id: int) -> None:
        self.state = FormState.NOT_FOUND
        self.notices.error("Invoice not found.", source="invoice_form")
        logger.warning(f"Invoice #{invoice_id} not found, returning to list")
        self._mounted = False
        if self.on_close:
            self.on_close()

    async def _refresh_eligible(self, customer_name: str) -> bool:
        """Reload the memos offered for selection.

        The store's uninvoiced filter is re-checked against a fresh invoice
        list; memos selected on this invoice stay listed first.
        """
        self._eligibility_request += 1
        request = self._eligibility_request

        if not (customer_name or "").strip():
            self.available_memos = []
            return True

        uninvoiced, invoices = await asyncio.gather(
            self.store.list_uninvoiced_memos_for_customer(customer_name),
            self.store.list_invoices(),
        )
        if request != self._eligibility_request or not self._mounted:
            logger.debug(f"Dropping stale eligible-memo response for {customer_name}")
            return False

        candidates = merge_display_memos(uninvoiced, self.invoice.memo_nos, self.memo_lookup)
        for memo in candidates:
            self.memo_lookup.setdefault(memo.memo_no, memo)
        self.available_memos = eligible_memos(
            customer_name,
            candidates,
            invoices,
            editing_invoice=self.invoice,
        )
        return True

    # =========================================================================
    # Editing
    # =========================================================================

    def _recompute(self) -> Totals:
        self.totals = compute_totals(self.invoice.memo_nos, self.invoice.amount_paid, self.memo_lookup)
        self.invoice = self.invoice.model_copy(update={
            "total_amount": self.totals.total_amount,
            "amount_paid": self.totals.amount_paid,
            "balance": self.totals.balance,
        })
        return self.totals

    def _reject_if_not_editable(self, action: str) -> bool:
        if self.is_editable:
            return False
        logger.warning(f"Ignoring {action} while form is {self.state.value}")
        return True

    async def change_customer(self, customer_name: str) -> bool:
        """Switch customer; only allowed while no memo is selected."""
        if self._reject_if_not_editable("change_customer"):
            return False

        customer_name = (customer_name or "").strip()
        try:
            ensure_customer_change_allowed(self.invoice, customer_name)
        except CustomerLockedError as e:
            self.notices.warning(str(e), source="invoice_form")
            return False

        self.invoice = self.invoice.model_copy(update={"customer_name": customer_name, "memo_nos": []})
        self._recompute()

        with with_correlation(controller="invoice_form", invoice_no=self.invoice.invoice_no):
            try:
                return await self._refresh_eligible(customer_name)
            except LedgerError as e:
                self.available_memos = []
                logger.error(f"Eligible memo fetch failed for {customer_name}: {e}")
                self.notices.error(f"Failed to load memos for {customer_name}.", source="invoice_form")
                return False

    def toggle_memo(self, memo_no: str, selected: bool) -> Totals:
        """Select or deselect a memo; totals recompute immediately."""
        if self._reject_if_not_editable("toggle_memo"):
            return self.totals

        memo_nos = list(self.invoice.memo_nos)
        if selected:
            if memo_no in memo_nos:
                return self.totals
            if memo_no not in {m.memo_no for m in self.available_memos}:
                self.notices.warning(
                    f"Memo {memo_no} is not available for {self.invoice.customer_name or 'this invoice'}.",
                    source="invoice_form",
                )
                return self.totals
            memo_nos.append(memo_no)
        else:
            if memo_no not in memo_nos:
                return self.totals
            memo_nos.remove(memo_no)

        self.invoice = self.invoice.model_copy(update={"memo_nos": memo_nos})
        return self._recompute()

    def set_amount_paid(self, value) -> Totals:
        """Set the amount paid (blank means zero); negative or non-numeric input is rejected."""
        if self._reject_if_not_editable("set_amount_paid"):
            return self.totals
        try:
            amount = to_decimal(value if value != "" else None)
            if amount < 0:
                raise InvoiceValidationError([ValidationReason.INVALID_AMOUNT_PAID])
        except InvoiceValidationError as e:
            self.last_validation_error = e
            self.notices.error(e.user_message, source="invoice_form")
            return self.totals

        self.invoice = self.invoice.model_copy(update={"amount_paid": amount})
        return self._recompute()

    def set_invoice_date(self, value) -> bool:
        if self._reject_if_not_editable("set_invoice_date"):
            return False
        try:
            self.invoice = Invoice.model_validate({**self.invoice.model_dump(), "invoice_date": value})
        except ValidationError:
            self.notices.error(f"Invalid invoice date: {value}", source="invoice_form")
            return False
        return True

    def set_status(self, status) -> bool:
        """Any status may follow any other."""
        if self._reject_if_not_editable("set_status"):
            return False
        try:
            new_status = InvoiceStatus(status)
        except ValueError:
            self.notices.error(f"Unknown invoice status: {status}", source="invoice_form")
            return False
        self.invoice = self.invoice.model_copy(update={"status": new_status})
        return True

    # =========================================================================
    # Save / cancel
    # =========================================================================

    async def save(self) -> bool:
        """Validate, re-check linkage, then create or update the invoice."""
        if self.state == FormState.SAVING:
            logger.warning("Save already in flight, ignoring duplicate request")
            return False
        if self._reject_if_not_editable("save"):
            return False

        try:
            validate_for_save(self.invoice)
        except InvoiceValidationError as e:
            self.last_validation_error = e
            self.notices.error(e.user_message, source="invoice_form")
            return False
        self.last_validation_error = None

        previous_state = self.state
        self.state = FormState.SAVING
        self.is_saving = True
        payload = apply_totals(self.invoice, self.memo_lookup)

        with with_correlation(
            controller="invoice_form",
            invoice_id=payload.id,
            invoice_no=payload.invoice_no,
        ):
            try:
                invoices = await self.store.list_invoices()
                conflicts = check_linkage(payload, invoices)
                if conflicts:
                    owner = next(iter(conflicts.values()))
                    raise MemoAlreadyInvoiced(sorted(conflicts), owner)

                if payload.id is None:
                    saved = await self.store.create_invoice(payload)
                else:
                    saved = await self.store.update_invoice(payload)
            except LedgerError as e:
                self.is_saving = False
                if isinstance(e, MemoAlreadyInvoiced):
                    message = str(e)
                elif isinstance(e, NotFound):
                    message = "Invoice not found. It may have been deleted."
                else:
                    message = "Failed to save invoice."
                logger.error(f"Save failed: {e}", extra_fields={"previous_state": previous_state.value})
                self.notices.error(message, source="invoice_form")
                if self._mounted:
                    self.state = FormState.SAVE_FAILED
                return False

            self.is_saving = False
            created = payload.id is None
            self.notices.success(
                "Invoice created successfully!" if created else "Invoice updated successfully!",
                source="invoice_form",
            )

            if not self._mounted:
                logger.info(f"Save of {saved.invoice_no} finished after the form closed")
                return True

            self.invoice = saved
            self._recompute()
            self.advisories = status_advisories(self.invoice)
            for note in self.advisories:
                logger.warning(note)
            self.state = FormState.SAVED
            if self.on_saved:
                self.on_saved(saved)
            return True

    def cancel(self) -> None:
        """Discard the draft without confirmation and leave the form."""
        logger.info(f"Invoice form cancelled ({self.invoice.invoice_no or 'unnumbered'})")
        self.invoice = self._blank_invoice()
        self.available_memos = []
        self._recompute()
        self.close()
        if self.on_close:
            self.on_close()

    def close(self) -> None:
        """Unmount. An in-flight save still completes but no longer touches form state."""
        self._mounted = False
        self.state = FormState.CLOSED

    # =========================================================================
    # Printing
    # =========================================================================

    def print_view(self, letterhead=None):
        """Print-formatted document of the current in-memory invoice."""
        from printing.render import render_invoice

        return render_invoice(self.invoice, self.memo_lookup, letterhead)

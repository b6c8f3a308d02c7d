"""
Billing Service for the Transport Billing API.

Reads and writes invoices through the ledger store, applying the same rules
as the invoice form: totals are recomputed from the memos, linkage is
re-checked against a fresh invoice list and the customer stays fixed while
memos remain attached.
"""

import asyncio
from typing import List, Optional

from controllers.memo_list import DELETE_LOCKED_REASON, EDIT_LOCKED_REASON
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from ledger_store.errors import MemoAlreadyInvoiced, NotFound
from models.api_responses import (
    EligibleMemosResponse,
    InvoiceResponse,
    InvoiceWriteRequest,
    MemoListResponse,
    MemoRowResponse,
    TotalsPreviewRequest,
    TotalsPreviewResponse,
)
from models.ledger import Invoice, InvoicingMap, Memo, normalize_name
from reconciliation.engine import (
    InvoiceValidationError,
    ValidationReason,
    apply_totals,
    build_invoicing_map,
    check_linkage,
    compute_totals,
    eligible_memos,
    ensure_customer_change_allowed,
    index_memos,
    status_advisories,
    validate_for_save,
)


logger = get_logger(__name__)


class MemoSelectionError(ValueError):
    """Selected memos do not exist or belong to another customer."""

    def __init__(self, message: str, memo_nos: List[str], status_code: int = 422):
        super().__init__(message)
        self.memo_nos = memo_nos
        self.status_code = status_code


# =============================================================================
# MEMOS
# =============================================================================

def build_memo_row(memo: Memo, invoicing_map: InvoicingMap) -> MemoRowResponse:
    invoice_no = invoicing_map.invoice_no_for(memo.memo_no)
    locked = invoice_no is not None
    return MemoRowResponse(
        memo=memo,
        invoice_no=invoice_no,
        status_label=invoice_no or "Uninvoiced",
        can_edit=not locked,
        can_delete=not locked,
        edit_disabled_reason=EDIT_LOCKED_REASON if locked else None,
        delete_disabled_reason=DELETE_LOCKED_REASON if locked else None,
    )


async def list_memo_rows(store: LedgerStore, search: Optional[str] = None) -> MemoListResponse:
    memos, invoices = await asyncio.gather(store.list_memos(), store.list_invoices())
    invoicing_map = build_invoicing_map(invoices)

    term = (search or "").strip().casefold()
    if term:
        memos = [
            m for m in memos
            if term in m.memo_no.casefold() or term in m.customer_name.casefold()
        ]
    memos.sort(key=lambda m: m.memo_no, reverse=True)

    rows = [build_memo_row(m, invoicing_map) for m in memos]
    return MemoListResponse(
        items=rows,
        total=len(rows),
        invoiced_count=sum(1 for r in rows if r.invoice_no),
        linkage_conflicts=invoicing_map.conflicts,
    )


async def get_memo_row(store: LedgerStore, memo_no: str) -> MemoRowResponse:
    memo, invoices = await asyncio.gather(store.get_memo(memo_no), store.list_invoices())
    if memo is None:
        raise NotFound("Memo", memo_no)
    return build_memo_row(memo, build_invoicing_map(invoices))


# =============================================================================
# INVOICES
# =============================================================================

def build_invoice_response(invoice: Invoice, memo_lookup) -> InvoiceResponse:
    totals = compute_totals(invoice.memo_nos, invoice.amount_paid, memo_lookup)
    return InvoiceResponse(
        invoice=invoice,
        memos=[memo_lookup[n] for n in invoice.memo_nos if n in memo_lookup],
        missing_memo_nos=list(totals.missing_memo_nos),
        advisories=status_advisories(invoice),
    )


async def get_invoice_detail(store: LedgerStore, invoice_id: int) -> InvoiceResponse:
    invoice, memos = await asyncio.gather(store.get_invoice_by_id(invoice_id), store.list_memos())
    if invoice is None:
        raise NotFound("Invoice", invoice_id)
    memo_lookup = index_memos(memos)
    return build_invoice_response(apply_totals(invoice, memo_lookup), memo_lookup)


def _check_selection(draft: Invoice, memo_lookup) -> None:
    unknown = [n for n in draft.memo_nos if n not in memo_lookup]
    if unknown:
        raise MemoSelectionError(f"Unknown memo(s): {', '.join(unknown)}", unknown, 422)

    key = normalize_name(draft.customer_name)
    foreign = [n for n in draft.memo_nos if normalize_name(memo_lookup[n].customer_name) != key]
    if foreign:
        raise MemoSelectionError(
            f"Memo(s) {', '.join(foreign)} do not belong to {draft.customer_name}",
            foreign,
            409,
        )


async def save_invoice(
    store: LedgerStore,
    request: InvoiceWriteRequest,
    invoice_id: Optional[int] = None,
) -> InvoiceResponse:
    """Create (invoice_id None) or update an invoice.

    Raises:
        InvoiceValidationError: Draft fails save validation
        CustomerLockedError: Customer change while kept memos are attached
        MemoSelectionError: Unknown or foreign memos selected
        MemoAlreadyInvoiced: A memo is linked to another invoice
        NotFound: Updating a missing invoice
    """
    if request.amount_paid < 0:
        raise InvoiceValidationError([ValidationReason.INVALID_AMOUNT_PAID])

    with with_correlation(invoice_id=invoice_id, invoice_no=request.invoice_no):
        existing = None
        if invoice_id is not None:
            existing = await store.get_invoice_by_id(invoice_id)
            if existing is None:
                raise NotFound("Invoice", invoice_id)
            kept = [n for n in existing.memo_nos if n in request.memo_nos]
            ensure_customer_change_allowed(
                existing.model_copy(update={"memo_nos": kept}),
                request.customer_name,
            )
            invoice_no = existing.invoice_no
        else:
            invoice_no = request.invoice_no or ""

        draft = Invoice(
            id=invoice_id,
            invoice_no=invoice_no,
            invoice_date=request.invoice_date,
            customer_name=request.customer_name,
            memo_nos=request.memo_nos,
            amount_paid=request.amount_paid,
            status=request.status,
        )
        validate_for_save(draft)
        if not draft.invoice_no:
            draft = draft.model_copy(update={"invoice_no": await store.generate_invoice_number()})

        memos, invoices = await asyncio.gather(store.list_memos(), store.list_invoices())
        memo_lookup = index_memos(memos)
        _check_selection(draft, memo_lookup)

        conflicts = check_linkage(draft, invoices)
        if conflicts:
            raise MemoAlreadyInvoiced(sorted(conflicts), next(iter(conflicts.values())))

        payload = apply_totals(draft, memo_lookup)
        if existing is None:
            saved = await store.create_invoice(payload)
            logger.info(f"Created invoice {saved.invoice_no}", extra_fields={"memo_count": len(saved.memo_nos)})
        else:
            saved = await store.update_invoice(payload)
            logger.info(f"Updated invoice {saved.invoice_no}", extra_fields={"memo_count": len(saved.memo_nos)})

    return build_invoice_response(saved, memo_lookup)


async def preview_totals(store: LedgerStore, request: TotalsPreviewRequest) -> TotalsPreviewResponse:
    if request.amount_paid < 0:
        raise InvoiceValidationError([ValidationReason.INVALID_AMOUNT_PAID])
    memos = await store.list_memos()
    totals = compute_totals(request.memo_nos, request.amount_paid, index_memos(memos))
    return TotalsPreviewResponse(
        total_amount=totals.total_amount,
        amount_paid=totals.amount_paid,
        balance=totals.balance,
        missing_memo_nos=list(totals.missing_memo_nos),
    )


async def list_eligible_memos(
    store: LedgerStore,
    customer_name: str,
    invoice_id: Optional[int] = None,
) -> EligibleMemosResponse:
    editing = None
    if invoice_id is not None:
        editing = await store.get_invoice_by_id(invoice_id)
        if editing is None:
            raise NotFound("Invoice", invoice_id)
        if not customer_name:
            customer_name = editing.customer_name

    memos, invoices = await asyncio.gather(store.list_memos(), store.list_invoices())
    items = eligible_memos(customer_name, memos, invoices, editing_invoice=editing)
    return EligibleMemosResponse(
        customer_name=customer_name,
        invoice_id=invoice_id,
        items=items,
        selected_memo_nos=list(editing.memo_nos) if editing else [],
    )

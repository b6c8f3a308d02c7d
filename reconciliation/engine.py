"""Reconciliation engine for trip memos and customer invoices.

Pure computation, no I/O. Exposes:
- build_invoicing_map(invoices) -> InvoicingMap
- eligible_memos(customer_name, memos, invoices, editing_invoice) -> [Memo]
- compute_totals(memo_nos, amount_paid, memo_lookup) -> Totals
- is_mutable(memo, invoices) -> bool
- validate_for_save(draft) -> None, raises InvoiceValidationError
- check_linkage(draft, invoices) -> {memo_no: owning invoice_no}
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Union

from models.ledger import (
    Invoice,
    InvoiceStatus,
    InvoicingMap,
    Memo,
    ZERO,
    money,
    normalize_name,
)


# =============================================================================
# Configuration & Data Structures
# =============================================================================

class ValidationReason(str, Enum):
    MISSING_CUSTOMER = "missing_customer"
    MISSING_DATE = "missing_date"
    NO_MEMOS_SELECTED = "no_memos_selected"
    INVALID_AMOUNT_PAID = "invalid_amount_paid"


REASON_MESSAGES: Dict[ValidationReason, str] = {
    ValidationReason.MISSING_CUSTOMER: "Please select a customer.",
    ValidationReason.MISSING_DATE: "Please enter an invoice date.",
    ValidationReason.NO_MEMOS_SELECTED: "Please select at least one memo.",
    ValidationReason.INVALID_AMOUNT_PAID: "Amount paid must be a non-negative number.",
}


class InvoiceValidationError(ValueError):
    """Draft cannot be saved. ``reasons`` lists every failed rule, most important first."""

    def __init__(self, reasons: Iterable[ValidationReason]):
        self.reasons = list(reasons)
        super().__init__("; ".join(REASON_MESSAGES[r] for r in self.reasons))

    @property
    def reason(self) -> ValidationReason:
        return self.reasons[0]

    @property
    def user_message(self) -> str:
        return REASON_MESSAGES[self.reason]


class CustomerLockedError(ValueError):
    """Customer cannot change while memos are attached."""

    def __init__(self, current: str, requested: str, memo_count: int):
        super().__init__(
            f"Cannot change customer from {current!r} to {requested!r} "
            f"while {memo_count} memo(s) are selected. Remove the memos first."
        )
        self.current = current
        self.requested = requested
        self.memo_count = memo_count


@dataclass(frozen=True)
class Totals:
    """Derived invoice amounts."""
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    missing_memo_nos: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict:
        return {
            "total_amount": str(self.total_amount),
            "amount_paid": str(self.amount_paid),
            "balance": str(self.balance),
            "missing_memo_nos": list(self.missing_memo_nos),
        }


InvoicesOrMap = Union[InvoicingMap, Iterable[Invoice]]


# =============================================================================
# Utility Functions
# =============================================================================

def to_decimal(value) -> Decimal:
    """Convert user input to Decimal; blank means zero.

    Raises:
        InvoiceValidationError: If the value is not a finite number
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = money(value)
        except (InvalidOperation, ValueError, TypeError):
            raise InvoiceValidationError([ValidationReason.INVALID_AMOUNT_PAID])
    if not result.is_finite():
        raise InvoiceValidationError([ValidationReason.INVALID_AMOUNT_PAID])
    return result


def index_memos(memos: Iterable[Memo]) -> Dict[str, Memo]:
    """Memo lookup keyed by memo number."""
    return {m.memo_no: m for m in memos}


def _same_invoice(a: Optional[Invoice], b: Optional[Invoice]) -> bool:
    if a is None or b is None:
        return False
    if a.id is not None and b.id is not None:
        return a.id == b.id
    return bool(a.invoice_no) and a.invoice_no == b.invoice_no


def _as_map(invoices: InvoicesOrMap) -> InvoicingMap:
    if isinstance(invoices, InvoicingMap):
        return invoices
    return build_invoicing_map(invoices)


# =============================================================================
# Invoicing Map
# =============================================================================

def build_invoicing_map(invoices: Iterable[Invoice]) -> InvoicingMap:
    """Scan every invoice's memo_nos into memo -> owning invoice.

    A memo claimed by more than one invoice keeps its first owner and is
    reported in ``conflicts``.
    """
    owners: Dict[str, str] = {}
    owner_ids: Dict[str, Optional[int]] = {}
    claims: Dict[str, List[str]] = {}

    for invoice in invoices:
        for memo_no in invoice.memo_nos:
            claims.setdefault(memo_no, []).append(invoice.invoice_no)
            if memo_no not in owners:
                owners[memo_no] = invoice.invoice_no
                owner_ids[memo_no] = invoice.id

    conflicts = {memo_no: nos for memo_no, nos in claims.items() if len(nos) > 1}
    return InvoicingMap(owners=owners, owner_ids=owner_ids, conflicts=conflicts)


def is_mutable(memo: Union[Memo, str], invoices: InvoicesOrMap) -> bool:
    """True iff no persisted invoice links this memo."""
    memo_no = memo.memo_no if isinstance(memo, Memo) else memo
    return memo_no not in _as_map(invoices)


# =============================================================================
# Eligibility
# =============================================================================

def eligible_memos(
    customer_name: str,
    memos: Iterable[Memo],
    invoices: Iterable[Invoice],
    editing_invoice: Optional[Invoice] = None,
) -> List[Memo]:
    """Memos that may be offered for selection on ``editing_invoice``.

    A memo is eligible when it belongs to the customer and no invoice other
    than the one being edited links it. Memos already selected on the edited
    invoice are always included, first and in selection order; the rest follow
    sorted by memo number.
    """
    key = normalize_name(customer_name)
    if not key and editing_invoice is None:
        return []

    others = [inv for inv in invoices if not _same_invoice(inv, editing_invoice)]
    linked_elsewhere = build_invoicing_map(others)
    lookup = index_memos(memos)

    selected: List[Memo] = []
    if editing_invoice is not None:
        for memo_no in editing_invoice.memo_nos:
            memo = lookup.get(memo_no)
            if memo is not None and memo_no not in linked_elsewhere:
                selected.append(memo)
    selected_nos = {m.memo_no for m in selected}

    rest = [
        m for m in lookup.values()
        if key
        and normalize_name(m.customer_name) == key
        and m.memo_no not in linked_elsewhere
        and m.memo_no not in selected_nos
    ]
    rest.sort(key=lambda m: m.memo_no)
    return selected + rest


def merge_display_memos(
    available: Iterable[Memo],
    selected_memo_nos: Iterable[str],
    memo_lookup: Mapping[str, Memo],
) -> List[Memo]:
    """Selection rows: the store's eligible set plus already-selected memos it omitted."""
    rows = list(available)
    shown = {m.memo_no for m in rows}
    for memo_no in selected_memo_nos:
        if memo_no not in shown:
            memo = memo_lookup.get(memo_no)
            if memo is not None:
                rows.append(memo)
                shown.add(memo_no)
    return rows


def check_linkage(draft: Invoice, invoices: Iterable[Invoice]) -> Dict[str, str]:
    """Memo numbers of ``draft`` that another invoice already owns.

    Returns:
        memo_no -> owning invoice_no, empty when the draft is consistent
    """
    others = [inv for inv in invoices if not _same_invoice(inv, draft)]
    owners = build_invoicing_map(others)
    return {
        memo_no: owners.invoice_no_for(memo_no)
        for memo_no in draft.memo_nos
        if memo_no in owners
    }


def ensure_customer_change_allowed(invoice: Invoice, customer_name: str) -> None:
    """Raise CustomerLockedError when a customer change would orphan selected memos."""
    if normalize_name(invoice.customer_name) == normalize_name(customer_name):
        return
    if invoice.memo_nos:
        raise CustomerLockedError(invoice.customer_name, customer_name, len(invoice.memo_nos))


# =============================================================================
# Totals
# =============================================================================

def compute_totals(
    selected_memo_nos: Iterable[str],
    amount_paid,
    memo_lookup: Mapping[str, Memo],
) -> Totals:
    """Total of the selected memos and the balance left after payment.

    Memo numbers missing from ``memo_lookup`` contribute zero and are reported
    in ``missing_memo_nos``.
    """
    paid = to_decimal(amount_paid)
    total = ZERO
    missing = []
    seen = set()
    for memo_no in selected_memo_nos:
        if memo_no in seen:
            continue
        seen.add(memo_no)
        memo = memo_lookup.get(memo_no)
        if memo is None:
            missing.append(memo_no)
            continue
        total += memo.total_amount

    total = money(total)
    paid = money(paid)
    return Totals(
        total_amount=total,
        amount_paid=paid,
        balance=money(total - paid),
        missing_memo_nos=tuple(missing),
    )


def apply_totals(invoice: Invoice, memo_lookup: Mapping[str, Memo]) -> Invoice:
    """Copy of ``invoice`` with total_amount and balance derived from its memos."""
    totals = compute_totals(invoice.memo_nos, invoice.amount_paid, memo_lookup)
    return invoice.model_copy(update={
        "total_amount": totals.total_amount,
        "amount_paid": totals.amount_paid,
        "balance": totals.balance,
    })


# =============================================================================
# Save Validation
# =============================================================================

def validate_for_save(draft: Invoice) -> None:
    """Check a draft before any write.

    Raises:
        InvoiceValidationError: With every failed reason, customer first
    """
    reasons = []
    if not (draft.customer_name or "").strip():
        reasons.append(ValidationReason.MISSING_CUSTOMER)
    if draft.invoice_date is None:
        reasons.append(ValidationReason.MISSING_DATE)
    if not draft.memo_nos:
        reasons.append(ValidationReason.NO_MEMOS_SELECTED)
    if draft.amount_paid < 0:
        reasons.append(ValidationReason.INVALID_AMOUNT_PAID)
    if reasons:
        raise InvoiceValidationError(reasons)


def status_advisories(invoice: Invoice) -> List[str]:
    """Non-blocking notes on the invoice status. Status transitions are not enforced."""
    notes = []
    if invoice.status == InvoiceStatus.PAID and invoice.balance > 0:
        notes.append(f"Invoice {invoice.invoice_no} is marked Paid with a balance of {invoice.balance}.")
    if invoice.status != InvoiceStatus.PAID and invoice.memo_nos and invoice.balance <= 0:
        notes.append(f"Invoice {invoice.invoice_no} is fully paid but its status is {invoice.status.value}.")
    if invoice.balance < 0:
        notes.append(f"Invoice {invoice.invoice_no} is overpaid by {-invoice.balance}.")
    return notes


# =============================================================================
# Amount in words (printed invoices)
# =============================================================================

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _below_hundred(n: int) -> str:
    if n < 20:
        return _ONES[n]
    return (_TENS[n // 10] + " " + _ONES[n % 10]).strip()


def _below_thousand(n: int) -> str:
    hundreds, rest = divmod(n, 100)
    parts = []
    if hundreds:
        parts.append(f"{_ONES[hundreds]} Hundred")
    if rest:
        parts.append(_below_hundred(rest))
    return " ".join(parts)


def _integer_in_words(n: int) -> str:
    """Indian grouping: crore, lakh, thousand."""
    if n == 0:
        return "Zero"
    parts = []
    crore, n = divmod(n, 10_000_000)
    lakh, n = divmod(n, 100_000)
    thousand, n = divmod(n, 1000)
    if crore:
        parts.append(f"{_integer_in_words(crore)} Crore")
    if lakh:
        parts.append(f"{_below_hundred(lakh)} Lakh")
    if thousand:
        parts.append(f"{_below_hundred(thousand)} Thousand")
    if n:
        parts.append(_below_thousand(n))
    return " ".join(parts)


def amount_in_words(amount) -> str:
    """Rupees and paise in words, e.g. 'Rupees Eight Hundred and Fifty Paise Only'."""
    value = money(amount)
    sign = "Minus " if value < 0 else ""
    value = abs(value)
    rupees = int(value)
    paise = int((value - rupees) * 100)
    words = f"{sign}Rupees {_integer_in_words(rupees)}"
    if paise:
        words += f" and {_below_hundred(paise)} Paise"
    return words + " Only"

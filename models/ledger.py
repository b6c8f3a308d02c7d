"""Ledger data models - trip memos, customer invoices and customers.

These models are the shared contract between the ledger stores, the
reconciliation engine, the form/list controllers and the API.

- Memo: a single trip charge, keyed by memo number
- Invoice: a billing document grouping memos for one customer
- Customer: reference data used to scope memo eligibility
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# =============================================================================
# Value Parsers (memo sheets arrive as strings: "1,500.00", "₹500", "(20)")
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from strings with currency symbols, commas or parentheses."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not an amount")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return ZERO
        for symbol in ("₹", "$", "Rs.", "Rs", "INR", ","):
            s = s.replace(symbol, "")
        s = s.strip()
        if s.startswith("(") and s.endswith(")"):
            s = "-" + s[1:-1]
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {value}")
    return value


def _parse_date(value):
    """Parse date from various string formats; blank means no date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%S"):
            try:
                return datetime.strptime(s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {s}")
    return value


def _parse_text(value):
    if value is None:
        return ""
    return str(value).strip()


DecimalValue = Annotated[Decimal, BeforeValidator(_parse_decimal)]
DateValue = Annotated[Optional[date], BeforeValidator(_parse_date)]
TextValue = Annotated[str, BeforeValidator(_parse_text)]


def money(value) -> Decimal:
    """Round an amount to paise."""
    return _parse_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_name(name: Optional[str]) -> str:
    """Customer name key used for comparisons."""
    return " ".join((name or "").split()).casefold()


# =============================================================================
# Enums
# =============================================================================

class InvoiceStatus(str, Enum):
    """Invoice status values (freely settable, no enforced transitions)."""
    DRAFT = "Draft"
    FINALIZED = "Finalized"
    PAID = "Paid"


# =============================================================================
# Base Model
# =============================================================================

class LedgerBase(BaseModel):
    """Base model for all ledger records."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Records
# =============================================================================

class Customer(LedgerBase):
    """Customer reference data."""
    name: TextValue = Field(..., alias="customers_name")
    code: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class Memo(LedgerBase):
    """A trip charge record.

    Aliases accept the column names used by the trip-entry sheet
    (``trips_memo_no``, ``trips_total_amt`` ...).
    """
    memo_no: TextValue = Field(..., alias="trips_memo_no")
    customer_name: TextValue = Field("", alias="customers_name")
    vehicle_no: TextValue = Field("", alias="trips_vehicle_no")
    operated_date: DateValue = Field(None, alias="trip_operated_date1")
    total_amount: DecimalValue = Field(ZERO, alias="trips_total_amt")
    balance: DecimalValue = Field(ZERO, alias="trips_balance")

    @field_validator("memo_no")
    @classmethod
    def _memo_no_required(cls, v: str) -> str:
        if not v:
            raise ValueError("memo_no must not be empty")
        return v


class Invoice(LedgerBase):
    """A customer invoice.

    ``total_amount`` and ``balance`` are derived from the linked memos and
    ``amount_paid``; the reconciliation engine recomputes them, the stored
    values are only a snapshot of the last save.
    """
    id: Optional[int] = None
    invoice_no: TextValue = ""
    invoice_date: DateValue = None
    customer_name: TextValue = ""
    memo_nos: List[str] = Field(default_factory=list)
    total_amount: DecimalValue = ZERO
    amount_paid: DecimalValue = ZERO
    balance: DecimalValue = ZERO
    status: InvoiceStatus = InvoiceStatus.DRAFT

    @field_validator("memo_nos", mode="before")
    @classmethod
    def _dedupe_memo_nos(cls, v):
        """Keep set semantics: first occurrence wins, blanks dropped."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in v.split(",")]
        seen = []
        for memo_no in v:
            memo_no = str(memo_no).strip()
            if memo_no and memo_no not in seen:
                seen.append(memo_no)
        return seen

    @field_validator("amount_paid")
    @classmethod
    def _non_negative_paid(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("amount_paid must not be negative")
        return v

    @property
    def is_persisted(self) -> bool:
        return self.id is not None


class InvoicingMap(LedgerBase):
    """Derived memo number -> owning invoice linkage (never stored)."""
    owners: dict = Field(default_factory=dict, description="memo_no -> invoice_no")
    owner_ids: dict = Field(default_factory=dict, description="memo_no -> invoice id")
    conflicts: dict = Field(
        default_factory=dict,
        description="memo_no -> every invoice_no claiming it, when more than one does",
    )

    def invoice_no_for(self, memo_no: str) -> Optional[str]:
        return self.owners.get(memo_no)

    def invoice_id_for(self, memo_no: str) -> Optional[int]:
        return self.owner_ids.get(memo_no)

    def is_invoiced(self, memo_no: str) -> bool:
        return memo_no in self.owners

    def __contains__(self, memo_no: str) -> bool:
        return memo_no in self.owners

    def __len__(self) -> int:
        return len(self.owners)

"""Print views for invoices and memos.

A ``PrintDocument`` is a layout-neutral description of one printed page;
``to_text()`` renders it for terminals and logs, ``to_pdf_bytes()`` draws it
with PyMuPDF.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence, Tuple

import fitz  # PyMuPDF

from models.ledger import Invoice, Memo, money
from reconciliation.engine import amount_in_words


# A4 in points
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 40
LINE_HEIGHT = 14


def format_rupees(amount) -> str:
    """Indian digit grouping: Rs. 12,50,000.00"""
    value = money(amount)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}Rs. {whole}.{fraction}"


@dataclass
class PrintDocument:
    """One printable page."""
    title: str
    header_lines: List[str] = field(default_factory=list)
    bill_to: List[str] = field(default_factory=list)
    meta: List[Tuple[str, str]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    totals: List[Tuple[str, str]] = field(default_factory=list)
    footer_lines: List[str] = field(default_factory=list)
    filename: str = "document.pdf"

    def to_text(self) -> str:
        lines = list(self.header_lines)
        lines.append(self.title.center(60))
        lines.append("=" * 60)
        if self.bill_to:
            lines.append("Bill To:")
            lines.extend(f"  {line}" for line in self.bill_to)
        for label, value in self.meta:
            lines.append(f"{label}: {value}")
        if self.columns:
            widths = _column_widths(self.columns, self.rows)
            lines.append("-" * 60)
            lines.append(_text_row(self.columns, widths))
            lines.append("-" * 60)
            for row in self.rows:
                lines.append(_text_row(row, widths))
            lines.append("-" * 60)
        for label, value in self.totals:
            lines.append(f"{label:>40} {value:>19}")
        if self.footer_lines:
            lines.append("")
            lines.extend(self.footer_lines)
        return "\n".join(lines) + "\n"

    def to_pdf_bytes(self) -> bytes:
        doc = fitz.open()
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        y = MARGIN

        def write(text: str, x: float = MARGIN, size: float = 10, bold: bool = False):
            nonlocal page, y
            if y > PAGE_HEIGHT - MARGIN:
                page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
                y = MARGIN
            page.insert_text((x, y), text, fontsize=size, fontname="hebo" if bold else "helv")

        for i, line in enumerate(self.header_lines):
            write(line, size=16 if i == 0 else 8, bold=i == 0)
            y += 20 if i == 0 else 11
        write(self.title, x=PAGE_WIDTH - MARGIN - 120, size=20, bold=True)
        y += 24

        if self.bill_to:
            write("Bill To:", bold=True)
            y += LINE_HEIGHT
            for line in self.bill_to:
                write(line, size=12)
                y += LINE_HEIGHT
        for label, value in self.meta:
            write(f"{label}: {value}")
            y += LINE_HEIGHT
        y += 10

        if self.columns:
            step = (PAGE_WIDTH - 2 * MARGIN) / len(self.columns)
            for i, name in enumerate(self.columns):
                write(name, x=MARGIN + i * step, bold=True)
            y += LINE_HEIGHT
            for row in self.rows:
                for i, cell in enumerate(row):
                    write(cell, x=MARGIN + i * step)
                y += LINE_HEIGHT
            y += 10

        for label, value in self.totals:
            write(label, x=PAGE_WIDTH - MARGIN - 220, bold=True)
            write(value, x=PAGE_WIDTH - MARGIN - 100)
            y += LINE_HEIGHT

        y += 30
        for line in self.footer_lines:
            write(line, size=8)
            y += 11

        try:
            return doc.tobytes()
        finally:
            doc.close()


def _column_widths(columns: Sequence[str], rows: Sequence[Sequence[str]]) -> List[int]:
    widths = [len(c) for c in columns]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    return widths


def _text_row(cells: Sequence[str], widths: Sequence[int]) -> str:
    return "  ".join(cell.ljust(w) for cell, w in zip(cells, widths))


def _letterhead_lines(letterhead) -> List[str]:
    if letterhead is None:
        from config import Letterhead
        letterhead = Letterhead()
    return [
        letterhead.company_name,
        letterhead.address,
        f"Phone: {letterhead.phone} | Email: {letterhead.email}",
    ]


def _bank_lines(letterhead) -> List[str]:
    if letterhead is None:
        from config import Letterhead
        letterhead = Letterhead()
    return [
        "BANK DETAILS:",
        f"Bank Name: {letterhead.bank_name}",
        f"Branch: {letterhead.bank_branch}",
        f"A/C No: {letterhead.bank_account}",
        f"IFSC: {letterhead.bank_ifsc}",
        "",
        "Authorized Signatory",
    ]


def _date_text(value) -> str:
    return value.isoformat() if value else "-"


def render_invoice(invoice: Invoice, memo_lookup: Mapping[str, Memo], letterhead=None) -> PrintDocument:
    """Print view of an invoice: one row per selected memo found in ``memo_lookup``."""
    rows = []
    for memo_no in invoice.memo_nos:
        memo = memo_lookup.get(memo_no)
        if memo is None:
            continue
        rows.append([
            memo.memo_no,
            _date_text(memo.operated_date),
            memo.vehicle_no,
            format_rupees(memo.total_amount),
        ])

    return PrintDocument(
        title="INVOICE",
        header_lines=_letterhead_lines(letterhead),
        bill_to=[invoice.customer_name],
        meta=[
            ("Invoice No", invoice.invoice_no),
            ("Invoice Date", _date_text(invoice.invoice_date)),
            ("Status", invoice.status.value),
        ],
        columns=["Memo No", "Date", "Vehicle No", "Amount"],
        rows=rows,
        totals=[
            ("Total Amount:", format_rupees(invoice.total_amount)),
            ("Amount Paid:", format_rupees(invoice.amount_paid)),
            ("Balance Due:", format_rupees(invoice.balance)),
        ],
        footer_lines=[amount_in_words(invoice.total_amount), ""] + _bank_lines(letterhead),
        filename=f"{invoice.invoice_no or 'invoice'}.pdf",
    )


def render_memo(memo: Memo, invoice_no: Optional[str] = None, letterhead=None) -> PrintDocument:
    """Print view of a single trip memo."""
    total: Decimal = memo.total_amount
    return PrintDocument(
        title="TRIP MEMO",
        header_lines=_letterhead_lines(letterhead),
        bill_to=[memo.customer_name],
        meta=[
            ("Memo No", memo.memo_no),
            ("Date", _date_text(memo.operated_date)),
            ("Vehicle No", memo.vehicle_no or "-"),
            ("Invoice", invoice_no or "Uninvoiced"),
        ],
        totals=[
            ("Total Amount:", format_rupees(total)),
            ("Balance:", format_rupees(memo.balance)),
        ],
        footer_lines=[amount_in_words(total), ""] + _bank_lines(letterhead),
        filename=f"memo-{memo.memo_no}.pdf",
    )

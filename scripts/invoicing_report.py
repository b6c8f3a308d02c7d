"""
Memo-invoice reconciliation report.

Checks the ledger for:
- L1: Memos linked to more than one invoice
- L2: Invoices whose stored totals drift from their memos
- L3: Invoices linking memo numbers with no memo record
- L4: Invoices whose memos belong to another customer
- L5: Uninvoiced memos per customer (informational)

Usage:
    python scripts/invoicing_report.py
    python scripts/invoicing_report.py --json
"""

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, List

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from config import build_store, get_settings
from core.observability.logging import configure_logging
from models.ledger import Invoice, Memo, normalize_name
from reconciliation.engine import build_invoicing_map, compute_totals, index_memos


class Severity(str, Enum):
    BLOCK = "BLOCK"
    WARN = "WARN"
    INFO = "INFO"


@dataclass
class Finding:
    check_id: str
    severity: Severity
    message: str
    evidence: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "check_id": self.check_id,
            "severity": self.severity.value,
            "message": self.message,
            "evidence": self.evidence,
        }


@dataclass
class Report:
    invoice_count: int = 0
    memo_count: int = 0
    invoiced_memo_count: int = 0
    findings: List[Finding] = field(default_factory=list)

    @property
    def status(self) -> str:
        severities = {f.severity for f in self.findings}
        if Severity.BLOCK in severities:
            return "FAIL"
        if Severity.WARN in severities:
            return "WARN"
        return "PASS"

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "invoice_count": self.invoice_count,
            "memo_count": self.memo_count,
            "invoiced_memo_count": self.invoiced_memo_count,
            "findings": [f.to_dict() for f in self.findings],
        }


def build_report(memos: List[Memo], invoices: List[Invoice]) -> Report:
    lookup = index_memos(memos)
    invoicing_map = build_invoicing_map(invoices)
    report = Report(
        invoice_count=len(invoices),
        memo_count=len(memos),
        invoiced_memo_count=sum(1 for m in memos if m.memo_no in invoicing_map),
    )

    for memo_no, owners in sorted(invoicing_map.conflicts.items()):
        report.findings.append(Finding(
            "L1", Severity.BLOCK,
            f"Memo {memo_no} is linked to {len(owners)} invoices",
            {"memo_no": memo_no, "invoice_nos": owners},
        ))

    for invoice in sorted(invoices, key=lambda inv: inv.invoice_no):
        totals = compute_totals(invoice.memo_nos, invoice.amount_paid, lookup)

        if totals.total_amount != invoice.total_amount or totals.balance != invoice.balance:
            report.findings.append(Finding(
                "L2", Severity.WARN,
                f"Invoice {invoice.invoice_no} totals drift from its memos",
                {
                    "stored_total": str(invoice.total_amount),
                    "computed_total": str(totals.total_amount),
                    "stored_balance": str(invoice.balance),
                    "computed_balance": str(totals.balance),
                },
            ))

        if totals.missing_memo_nos:
            report.findings.append(Finding(
                "L3", Severity.WARN,
                f"Invoice {invoice.invoice_no} links memos with no record",
                {"memo_nos": list(totals.missing_memo_nos)},
            ))

        key = normalize_name(invoice.customer_name)
        foreign = [
            n for n in invoice.memo_nos
            if n in lookup and normalize_name(lookup[n].customer_name) != key
        ]
        if foreign:
            report.findings.append(Finding(
                "L4", Severity.BLOCK,
                f"Invoice {invoice.invoice_no} links memos of another customer",
                {"memo_nos": foreign, "customer_name": invoice.customer_name},
            ))

    uninvoiced: Dict[str, List[str]] = {}
    amounts: Dict[str, Decimal] = {}
    for memo in memos:
        if memo.memo_no in invoicing_map:
            continue
        uninvoiced.setdefault(memo.customer_name, []).append(memo.memo_no)
        amounts[memo.customer_name] = amounts.get(memo.customer_name, Decimal("0")) + memo.total_amount
    for customer, memo_nos in sorted(uninvoiced.items()):
        report.findings.append(Finding(
            "L5", Severity.INFO,
            f"{customer}: {len(memo_nos)} uninvoiced memo(s)",
            {"memo_nos": sorted(memo_nos), "amount": str(amounts[customer])},
        ))

    return report


async def load_and_report() -> Report:
    store = build_store(get_settings())
    try:
        memos, invoices = await asyncio.gather(store.list_memos(), store.list_invoices())
    finally:
        await store.close()
    return build_report(memos, invoices)


def main():
    parser = argparse.ArgumentParser(description="Memo-invoice reconciliation report")
    parser.add_argument("--json", action="store_true", help="Emit JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)
    report = asyncio.run(load_and_report())

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"Status: {report.status}")
        print(f"  Invoices: {report.invoice_count}")
        print(f"  Memos: {report.memo_count} ({report.invoiced_memo_count} invoiced)")
        for finding in report.findings:
            print(f"  [{finding.severity.value}] {finding.check_id}: {finding.message}")

    sys.exit(1 if report.status == "FAIL" else 0)


if __name__ == "__main__":
    main()

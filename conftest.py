"""Shared pytest fixtures."""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from controllers.notices import NoticeBoard
from ledger_store.memory import InMemoryLedgerStore
from models.ledger import Customer, Invoice, InvoiceStatus, Memo


def make_memo(memo_no: str, customer: str, amount: str, vehicle: str = "TN 01 AA 0001") -> Memo:
    return Memo(
        memo_no=memo_no,
        customer_name=customer,
        vehicle_no=vehicle,
        operated_date=date(2026, 9, 1),
        total_amount=Decimal(amount),
        balance=Decimal(amount),
    )


@pytest.fixture
def acme_memos():
    return [
        make_memo("M1", "Acme Traders", "500"),
        make_memo("M2", "Acme Traders", "300"),
        make_memo("M3", "Acme Traders", "400"),
        make_memo("M4", "Beta Logistics", "250"),
    ]


@pytest.fixture
def acme_invoice():
    """Invoice already linking M3."""
    return Invoice(
        id=1,
        invoice_no="INV-X",
        invoice_date=date(2026, 9, 15),
        customer_name="Acme Traders",
        memo_nos=["M3"],
        total_amount=Decimal("400.00"),
        amount_paid=Decimal("100.00"),
        balance=Decimal("300.00"),
        status=InvoiceStatus.FINALIZED,
    )


@pytest.fixture
def acme_store(acme_memos, acme_invoice):
    return InMemoryLedgerStore(
        memos=acme_memos,
        invoices=[acme_invoice],
        customers=[Customer(name="Acme Traders"), Customer(name="Beta Logistics")],
    )


@pytest.fixture
def demo_store():
    return InMemoryLedgerStore.with_demo_data()


@pytest.fixture
def notices():
    return NoticeBoard()


@pytest.fixture
def client(demo_store):
    from fastapi.testclient import TestClient

    from api.server import create_app
    from config import Settings

    app = create_app(store=demo_store, settings=Settings())
    return TestClient(app)

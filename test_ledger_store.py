"""
Ledger Store Tests

Covers the three backends behind LedgerStore:
1. InMemoryLedgerStore - copies, numbering, memo locking, failure injection
2. SqliteLedgerStore - persistence and write-time linkage enforcement
3. HttpLedgerStore - envelope decoding, error mapping, read retries
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from ledger_store.base import current_year, format_invoice_number, parse_invoice_sequence
from ledger_store.errors import MemoAlreadyInvoiced, MemoLockedError, NotFound, StoreFailure
from ledger_store.memory import InMemoryLedgerStore
from models.ledger import Invoice, InvoiceStatus, Memo


def draft(invoice_no, memo_nos, customer="Acme Traders"):
    return Invoice(
        invoice_no=invoice_no,
        invoice_date=date(2026, 10, 1),
        customer_name=customer,
        memo_nos=memo_nos,
    )


class TestInvoiceNumbers:
    """Invoice number layout."""

    def test_format_and_parse(self):
        assert format_invoice_number("INV", 2026, 7) == "INV-2026-0007"
        assert parse_invoice_sequence("INV-2026-0007", "INV") == 7
        assert parse_invoice_sequence("INV-2026-0007", "INV", 2025) is None
        assert parse_invoice_sequence("BILL-2026-0007", "INV") is None


class TestInMemoryStore:
    """Mock ledger data service."""

    def test_demo_data_parses_sheet_columns(self, demo_store):
        memos = asyncio.run(demo_store.list_memos())
        by_no = {m.memo_no: m for m in memos}

        assert by_no["M-1001"].total_amount == Decimal("12500.00")
        assert by_no["M-1001"].customer_name == "Acme Traders"
        assert len(asyncio.run(demo_store.list_customers())) == 4

    def test_returns_copies(self, acme_store):
        invoice = asyncio.run(acme_store.get_invoice_by_id(1))
        invoice.memo_nos.append("M1")

        assert asyncio.run(acme_store.get_invoice_by_id(1)).memo_nos == ["M3"]

    def test_get_missing_invoice_returns_none(self, acme_store):
        assert asyncio.run(acme_store.get_invoice_by_id(99)) is None

    def test_create_assigns_id_and_update_keeps_number(self, acme_store):
        created = asyncio.run(acme_store.create_invoice(draft("INV-NEW", ["M1"])))
        assert created.id == 2

        changed = created.model_copy(update={"invoice_no": "HACKED", "status": InvoiceStatus.PAID})
        updated = asyncio.run(acme_store.update_invoice(changed))

        assert updated.invoice_no == "INV-NEW"
        assert updated.status == InvoiceStatus.PAID

    def test_update_and_delete_missing_invoice(self, acme_store):
        with pytest.raises(NotFound):
            asyncio.run(acme_store.update_invoice(draft("INV-9", ["M1"]).model_copy(update={"id": 9})))
        with pytest.raises(NotFound):
            asyncio.run(acme_store.delete_invoice(9))

    def test_generated_numbers_are_never_reused(self, acme_store):
        first = asyncio.run(acme_store.generate_invoice_number())
        second = asyncio.run(acme_store.generate_invoice_number())

        assert first != second
        assert first.startswith(f"INV-{current_year()}-")

    def test_numbering_continues_after_seeded_invoices(self, demo_store):
        number = asyncio.run(demo_store.generate_invoice_number())
        existing = {inv.invoice_no for inv in asyncio.run(demo_store.list_invoices())}

        assert number not in existing

    def test_delete_memo_refused_while_invoiced(self, acme_store):
        with pytest.raises(MemoLockedError) as exc_info:
            asyncio.run(acme_store.delete_memo("M3"))
        assert exc_info.value.invoice_no == "INV-X"

        asyncio.run(acme_store.delete_invoice(1))
        asyncio.run(acme_store.delete_memo("M3"))
        assert asyncio.run(acme_store.get_memo("M3")) is None

    def test_uninvoiced_memos_for_customer(self, acme_store):
        memos = asyncio.run(acme_store.list_uninvoiced_memos_for_customer("acme traders"))

        assert sorted(m.memo_no for m in memos) == ["M1", "M2"]

    def test_failure_injection(self, acme_store):
        acme_store.fail_next("list_invoices")

        with pytest.raises(StoreFailure):
            asyncio.run(acme_store.list_invoices())
        assert len(asyncio.run(acme_store.list_invoices())) == 1
        assert acme_store.calls == ["list_invoices", "list_invoices"]


class TestSqliteStore:
    """SQLite backend."""

    @pytest.fixture
    def store(self, tmp_path):
        from ledger_store.sqlite_store import SqliteLedgerStore

        store = SqliteLedgerStore(tmp_path / "ledger.db")
        store.init_db()
        store.seed_demo_data()
        return store

    def test_seed_is_idempotent(self, store):
        store.seed_demo_data()

        assert len(asyncio.run(store.list_memos())) == 7
        assert len(asyncio.run(store.list_invoices())) == 1

    def test_invoice_round_trip(self, store):
        created = asyncio.run(store.create_invoice(draft("INV-T1", ["M-1002", "M-1001"])))
        loaded = asyncio.run(store.get_invoice_by_id(created.id))

        assert loaded.memo_nos == ["M-1002", "M-1001"]
        assert loaded.invoice_date == date(2026, 10, 1)

    def test_second_invoice_claiming_a_memo_fails(self, store):
        asyncio.run(store.create_invoice(draft("INV-T1", ["M-1001"])))

        with pytest.raises(MemoAlreadyInvoiced) as exc_info:
            asyncio.run(store.create_invoice(draft("INV-T2", ["M-1002", "M-1001"])))

        assert exc_info.value.owner_invoice_no == "INV-T1"
        numbers = [inv.invoice_no for inv in asyncio.run(store.list_invoices())]
        assert "INV-T2" not in numbers

    def test_update_relinks_memos(self, store):
        created = asyncio.run(store.create_invoice(draft("INV-T1", ["M-1001", "M-1002"])))
        asyncio.run(store.update_invoice(created.model_copy(update={"memo_nos": ["M-1002"]})))

        uninvoiced = asyncio.run(store.list_uninvoiced_memos_for_customer("Acme Traders"))
        assert sorted(m.memo_no for m in uninvoiced) == ["M-1001", "M-1003"]

    def test_delete_invoice_releases_memos(self, store):
        invoice = asyncio.run(store.list_invoices())[0]
        with pytest.raises(MemoLockedError):
            asyncio.run(store.delete_memo("M-1004"))

        asyncio.run(store.delete_invoice(invoice.id))
        asyncio.run(store.delete_memo("M-1004"))

        assert asyncio.run(store.get_memo("M-1004")) is None

    def test_generated_numbers_skip_existing(self, store):
        existing = {inv.invoice_no for inv in asyncio.run(store.list_invoices())}
        numbers = {asyncio.run(store.generate_invoice_number()) for _ in range(3)}

        assert len(numbers) == 3
        assert numbers.isdisjoint(existing)

    def test_missing_records(self, store):
        assert asyncio.run(store.get_invoice_by_id(42)) is None
        with pytest.raises(NotFound):
            asyncio.run(store.delete_invoice(42))
        with pytest.raises(NotFound):
            asyncio.run(store.delete_memo("NOPE"))


class TestHttpStore:
    """Remote ledger web app client."""

    @pytest.fixture
    def store(self):
        from ledger_store.http_store import HttpLedgerStore, HttpStoreConfig, RetryConfig

        return HttpLedgerStore(HttpStoreConfig(
            base_url="https://ledger.example.com/exec",
            retry_config=RetryConfig(max_retries=2, base_delay=0.0),
        ))

    @staticmethod
    def ok(data):
        return 200, json.dumps({"status": "success", "data": data})

    def test_list_memos_decodes_sheet_rows(self, store):
        rows = [{"trips_memo_no": "M-1", "customers_name": "Acme Traders", "trips_total_amt": "1,500.00"}]
        with patch.object(store, "_send", AsyncMock(return_value=self.ok(rows))) as send:
            memos = asyncio.run(store.list_memos())

        assert memos[0].total_amount == Decimal("1500.00")
        send.assert_awaited_once_with("GET", params={"action": "getMemos"})

    def test_not_found_maps_to_none(self, store):
        body = (404, json.dumps({"status": "error", "code": "not_found", "message": "no such invoice"}))
        with patch.object(store, "_send", AsyncMock(return_value=body)):
            assert asyncio.run(store.get_invoice_by_id(5)) is None

    def test_reads_retry_transient_failures(self, store):
        responses = [
            (503, "unavailable"),
            aiohttp.ClientConnectionError("reset"),
            self.ok([]),
        ]
        with patch.object(store, "_send", AsyncMock(side_effect=responses)) as send:
            assert asyncio.run(store.list_invoices()) == []
        assert send.await_count == 3

    def test_reads_give_up_after_max_retries(self, store):
        with patch.object(store, "_send", AsyncMock(return_value=(503, "unavailable"))) as send:
            with pytest.raises(StoreFailure):
                asyncio.run(store.list_customers())
        assert send.await_count == 3

    def test_writes_are_not_retried(self, store):
        with patch.object(store, "_send", AsyncMock(return_value=(503, "unavailable"))) as send:
            with pytest.raises(StoreFailure):
                asyncio.run(store.create_invoice(draft("INV-1", ["M-1"])))
        send.assert_awaited_once()

    def test_memo_invoiced_error_code(self, store):
        body = (409, json.dumps({
            "status": "error",
            "code": "memo_invoiced",
            "memo_nos": ["M-1"],
            "invoice_no": "INV-7",
        }))
        with patch.object(store, "_send", AsyncMock(return_value=body)):
            with pytest.raises(MemoAlreadyInvoiced) as exc_info:
                asyncio.run(store.create_invoice(draft("INV-1", ["M-1"])))
        assert exc_info.value.owner_invoice_no == "INV-7"

    def test_invalid_json_is_a_store_failure(self, store):
        with patch.object(store, "_send", AsyncMock(return_value=(200, "<html>"))):
            with pytest.raises(StoreFailure):
                asyncio.run(store.list_memos())

    @pytest.mark.parametrize("body", ["[1, 2]", "\"ok\"", "null"])
    def test_non_object_body_is_a_store_failure(self, store, body):
        with patch.object(store, "_send", AsyncMock(return_value=(200, body))):
            with pytest.raises(StoreFailure):
                asyncio.run(store.list_memos())

    def test_malformed_record_is_a_store_failure(self, store):
        rows = [{"trips_memo_no": "M1", "trips_total_amt": "abc"}]
        with patch.object(store, "_send", AsyncMock(return_value=self.ok(rows))):
            with pytest.raises(StoreFailure) as exc_info:
                asyncio.run(store.list_memos())
        assert "getMemos: malformed record" in str(exc_info.value)

    def test_malformed_single_record_is_a_store_failure(self, store):
        with patch.object(store, "_send", AsyncMock(return_value=self.ok({"id": "seven"}))):
            with pytest.raises(StoreFailure):
                asyncio.run(store.get_invoice_by_id(7))

    def test_non_list_data_is_a_store_failure(self, store):
        with patch.object(store, "_send", AsyncMock(return_value=self.ok({"memo": "M1"}))):
            with pytest.raises(StoreFailure):
                asyncio.run(store.list_customers())

    def test_create_sends_payload_without_id(self, store):
        saved = draft("INV-1", ["M-1"]).model_dump(mode="json")
        saved["id"] = 3
        with patch.object(store, "_send", AsyncMock(return_value=self.ok(saved))) as send:
            created = asyncio.run(store.create_invoice(draft("INV-1", ["M-1"])))

        assert created.id == 3
        sent = send.await_args.kwargs["data"]
        assert sent["action"] == "addInvoice"
        assert "id" not in sent["payload"]

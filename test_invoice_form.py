"""
Invoice Form Controller Tests

Walks the create/edit lifecycle against the in-memory store:
1. Initial load (new, existing, not found, store failure)
2. Memo selection, customer lock and live totals
3. Save validation, linkage re-check and failure recovery
4. Unmount while a save is in flight
"""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from controllers.invoice_form import FormState, InvoiceFormController
from controllers.notices import NoticeLevel
from models.ledger import InvoiceStatus


TODAY = date(2026, 10, 17)


def make_form(store, notices, **kwargs):
    return InvoiceFormController(store, notices, today=lambda: TODAY, **kwargs)


class TestInitialLoad:
    """LOADING -> NEW | EDITING_EXISTING | NOT_FOUND | LOAD_FAILED"""

    def test_new_invoice_gets_number_date_and_draft_status(self, acme_store, notices):
        form = make_form(acme_store, notices)

        assert asyncio.run(form.initialize()) == FormState.NEW
        assert form.invoice.invoice_no.startswith("INV-")
        assert form.invoice.invoice_date == TODAY
        assert form.invoice.status == InvoiceStatus.DRAFT
        assert form.invoice.id is None
        assert form.available_memos == []
        assert not form.can_download
        assert form.title == "Create New Invoice"
        assert notices.notices == []

    def test_loads_customers_and_memos_concurrently(self, acme_store, notices):
        form = make_form(acme_store, notices)
        asyncio.run(form.initialize())

        assert set(acme_store.calls[:2]) == {"list_customers", "list_memos"}
        assert [c.name for c in form.customers] == ["Acme Traders", "Beta Logistics"]
        assert set(form.memo_lookup) == {"M1", "M2", "M3", "M4"}

    def test_existing_invoice_lists_own_memos_first(self, acme_store, notices):
        form = make_form(acme_store, notices)

        assert asyncio.run(form.initialize(1)) == FormState.EDITING_EXISTING
        assert [m.memo_no for m in form.available_memos] == ["M3", "M1", "M2"]
        assert form.is_selected("M3")
        assert form.totals.total_amount == Decimal("400.00")
        assert form.totals.balance == Decimal("300.00")
        assert form.can_download
        assert form.title == "Edit Invoice INV-X"

    def test_missing_invoice_notifies_and_navigates_back(self, acme_store, notices):
        on_close = MagicMock()
        form = make_form(acme_store, notices, on_close=on_close)

        assert asyncio.run(form.initialize(99)) == FormState.NOT_FOUND
        on_close.assert_called_once_with()
        assert [n.message for n in notices.notices] == ["Invoice not found."]
        assert not form.is_editable

    def test_store_failure_surfaces_one_notice(self, acme_store, notices):
        acme_store.fail_next("list_memos")
        form = make_form(acme_store, notices)

        assert asyncio.run(form.initialize()) == FormState.LOAD_FAILED
        assert len(notices.notices) == 1
        assert notices.last.level == NoticeLevel.ERROR
        assert notices.last.message == "Failed to load initial data."
        assert form.load_error
        assert not form.is_loading

        assert asyncio.run(form.initialize()) == FormState.NEW


class TestSelectionAndTotals:
    """Customer change, memo toggles and amount paid."""

    def test_acme_scenario(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            assert await form.change_customer("Acme Traders")

        asyncio.run(scenario())
        assert [m.memo_no for m in form.available_memos] == ["M1", "M2"]

        form.toggle_memo("M1", True)
        form.toggle_memo("M2", True)
        form.set_amount_paid("200")
        assert form.invoice.total_amount == Decimal("800.00")
        assert form.invoice.balance == Decimal("600.00")

        form.toggle_memo("M2", False)
        assert form.invoice.memo_nos == ["M1"]
        assert form.invoice.total_amount == Decimal("500.00")
        assert form.invoice.balance == Decimal("300.00")

    def test_toggle_is_idempotent(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")

        asyncio.run(scenario())
        form.toggle_memo("M1", True)
        form.toggle_memo("M1", True)

        assert form.invoice.memo_nos == ["M1"]
        assert form.totals.total_amount == Decimal("500.00")

    def test_memo_outside_selection_list_is_rejected(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")

        asyncio.run(scenario())
        form.toggle_memo("M3", True)
        form.toggle_memo("M4", True)

        assert form.invoice.memo_nos == []
        assert len(notices.of_level(NoticeLevel.WARNING)) == 2

    def test_customer_locked_while_memos_selected(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)
            locked = await form.change_customer("Beta Logistics")
            form.toggle_memo("M1", False)
            unlocked = await form.change_customer("Beta Logistics")
            return locked, unlocked

        locked, unlocked = asyncio.run(scenario())

        assert not locked
        assert unlocked
        assert form.invoice.customer_name == "Beta Logistics"
        assert [m.memo_no for m in form.available_memos] == ["M4"]
        assert len(notices.of_level(NoticeLevel.WARNING)) == 1

    def test_clearing_customer_empties_selection_list(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            await form.change_customer("")

        asyncio.run(scenario())
        assert form.available_memos == []

    def test_amount_paid_rejects_negative_and_garbage(self, acme_store, notices):
        form = make_form(acme_store, notices)
        asyncio.run(form.initialize())

        form.set_amount_paid("150")
        form.set_amount_paid("-5")
        form.set_amount_paid("abc")
        form.set_amount_paid("NaN")
        form.set_amount_paid("Infinity")
        form.set_amount_paid(Decimal("-Infinity"))

        assert form.invoice.amount_paid == Decimal("150.00")
        errors = notices.of_level(NoticeLevel.ERROR)
        assert [n.message for n in errors] == ["Amount paid must be a non-negative number."] * 5
        assert form.totals.balance.is_finite()

        form.set_amount_paid("")
        assert form.invoice.amount_paid == Decimal("0.00")

    def test_overpayment_is_allowed(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")

        asyncio.run(scenario())
        form.toggle_memo("M2", True)
        form.set_amount_paid("350")

        assert form.invoice.balance == Decimal("-50.00")

    def test_date_and_status_are_free(self, acme_store, notices):
        form = make_form(acme_store, notices)
        asyncio.run(form.initialize())

        assert form.set_invoice_date("01/11/2026")
        assert form.invoice.invoice_date == date(2026, 11, 1)
        assert form.set_status("Paid")
        assert form.set_status(InvoiceStatus.DRAFT)
        assert not form.set_status("Archived")
        assert form.invoice.status == InvoiceStatus.DRAFT


class TestSave:
    """SAVING -> SAVED | SAVE_FAILED"""

    def test_save_new_invoice(self, acme_store, notices):
        on_saved = MagicMock()
        form = make_form(acme_store, notices, on_saved=on_saved)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)
            form.toggle_memo("M2", True)
            form.set_amount_paid("200")
            return await form.save()

        assert asyncio.run(scenario())
        assert form.state == FormState.SAVED
        assert form.invoice.id == 2
        assert form.can_download
        on_saved.assert_called_once()
        assert notices.last.message == "Invoice created successfully!"

        stored = asyncio.run(acme_store.get_invoice_by_id(2))
        assert stored.memo_nos == ["M1", "M2"]
        assert stored.total_amount == Decimal("800.00")
        assert stored.balance == Decimal("600.00")

    def test_validation_failure_never_writes(self, acme_store, notices):
        form = make_form(acme_store, notices)
        asyncio.run(form.initialize())

        assert not asyncio.run(form.save())
        assert notices.last.message == "Please select a customer."
        assert form.state == FormState.NEW
        assert "create_invoice" not in acme_store.calls
        assert "list_invoices" not in acme_store.calls

    def test_no_memos_selected(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            return await form.save()

        assert not asyncio.run(scenario())
        assert notices.last.message == "Please select at least one memo."

    def test_store_failure_keeps_draft_for_retry(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def select():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)

        asyncio.run(select())
        acme_store.fail_next("create_invoice")

        assert not asyncio.run(form.save())
        assert form.state == FormState.SAVE_FAILED
        assert form.invoice.memo_nos == ["M1"]
        assert notices.last.message == "Failed to save invoice."
        assert len(notices.of_level(NoticeLevel.ERROR)) == 1

        assert asyncio.run(form.save())
        assert form.state == FormState.SAVED
        assert acme_store.calls.count("create_invoice") == 2

    def test_linkage_conflict_from_another_session(self, acme_store, notices):
        first = make_form(acme_store, notices)
        second = make_form(acme_store, notices)

        async def scenario():
            for form in (first, second):
                await form.initialize()
                await form.change_customer("Acme Traders")
                form.toggle_memo("M1", True)
            assert await first.save()
            return await second.save()

        assert not asyncio.run(scenario())
        assert second.state == FormState.SAVE_FAILED
        assert "already linked" in notices.last.message
        assert acme_store.calls.count("create_invoice") == 1

    def test_update_existing_invoice(self, acme_store, notices):
        form = make_form(acme_store, notices)

        async def scenario():
            await form.initialize(1)
            form.toggle_memo("M1", True)
            form.set_status(InvoiceStatus.PAID)
            return await form.save()

        assert asyncio.run(scenario())
        stored = asyncio.run(acme_store.get_invoice_by_id(1))
        assert stored.memo_nos == ["M3", "M1"]
        assert stored.total_amount == Decimal("900.00")
        assert stored.balance == Decimal("800.00")
        assert notices.last.message == "Invoice updated successfully!"
        assert any("marked Paid" in note for note in form.advisories)

    def test_second_save_while_saving_is_ignored(self, acme_memos, acme_invoice, notices):
        from ledger_store.memory import InMemoryLedgerStore

        store = InMemoryLedgerStore(memos=acme_memos, invoices=[acme_invoice], latency=0.01)
        form = make_form(store, notices)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)
            task = asyncio.create_task(form.save())
            await asyncio.sleep(0)
            assert form.state == FormState.SAVING
            duplicate = await form.save()
            return duplicate, await task

        duplicate, saved = asyncio.run(scenario())
        assert not duplicate
        assert saved
        assert store.calls.count("create_invoice") == 1


class TestCloseAndCancel:
    """Leaving the form."""

    def test_cancel_discards_draft(self, acme_store, notices):
        on_close = MagicMock()
        form = make_form(acme_store, notices, on_close=on_close)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)

        asyncio.run(scenario())
        form.cancel()

        assert form.state == FormState.CLOSED
        assert form.invoice.memo_nos == []
        on_close.assert_called_once_with()
        assert "create_invoice" not in acme_store.calls
        form.toggle_memo("M1", True)
        assert form.invoice.memo_nos == []

    def test_close_during_save_skips_state_update(self, acme_memos, acme_invoice, notices):
        from ledger_store.memory import InMemoryLedgerStore

        store = InMemoryLedgerStore(memos=acme_memos, invoices=[acme_invoice], latency=0.01)
        on_saved = MagicMock()
        form = make_form(store, notices, on_saved=on_saved)

        async def scenario():
            await form.initialize()
            await form.change_customer("Acme Traders")
            form.toggle_memo("M1", True)
            task = asyncio.create_task(form.save())
            await asyncio.sleep(0)
            form.close()
            return await task

        assert asyncio.run(scenario())
        assert form.state == FormState.CLOSED
        assert form.invoice.id is None
        on_saved.assert_not_called()
        assert len(asyncio.run(store.list_invoices())) == 2

    def test_print_view_uses_current_draft(self, acme_store, notices):
        form = make_form(acme_store, notices)
        asyncio.run(form.initialize(1))

        text = form.print_view().to_text()

        assert "INV-X" in text
        assert "M3" in text
        assert "Acme Traders" in text

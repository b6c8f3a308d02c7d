"""
Print Coordinator Tests

Print-on-load sessions: scheduling, the one-shot after-print signal,
teardown and the manual done() fallback. Delays are kept tiny.
"""

import asyncio
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from ledger_store.memory import InMemoryLedgerStore
from printing.coordinator import PrintCoordinator, PrintState
from printing.platform import EventPrintPlatform, PdfPrintPlatform
from printing.render import format_rupees


def coordinator_for(platform, on_complete, notices=None):
    return PrintCoordinator(
        platform,
        on_complete=on_complete,
        notices=notices,
        print_delay=0.01,
        return_delay=0.01,
    )


class TestPrintProtocol:
    """Schedule, print, return."""

    def test_invoice_prints_and_completes_once(self, acme_store):
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete)

        async def scenario():
            document = await coordinator.print_invoice(acme_store, 1)
            assert coordinator.state == PrintState.SCHEDULED
            assert platform.listener_count == 1
            assert on_complete.call_count == 0
            completed = await coordinator.wait(timeout=1)
            # Late signals and a manual done() change nothing
            platform.dispatch_after_print()
            coordinator.done()
            await asyncio.sleep(0.03)
            return document, completed

        document, completed = asyncio.run(scenario())

        assert completed
        assert document.filename == "INV-X.pdf"
        assert platform.printed == [document]
        assert platform.listener_count == 0
        on_complete.assert_called_once_with()

    def test_memo_print_shows_owning_invoice(self, acme_store):
        platform = EventPrintPlatform()
        coordinator = coordinator_for(platform, MagicMock())

        async def scenario():
            await coordinator.print_memo(acme_store, "M3")
            return await coordinator.wait(timeout=1)

        assert asyncio.run(scenario())
        text = platform.printed[0].to_text()
        assert "TRIP MEMO" in text
        assert "INV-X" in text

    def test_teardown_before_print_cancels_everything(self, acme_store):
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete)

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            coordinator.teardown()
            await asyncio.sleep(0.05)
            return await coordinator.wait(timeout=1)

        assert not asyncio.run(scenario())
        assert coordinator.state == PrintState.TORN_DOWN
        assert platform.printed == []
        assert platform.listener_count == 0
        on_complete.assert_not_called()

    def test_dismissed_dialog_needs_manual_done(self, acme_store):
        platform = EventPrintPlatform(auto_signal=False)
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete)

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            await asyncio.sleep(0.05)
            assert coordinator.state == PrintState.PRINTING
            assert on_complete.call_count == 0
            coordinator.done()
            coordinator.done()

        asyncio.run(scenario())

        assert coordinator.completed
        assert platform.listener_count == 0
        on_complete.assert_called_once_with()

    def test_teardown_while_returning_suppresses_callback(self, acme_store):
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = PrintCoordinator(
            platform, on_complete=on_complete, print_delay=0.0, return_delay=0.05,
        )

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            await asyncio.sleep(0.01)
            assert coordinator.state == PrintState.RETURNING
            coordinator.teardown()
            await asyncio.sleep(0.1)

        asyncio.run(scenario())

        assert coordinator.state == PrintState.TORN_DOWN
        on_complete.assert_not_called()

    def test_repeated_print_invoice_prints_once(self, acme_store):
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete)

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            await coordinator.print_invoice(acme_store, 1)
            assert platform.listener_count == 1
            completed = await coordinator.wait(timeout=1)
            await asyncio.sleep(0.05)
            return completed

        assert asyncio.run(scenario())
        assert len(platform.printed) == 1
        on_complete.assert_called_once_with()


class TestLoadFailures:
    """Nothing to print."""

    def test_missing_invoice(self, acme_store, notices):
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete, notices)

        result = asyncio.run(coordinator.print_invoice(acme_store, 99))

        assert result is None
        assert coordinator.state == PrintState.FAILED
        assert notices.last.message == "Invoice not found."
        assert platform.listener_count == 0
        on_complete.assert_called_once_with()

    def test_store_failure(self, acme_store, notices):
        acme_store.fail_next("get_memo")
        coordinator = coordinator_for(EventPrintPlatform(), MagicMock(), notices)

        assert asyncio.run(coordinator.print_memo(acme_store, "M1")) is None
        assert notices.last.message == "Failed to load memo."

    @pytest.mark.parametrize("invoice_id, fail", [(1, True), (99, False)])
    def test_teardown_during_load_stays_silent(self, acme_memos, acme_invoice, notices, invoice_id, fail):
        store = InMemoryLedgerStore(memos=acme_memos, invoices=[acme_invoice], latency=0.05)
        if fail:
            store.fail_next("get_invoice_by_id")
        platform = EventPrintPlatform()
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete, notices)

        async def scenario():
            task = asyncio.create_task(coordinator.print_invoice(store, invoice_id))
            await asyncio.sleep(0.01)
            coordinator.teardown()
            return await task

        assert asyncio.run(scenario()) is None
        assert coordinator.state == PrintState.TORN_DOWN
        assert notices.notices == []
        on_complete.assert_not_called()

    def test_no_load_after_teardown(self, acme_store, notices):
        coordinator = coordinator_for(EventPrintPlatform(), MagicMock(), notices)
        coordinator.teardown()

        assert asyncio.run(coordinator.print_invoice(acme_store, 1)) is None
        assert coordinator.state == PrintState.TORN_DOWN
        assert "get_invoice_by_id" not in acme_store.calls


class TestPrintFailures:
    """The platform fails to print."""

    @pytest.mark.parametrize("error", [RuntimeError("cannot open document"), ValueError("bad page"), OSError("disk full")])
    def test_print_error_posts_one_notice(self, acme_store, notices, error):
        platform = EventPrintPlatform()
        platform.print_document = MagicMock(side_effect=error)
        on_complete = MagicMock()
        coordinator = coordinator_for(platform, on_complete, notices)

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            finished = await coordinator.wait(timeout=1)
            await asyncio.sleep(0.03)
            return finished

        assert not asyncio.run(scenario())
        assert coordinator.state == PrintState.FAILED
        assert [n.message for n in notices.notices] == ["Failed to print document."]
        assert platform.listener_count == 0
        on_complete.assert_not_called()


class TestPdfPlatform:
    """PDF output."""

    def test_writes_pdf_file(self, acme_store, tmp_path):
        platform = PdfPrintPlatform(tmp_path / "out")
        coordinator = coordinator_for(platform, MagicMock())

        async def scenario():
            await coordinator.print_invoice(acme_store, 1)
            return await coordinator.wait(timeout=5)

        assert asyncio.run(scenario())
        assert platform.last_path == tmp_path / "out" / "INV-X.pdf"
        assert platform.last_path.read_bytes().startswith(b"%PDF")


@pytest.mark.parametrize("amount, expected", [
    (Decimal("0"), "Rs. 0.00"),
    (Decimal("800"), "Rs. 800.00"),
    (Decimal("125000"), "Rs. 1,25,000.00"),
    (Decimal("1250000.5"), "Rs. 12,50,000.50"),
])
def test_format_rupees(amount, expected):
    assert format_rupees(amount) == expected

"""Invoice list controller."""

from decimal import Decimal
from typing import Callable, List, Optional

from controllers.listing import ListController
from controllers.notices import NoticeBoard
from ledger_store.base import LedgerStore
from models.ledger import Invoice, ZERO, money


class InvoiceListController(ListController[Invoice]):
    """
    Invoice list screen.

    Usage:
        invoices = InvoiceListController(store, notices, on_edit=open_form)
        await invoices.fetch()
        invoices.open_delete(invoice_id)
        await invoices.confirm_delete()
    """

    controller_name = "invoice_list"
    noun = "invoice"

    def __init__(
        self,
        store: LedgerStore,
        notices: Optional[NoticeBoard] = None,
        on_edit: Optional[Callable[[int], None]] = None,
        on_download: Optional[Callable[[int], None]] = None,
        on_create: Optional[Callable[[], None]] = None,
    ):
        super().__init__(store, notices)
        self.on_edit = on_edit
        self.on_download = on_download
        self.on_create = on_create

    async def _load_rows(self) -> List[Invoice]:
        invoices = await self.store.list_invoices()
        invoices.sort(key=lambda inv: inv.invoice_no, reverse=True)
        return invoices

    def _row_key(self, row: Invoice) -> Optional[int]:
        return row.id

    def _row_label(self, row: Invoice) -> str:
        return row.invoice_no

    def _matches(self, row: Invoice, term: str) -> bool:
        return term in row.invoice_no.casefold() or term in row.customer_name.casefold()

    async def _delete(self, key) -> None:
        await self.store.delete_invoice(key)

    @property
    def outstanding_balance(self) -> Decimal:
        return money(sum((inv.balance for inv in self.rows), ZERO))

    def request_create(self) -> None:
        if self.on_create:
            self.on_create()

    def request_edit(self, invoice_id: int) -> bool:
        if self.find(invoice_id) is None:
            self.notices.error(f"Invoice {invoice_id} not found.", source=self.controller_name)
            return False
        if self.on_edit:
            self.on_edit(invoice_id)
        return True

    def request_download(self, invoice_id: int) -> bool:
        if self.on_download:
            self.on_download(invoice_id)
        return True

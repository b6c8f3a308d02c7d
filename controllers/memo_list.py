"""Memo list controller.

Rows carry their invoicing state: a memo linked to an invoice can be
downloaded but neither edited nor deleted.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional

from controllers.listing import ListController
from controllers.notices import NoticeBoard
from core.observability.logging import get_logger
from ledger_store.base import LedgerStore
from models.ledger import InvoicingMap, Memo
from reconciliation.engine import build_invoicing_map


logger = get_logger(__name__)

EDIT_LOCKED_REASON = "Cannot edit a memo that is part of an invoice."
DELETE_LOCKED_REASON = "Cannot delete a memo that is part of an invoice."


@dataclass
class MemoRow:
    memo: Memo
    invoice_no: Optional[str] = None
    invoice_id: Optional[int] = None

    @property
    def memo_no(self) -> str:
        return self.memo.memo_no

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_no is not None

    @property
    def invoice_label(self) -> str:
        return self.invoice_no or "Uninvoiced"

    @property
    def can_edit(self) -> bool:
        return not self.is_invoiced

    @property
    def can_delete(self) -> bool:
        return not self.is_invoiced

    @property
    def edit_reason(self) -> Optional[str]:
        return EDIT_LOCKED_REASON if self.is_invoiced else None

    @property
    def delete_reason(self) -> Optional[str]:
        return DELETE_LOCKED_REASON if self.is_invoiced else None


class MemoListController(ListController[MemoRow]):
    """
    Memo list screen.

    Usage:
        memos = MemoListController(store, notices, on_edit=open_memo_form)
        await memos.fetch()
        memos.filtered_rows("acme")
    """

    controller_name = "memo_list"
    noun = "memo"

    def __init__(
        self,
        store: LedgerStore,
        notices: Optional[NoticeBoard] = None,
        on_edit: Optional[Callable[[str], None]] = None,
        on_download: Optional[Callable[[str], None]] = None,
    ):
        super().__init__(store, notices)
        self.on_edit = on_edit
        self.on_download = on_download
        self.invoicing_map = InvoicingMap()

    async def _load_rows(self) -> List[MemoRow]:
        memos, invoices = await asyncio.gather(
            self.store.list_memos(),
            self.store.list_invoices(),
        )
        self.invoicing_map = build_invoicing_map(invoices)
        if self.invoicing_map.conflicts:
            logger.warning(
                "Memos linked to more than one invoice",
                extra_fields={"conflicts": self.invoicing_map.conflicts},
            )

        rows = [
            MemoRow(
                memo=memo,
                invoice_no=self.invoicing_map.invoice_no_for(memo.memo_no),
                invoice_id=self.invoicing_map.invoice_id_for(memo.memo_no),
            )
            for memo in memos
        ]
        rows.sort(key=lambda r: r.memo_no, reverse=True)
        return rows

    def _row_key(self, row: MemoRow) -> str:
        return row.memo_no

    def _matches(self, row: MemoRow, term: str) -> bool:
        return term in row.memo_no.casefold() or term in row.memo.customer_name.casefold()

    def _delete_blocked(self, row: MemoRow) -> Optional[str]:
        return row.delete_reason

    async def _delete(self, key) -> None:
        await self.store.delete_memo(key)

    def request_edit(self, memo_no: str) -> bool:
        row = self.find(memo_no)
        if row is None:
            self.notices.error(f"Memo {memo_no} not found.", source=self.controller_name)
            return False
        if not row.can_edit:
            self.notices.warning(row.edit_reason, source=self.controller_name)
            return False
        if self.on_edit:
            self.on_edit(memo_no)
        return True

    def request_download(self, memo_no: str) -> bool:
        if self.on_download:
            self.on_download(memo_no)
        return True

"""API Services Package."""

from api.services.billing import (
    MemoSelectionError,
    get_invoice_detail,
    get_memo_row,
    list_eligible_memos,
    list_memo_rows,
    preview_totals,
    save_invoice,
)

__all__ = [
    "MemoSelectionError",
    "get_invoice_detail",
    "get_memo_row",
    "list_eligible_memos",
    "list_memo_rows",
    "preview_totals",
    "save_invoice",
]

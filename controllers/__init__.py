"""
Controllers Package

Screen-level state machines for the billing UI:
- InvoiceFormController: create/edit one invoice
- MemoListController / InvoiceListController: lists with guarded edit/delete
- NoticeBoard: user-visible notices (toasts)
"""

from .notices import Notice, NoticeBoard, NoticeLevel
from .invoice_form import FormState, InvoiceFormController
from .listing import DeletePrompt, ListController
from .memo_list import MemoListController, MemoRow
from .invoice_list import InvoiceListController

__all__ = [
    "Notice",
    "NoticeBoard",
    "NoticeLevel",
    "FormState",
    "InvoiceFormController",
    "DeletePrompt",
    "ListController",
    "MemoListController",
    "MemoRow",
    "InvoiceListController",
]

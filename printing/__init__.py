"""
Printing Package

- render: print views (PrintDocument) for invoices and memos, text and PDF
- platform: print targets that announce when printing finished
- coordinator: print-on-load protocol with one-shot completion
"""

from .render import PrintDocument, format_rupees, render_invoice, render_memo
from .platform import EventPrintPlatform, PdfPrintPlatform, PrintPlatform
from .coordinator import PrintCoordinator, PrintState

__all__ = [
    "PrintDocument",
    "format_rupees",
    "render_invoice",
    "render_memo",
    "PrintPlatform",
    "EventPrintPlatform",
    "PdfPrintPlatform",
    "PrintCoordinator",
    "PrintState",
]

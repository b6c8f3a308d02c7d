"""Print platforms.

A platform prints a rendered document and later announces that printing
finished (the "after print" signal). Listeners are plain callables.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Union

from core.observability.logging import get_logger
from printing.render import PrintDocument


logger = get_logger(__name__)

AfterPrintListener = Callable[[], None]


class PrintPlatform(ABC):
    """Abstract base class for print targets."""

    def __init__(self):
        self._listeners: List[AfterPrintListener] = []

    @abstractmethod
    def print_document(self, document: PrintDocument) -> None:
        """Print ``document``. Implementations signal completion via dispatch_after_print()."""
        pass

    def add_after_print_listener(self, listener: AfterPrintListener) -> None:
        self._listeners.append(listener)

    def remove_after_print_listener(self, listener: AfterPrintListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispatch_after_print(self) -> None:
        """Fire the after-print signal to every registered listener."""
        for listener in list(self._listeners):
            listener()


class EventPrintPlatform(PrintPlatform):
    """In-process platform: keeps printed documents in memory.

    With ``auto_signal=False`` the after-print signal only fires when
    dispatch_after_print() is called, which models a dialog the user
    dismissed without printing.
    """

    def __init__(self, auto_signal: bool = True):
        super().__init__()
        self.auto_signal = auto_signal
        self.printed: List[PrintDocument] = []

    def print_document(self, document: PrintDocument) -> None:
        self.printed.append(document)
        logger.info(f"Printed {document.filename}")
        if self.auto_signal:
            self.dispatch_after_print()


class PdfPrintPlatform(PrintPlatform):
    """Writes each printed document as a PDF file, then signals completion."""

    def __init__(self, output_dir: Union[str, Path]):
        super().__init__()
        self.output_dir = Path(output_dir)
        self.last_path: Optional[Path] = None

    def print_document(self, document: PrintDocument) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / document.filename
        path.write_bytes(document.to_pdf_bytes())
        self.last_path = path
        logger.info(f"Wrote {path}")
        self.dispatch_after_print()

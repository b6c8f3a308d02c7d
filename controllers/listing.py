"""Shared fetch/search/delete protocol for the memo and invoice lists."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, List, Optional, TypeVar

from controllers.notices import NoticeBoard
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from ledger_store.errors import LedgerError


logger = get_logger(__name__)

RowT = TypeVar("RowT")


@dataclass
class DeletePrompt:
    """Open delete confirmation for one row."""
    key: Any
    label: str
    in_flight: bool = False


class ListController(ABC, Generic[RowT]):
    """Base for list screens.

    Subclasses implement ``_load_rows``, ``_row_key``, ``_matches`` and
    ``_delete``; ``_row_label`` and ``_delete_blocked`` have defaults.
    """

    controller_name = "list"
    noun = "record"

    def __init__(self, store: LedgerStore, notices: Optional[NoticeBoard] = None):
        self.store = store
        self.notices = notices or NoticeBoard()
        self.rows: List[RowT] = []
        self.is_loading = False
        self.delete_prompt: Optional[DeletePrompt] = None

    # =========================================================================
    # Fetch / search
    # =========================================================================

    async def fetch(self) -> List[RowT]:
        self.is_loading = True
        with with_correlation(controller=self.controller_name):
            try:
                self.rows = await self._load_rows()
            except LedgerError as e:
                self.rows = []
                logger.error(f"Failed to fetch {self.noun}s: {e}")
                self.notices.error(f"Failed to fetch {self.noun}s.", source=self.controller_name)
            finally:
                self.is_loading = False
        return self.rows

    def filtered_rows(self, search: Optional[str] = None) -> List[RowT]:
        term = (search or "").strip().casefold()
        if not term:
            return list(self.rows)
        return [row for row in self.rows if self._matches(row, term)]

    def find(self, key) -> Optional[RowT]:
        for row in self.rows:
            if self._row_key(row) == key:
                return row
        return None

    # =========================================================================
    # Delete protocol
    # =========================================================================

    @property
    def confirm_enabled(self) -> bool:
        return self.delete_prompt is not None and not self.delete_prompt.in_flight

    def open_delete(self, key) -> bool:
        """Open the confirmation prompt; refused for rows that may not be deleted."""
        if self.delete_prompt is not None and self.delete_prompt.in_flight:
            return False
        row = self.find(key)
        if row is None:
            self.notices.error(f"{self.noun.capitalize()} {key} not found.", source=self.controller_name)
            return False
        blocked = self._delete_blocked(row)
        if blocked:
            self.notices.warning(blocked, source=self.controller_name)
            return False
        self.delete_prompt = DeletePrompt(key=key, label=self._row_label(row))
        return True

    def cancel_delete(self) -> None:
        if self.delete_prompt is not None and not self.delete_prompt.in_flight:
            self.delete_prompt = None

    async def confirm_delete(self) -> bool:
        """Delete the prompted row. A second confirm while one is in flight is ignored."""
        prompt = self.delete_prompt
        if prompt is None or prompt.in_flight:
            return False

        prompt.in_flight = True
        with with_correlation(controller=self.controller_name):
            try:
                await self._delete(prompt.key)
            except LedgerError as e:
                logger.error(f"Failed to delete {self.noun} {prompt.label}: {e}")
                self.notices.error(
                    str(e) if e.status_code == 409 else f"Failed to delete {self.noun}.",
                    source=self.controller_name,
                )
                return False
            finally:
                self.delete_prompt = None

        self.notices.success(
            f"{self.noun.capitalize()} {prompt.label} deleted successfully!",
            source=self.controller_name,
        )
        await self.fetch()
        return True

    # =========================================================================
    # Subclass hooks
    # =========================================================================

    @abstractmethod
    async def _load_rows(self) -> List[RowT]:
        """Fetch the rows for this list, newest first."""
        pass

    @abstractmethod
    def _row_key(self, row: RowT):
        """Key used by find(), open_delete() and the request_* callbacks."""
        pass

    def _row_label(self, row: RowT) -> str:
        return str(self._row_key(row))

    @abstractmethod
    def _matches(self, row: RowT, term: str) -> bool:
        """Whether ``row`` matches the casefolded search ``term``."""
        pass

    def _delete_blocked(self, row: RowT) -> Optional[str]:
        return None

    @abstractmethod
    async def _delete(self, key) -> None:
        """Delete the row with ``key`` from the store."""
        pass

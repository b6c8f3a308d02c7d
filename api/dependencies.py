"""FastAPI dependencies."""

from fastapi import Request

from config import Settings
from ledger_store.base import LedgerStore


def get_store(request: Request) -> LedgerStore:
    """Ledger store attached to the application by create_app()."""
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

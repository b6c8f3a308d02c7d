"""API Routes Package."""

from api.routes import health, memos, invoices, customers

__all__ = [
    "health",
    "memos",
    "invoices",
    "customers",
]

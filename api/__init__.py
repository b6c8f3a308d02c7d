"""API Package.

FastAPI server for the Transport Billing Ledger.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]

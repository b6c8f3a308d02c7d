"""
Observability Module for the Transport Billing Ledger

Provides:
- Structured logging with correlation IDs (invoice, memo, controller, request)
"""

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    get_correlation_context,
    with_correlation,
)

__all__ = [
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "get_correlation_context",
    "with_correlation",
]

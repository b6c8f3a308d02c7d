"""
Structured Logging with Correlation IDs

Provides logging utilities that automatically include:
- invoice_id / invoice_no: Links logs to a specific invoice
- memo_no: Links logs to a specific trip memo
- controller: Which form/list controller emitted the log
- request_id: Links logs to one API request

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(invoice_no="INV-2026-0001", controller="invoice_form"):
        logger.info("Saving invoice")  # Automatically includes correlation IDs
"""

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextlib import contextmanager


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass
class CorrelationContext:
    """Context for correlating logs across one edit session or request."""
    invoice_id: Optional[int] = None
    invoice_no: Optional[str] = None
    memo_no: Optional[str] = None
    controller: Optional[str] = None
    request_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        """Create a new context with merged values."""
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


# Context variable for async-safe correlation
_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "correlation_context",
    default=CorrelationContext()
)


def get_correlation_context() -> CorrelationContext:
    """Get the current correlation context."""
    return _correlation_context.get()


def set_correlation_context(ctx: CorrelationContext) -> None:
    """Set the current correlation context."""
    _correlation_context.set(ctx)


@contextmanager
def with_correlation(**kwargs):
    """
    Context manager to set correlation IDs for logging.

    Usage:
        with with_correlation(invoice_id=7, controller="invoice_list"):
            logger.info("Deleting")  # Will include invoice_id and controller
    """
    old_ctx = get_correlation_context()
    new_ctx = old_ctx.merge(**kwargs)
    token = _correlation_context.set(new_ctx)
    try:
        yield new_ctx
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

class StructuredFormatter(logging.Formatter):
    """
    JSON formatter that includes correlation context.

    Output format:
    {
        "timestamp": "2026-01-09T12:00:00.000000Z",
        "level": "INFO",
        "logger": "controllers.invoice_form",
        "message": "Invoice saved",
        "invoice_no": "INV-2026-0001",
        "memo_count": 2
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        ctx = get_correlation_context()
        log_data.update(ctx.to_dict())

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter that includes key correlation IDs.

    Output format:
    2026-01-09 12:00:00 [INFO ] controllers.invoice_form [inv:INV-2026-0001/invoice_form]: Invoice saved
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()

        correlation_parts = []
        if ctx.invoice_no:
            correlation_parts.append(f"inv:{ctx.invoice_no}")
        elif ctx.invoice_id is not None:
            correlation_parts.append(f"inv#{ctx.invoice_id}")
        if ctx.memo_no:
            correlation_parts.append(f"memo:{ctx.memo_no}")
        if ctx.controller:
            correlation_parts.append(ctx.controller)
        if ctx.request_id:
            correlation_parts.append(ctx.request_id[:8])

        correlation = "/".join(correlation_parts) if correlation_parts else "-"

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        extra = getattr(record, "extra_fields", None)
        if extra:
            msg += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger:
    """
    Logger wrapper that automatically includes correlation context.

    Also supports adding extra fields to individual log calls.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, *args, **kwargs):
        """Log with extra fields support."""
        extra_fields = kwargs.pop("extra_fields", {})
        exc_info = kwargs.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "(unknown file)",
            0,
            msg,
            args,
            exc_info,
        )
        record.extra_fields = extra_fields

        self._logger.handle(record)

    def debug(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.INFO):
            self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.WARNING):
            self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        if self._logger.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self.error(msg, *args, **kwargs)

    # Delegate other methods
    def setLevel(self, level):
        self._logger.setLevel(level)

    def isEnabledFor(self, level):
        return self._logger.isEnabledFor(level)


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    force: bool = False,
):
    """
    Configure logging for the application.

    Args:
        level: Logging level
        json_format: If True, use JSON format; otherwise human-readable
        force: Reconfigure even if logging was already configured
    """
    global _configured

    if _configured and not force:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    root = logging.getLogger()
    if force:
        for existing in list(root.handlers):
            if isinstance(existing.formatter, (StructuredFormatter, HumanReadableFormatter)):
                root.removeHandler(existing)
    root.setLevel(level)
    root.addHandler(handler)

    for logger_name in ["api", "controllers", "ledger_store", "printing", "reconciliation"]:
        logging.getLogger(logger_name).setLevel(level)

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """
    Get a correlated logger for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        CorrelatedLogger instance
    """
    if name not in _loggers:
        if not _configured:
            configure_logging()

        base_logger = logging.getLogger(name)
        _loggers[name] = CorrelatedLogger(base_logger)

    return _loggers[name]

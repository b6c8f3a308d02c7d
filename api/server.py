"""FastAPI server for the Transport Billing Ledger.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import (
    health,
    memos,
    invoices,
    customers,
)
from api.services.billing import MemoSelectionError
from config import Settings, build_store, get_settings
from core.observability.logging import configure_logging, get_logger, with_correlation
from ledger_store.base import LedgerStore
from ledger_store.errors import (
    LedgerError,
    MemoAlreadyInvoiced,
    MemoLockedError,
    NotFound,
    StoreFailure,
)
from reconciliation.engine import CustomerLockedError, InvoiceValidationError


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level, json_format=settings.log_json)
    logger.info(f"Transport Billing API starting up (ledger store: {app.state.store.name})")

    yield

    logger.info("Transport Billing API shutting down...")
    await app.state.store.close()


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Map ledger and reconciliation errors to HTTP responses."""

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(InvoiceValidationError)
    async def validation_handler(request: Request, exc: InvoiceValidationError) -> JSONResponse:
        return _error(422, exc.user_message, reasons=[r.value for r in exc.reasons])

    @app.exception_handler(MemoSelectionError)
    async def selection_handler(request: Request, exc: MemoSelectionError) -> JSONResponse:
        return _error(exc.status_code, str(exc), memo_nos=exc.memo_nos)

    @app.exception_handler(CustomerLockedError)
    async def customer_locked_handler(request: Request, exc: CustomerLockedError) -> JSONResponse:
        return _error(409, str(exc))

    @app.exception_handler(MemoAlreadyInvoiced)
    async def memo_invoiced_handler(request: Request, exc: MemoAlreadyInvoiced) -> JSONResponse:
        return _error(409, str(exc), memo_nos=exc.memo_nos, invoice_no=exc.owner_invoice_no)

    @app.exception_handler(MemoLockedError)
    async def memo_locked_handler(request: Request, exc: MemoLockedError) -> JSONResponse:
        return _error(409, str(exc), memo_no=exc.memo_no, invoice_no=exc.invoice_no)

    @app.exception_handler(StoreFailure)
    async def store_failure_handler(request: Request, exc: StoreFailure) -> JSONResponse:
        logger.error(f"Ledger store failure on {request.method} {request.url.path}: {exc}")
        return _error(503, "Ledger store unavailable, please retry.")

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        logger.error(f"Ledger error on {request.method} {request.url.path}: {exc}")
        return _error(exc.status_code or 500, str(exc))


def create_app(store: Optional[LedgerStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Transport Billing API",
        description="Trip memos, customer invoices and memo-invoice reconciliation",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.store = store or build_store(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlate_request(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        with with_correlation(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(memos.router, prefix="/memos", tags=["Memos"])
    app.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
    app.include_router(customers.router, prefix="/customers", tags=["Customers"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)

"""Invoice endpoints.

Totals are never accepted from the client: every write recomputes
total_amount and balance from the linked memos.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_app_settings, get_store
from api.services.billing import (
    get_invoice_detail,
    list_eligible_memos,
    preview_totals,
    save_invoice,
)
from config import Settings
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from models.api_responses import (
    EligibleMemosResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceWriteRequest,
    NextInvoiceNumberResponse,
    TotalsPreviewRequest,
    TotalsPreviewResponse,
)
from models.ledger import ZERO, money
from printing.render import render_invoice


logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    search: Optional[str] = Query(None, description="Match on invoice number or customer"),
    store: LedgerStore = Depends(get_store),
) -> InvoiceListResponse:
    """List invoices, newest number first."""
    items = await store.list_invoices()
    term = (search or "").strip().casefold()
    if term:
        items = [
            inv for inv in items
            if term in inv.invoice_no.casefold() or term in inv.customer_name.casefold()
        ]
    items.sort(key=lambda inv: inv.invoice_no, reverse=True)

    return InvoiceListResponse(
        items=items,
        total=len(items),
        outstanding_balance=money(sum((inv.balance for inv in items), ZERO)),
    )


@router.get("/next-number", response_model=NextInvoiceNumberResponse)
async def next_invoice_number(store: LedgerStore = Depends(get_store)) -> NextInvoiceNumberResponse:
    """Hand out a new invoice number for a draft (never reused)."""
    return NextInvoiceNumberResponse(
        invoice_no=await store.generate_invoice_number(),
        invoice_date=date.today(),
    )


@router.get("/eligible-memos", response_model=EligibleMemosResponse, response_model_by_alias=False)
async def eligible_memos(
    customer_name: str = Query("", description="Customer whose memos to offer"),
    invoice_id: Optional[int] = Query(None, description="Invoice being edited"),
    store: LedgerStore = Depends(get_store),
) -> EligibleMemosResponse:
    """Memos selectable on a new invoice or on the invoice being edited."""
    return await list_eligible_memos(store, customer_name, invoice_id)


@router.post("/preview-totals", response_model=TotalsPreviewResponse)
async def preview_invoice_totals(
    request: TotalsPreviewRequest,
    store: LedgerStore = Depends(get_store),
) -> TotalsPreviewResponse:
    """Totals for a memo selection without saving anything."""
    return await preview_totals(store, request)


@router.post("", response_model=InvoiceResponse, response_model_by_alias=False, status_code=201)
async def create_invoice(
    request: InvoiceWriteRequest,
    store: LedgerStore = Depends(get_store),
) -> InvoiceResponse:
    """Create an invoice."""
    return await save_invoice(store, request)


@router.get("/{invoice_id}", response_model=InvoiceResponse, response_model_by_alias=False)
async def get_invoice(invoice_id: int, store: LedgerStore = Depends(get_store)) -> InvoiceResponse:
    """Get an invoice with its memos and recomputed totals."""
    return await get_invoice_detail(store, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceResponse, response_model_by_alias=False)
async def update_invoice(
    invoice_id: int,
    request: InvoiceWriteRequest,
    store: LedgerStore = Depends(get_store),
) -> InvoiceResponse:
    """Update an invoice. The invoice number never changes."""
    return await save_invoice(store, request, invoice_id)


@router.delete("/{invoice_id}", status_code=204)
async def delete_invoice(invoice_id: int, store: LedgerStore = Depends(get_store)) -> Response:
    """Delete an invoice, releasing its memos."""
    with with_correlation(invoice_id=invoice_id):
        await store.delete_invoice(invoice_id)
        logger.info(f"Deleted invoice #{invoice_id}")
    return Response(status_code=204)


@router.get("/{invoice_id}/document.pdf")
async def download_invoice(
    invoice_id: int,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Printable invoice as PDF."""
    detail = await get_invoice_detail(store, invoice_id)
    memo_lookup = {m.memo_no: m for m in detail.memos}
    document = render_invoice(detail.invoice, memo_lookup, settings.letterhead)
    return Response(
        content=document.to_pdf_bytes(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )

"""Memo endpoints.

Memos linked to an invoice are read-only: they can be listed and downloaded
but not deleted.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from api.dependencies import get_app_settings, get_store
from api.services.billing import get_memo_row, list_memo_rows
from config import Settings
from core.observability.logging import get_logger, with_correlation
from ledger_store.base import LedgerStore
from models.api_responses import MemoListResponse, MemoRowResponse
from printing.render import render_memo


logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=MemoListResponse, response_model_by_alias=False)
async def list_memos(
    search: Optional[str] = Query(None, description="Match on memo number or customer"),
    store: LedgerStore = Depends(get_store),
) -> MemoListResponse:
    """List memos with their invoicing status, newest first."""
    return await list_memo_rows(store, search)


@router.get("/{memo_no}", response_model=MemoRowResponse, response_model_by_alias=False)
async def get_memo(memo_no: str, store: LedgerStore = Depends(get_store)) -> MemoRowResponse:
    """Get one memo with its invoicing status."""
    return await get_memo_row(store, memo_no)


@router.delete("/{memo_no}", status_code=204)
async def delete_memo(memo_no: str, store: LedgerStore = Depends(get_store)) -> Response:
    """Delete an uninvoiced memo (409 when an invoice links it)."""
    with with_correlation(memo_no=memo_no):
        await store.delete_memo(memo_no)
        logger.info(f"Deleted memo {memo_no}")
    return Response(status_code=204)


@router.get("/{memo_no}/document.pdf")
async def download_memo(
    memo_no: str,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Printable memo as PDF."""
    row = await get_memo_row(store, memo_no)
    document = render_memo(row.memo, row.invoice_no, settings.letterhead)
    return Response(
        content=document.to_pdf_bytes(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )

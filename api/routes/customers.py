"""Customer endpoints (read-only reference data)."""

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from ledger_store.base import LedgerStore
from models.api_responses import CustomerListResponse


router = APIRouter()


@router.get("", response_model=CustomerListResponse, response_model_by_alias=False)
async def list_customers(store: LedgerStore = Depends(get_store)) -> CustomerListResponse:
    """List customers by name."""
    customers = sorted(await store.list_customers(), key=lambda c: c.name.casefold())
    return CustomerListResponse(items=customers, total=len(customers))

"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.dependencies import get_store
from ledger_store.base import LedgerStore


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(store: LedgerStore = Depends(get_store)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version="1.0.0",
        services={
            "api": "up",
            "ledger_store": store.name,
        }
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness probe."""
    return {"status": "ready"}

"""HTTP ledger store.

Client for a remote ledger web app (a spreadsheet-backed script endpoint):
reads are ``GET ?action=<name>&...``, writes are ``POST {"action": ..., "payload": ...}``,
and every response is an envelope::

    {"status": "success", "data": ...}
    {"status": "error", "code": "not_found" | "memo_invoiced" | ..., "message": "..."}

Reads are retried with exponential backoff; writes are sent once, since the
remote service gives no idempotency guarantee.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from core.observability.logging import get_logger
from ledger_store.base import LedgerStore
from ledger_store.errors import (
    MemoAlreadyInvoiced,
    MemoLockedError,
    NotFound,
    StoreFailure,
)
from models.ledger import Customer, Invoice, Memo


logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class RetryConfig:
    """Configuration for read retry behavior."""
    max_retries: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 8.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class HttpStoreConfig:
    """Configuration for the remote ledger endpoint."""
    base_url: str
    timeout_seconds: int = 30
    api_key: Optional[str] = None
    retry_config: RetryConfig = field(default_factory=RetryConfig)


class HttpLedgerStore(LedgerStore):
    """Ledger store talking to the remote ledger web app.

    Usage:
        store = HttpLedgerStore(HttpStoreConfig(base_url="https://script.example.com/exec"))
        memos = await store.list_memos()
        await store.close()
    """

    name = "http"

    def __init__(self, config: HttpStoreConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def _send(
        self,
        method: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, str]:
        """Send one request; returns (status, body text)."""
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        async with session.request(
            method,
            self.config.base_url,
            headers=self._get_headers(),
            params=params,
            json=data,
            timeout=timeout,
        ) as response:
            return response.status, await response.text()

    @staticmethod
    def _unwrap(action: str, status: int, text: str) -> Any:
        """Decode the response envelope, mapping error codes to ledger errors."""
        try:
            body = json.loads(text) if text else {}
        except json.JSONDecodeError:
            raise StoreFailure(f"{action}: invalid JSON from ledger service", status, text)
        if not isinstance(body, dict):
            raise StoreFailure(f"{action}: response is not a JSON object", status, text)

        if status == 404 or body.get("code") == "not_found":
            raise NotFound(body.get("kind", "Record"), body.get("key", action))

        if status >= 400 or body.get("status") == "error":
            code = body.get("code")
            message = body.get("message") or f"{action} failed with HTTP {status}"
            if code == "memo_invoiced":
                raise MemoAlreadyInvoiced(body.get("memo_nos", []), body.get("invoice_no"))
            if code == "memo_locked":
                raise MemoLockedError(body.get("memo_no", ""), body.get("invoice_no"), "delete")
            raise StoreFailure(message, status, text)

        return body.get("data")

    @staticmethod
    def _decode(action: str, model: Type[ModelT], row: Any) -> ModelT:
        """Validate one record; malformed rows are store failures."""
        try:
            return model.model_validate(row)
        except ValidationError as e:
            logger.error(f"{action}: malformed {model.__name__} record: {e}")
            raise StoreFailure(f"{action}: malformed record", 200, json.dumps(row, default=str))

    @classmethod
    def _decode_rows(cls, action: str, model: Type[ModelT], rows: Any) -> List[ModelT]:
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise StoreFailure(f"{action}: expected a list of records", 200, json.dumps(rows, default=str))
        return [cls._decode(action, model, r) for r in rows]

    async def _read(self, action: str, **params) -> Any:
        """GET with automatic retries on transient failures."""
        retry_config = self.config.retry_config
        query = {"action": action, **{k: str(v) for k, v in params.items()}}
        last_error: Optional[Exception] = None

        for attempt in range(retry_config.max_retries + 1):
            try:
                status, text = await self._send("GET", params=query)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_error = e
                if attempt < retry_config.max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        f"{action} failed with {type(e).__name__}: {e}, retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise StoreFailure(f"{action} failed after {retry_config.max_retries} retries: {e}")

            if status in retry_config.retry_on_status and attempt < retry_config.max_retries:
                delay = retry_config.get_delay(attempt)
                logger.warning(
                    f"{action} failed with {status}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{retry_config.max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            return self._unwrap(action, status, text)

        raise StoreFailure(f"{action} failed: {last_error}")

    async def _write(self, action: str, payload: Any) -> Any:
        """POST once; never retried."""
        try:
            status, text = await self._send("POST", data={"action": action, "payload": payload})
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.error(f"{action} failed with {type(e).__name__}: {e}")
            raise StoreFailure(f"{action} failed: {e}")
        return self._unwrap(action, status, text)

    # =========================================================================
    # Memos
    # =========================================================================

    async def list_memos(self) -> List[Memo]:
        return self._decode_rows("getMemos", Memo, await self._read("getMemos"))

    async def get_memo(self, memo_no: str) -> Optional[Memo]:
        try:
            row = await self._read("getMemo", memo_no=memo_no)
        except NotFound:
            return None
        return self._decode("getMemo", Memo, row) if row else None

    async def delete_memo(self, memo_no: str) -> None:
        await self._write("deleteMemo", {"memo_no": memo_no})

    async def list_uninvoiced_memos_for_customer(self, customer_name: str) -> List[Memo]:
        rows = await self._read("getUninvoicedMemosForCustomer", customer_name=customer_name)
        return self._decode_rows("getUninvoicedMemosForCustomer", Memo, rows)

    # =========================================================================
    # Invoices
    # =========================================================================

    async def list_invoices(self) -> List[Invoice]:
        return self._decode_rows("getInvoices", Invoice, await self._read("getInvoices"))

    async def get_invoice_by_id(self, invoice_id: int) -> Optional[Invoice]:
        try:
            row = await self._read("getInvoiceById", id=invoice_id)
        except NotFound:
            return None
        return self._decode("getInvoiceById", Invoice, row) if row else None

    async def create_invoice(self, draft: Invoice) -> Invoice:
        payload = draft.model_dump(mode="json", exclude={"id"})
        row = await self._write("addInvoice", payload)
        if not row:
            raise StoreFailure("addInvoice returned no invoice")
        return self._decode("addInvoice", Invoice, row)

    async def update_invoice(self, invoice: Invoice) -> Invoice:
        row = await self._write("updateInvoice", invoice.model_dump(mode="json"))
        return self._decode("updateInvoice", Invoice, row) if row else invoice

    async def delete_invoice(self, invoice_id: int) -> None:
        await self._write("deleteInvoice", {"id": invoice_id})

    async def generate_invoice_number(self) -> str:
        # Hands out a number on the server; treated as a write so it is never retried
        number = await self._write("generateNewInvoiceNumber", {})
        if not number:
            raise StoreFailure("generateNewInvoiceNumber returned no number")
        return str(number)

    # =========================================================================
    # Customers
    # =========================================================================

    async def list_customers(self) -> List[Customer]:
        return self._decode_rows("getCustomers", Customer, await self._read("getCustomers"))

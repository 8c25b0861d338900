"""HTTP client for the BidSync backend.

Covers the demolition item store of a bid and the total-proposed-amount
endpoints. Reads are retried on transport errors; writes are sent once.

Every failure leaves this module as a ``BackendError``:
- HTTP error status -> BACKEND_HTTP_ERROR (ITEM_NOT_FOUND for 404), with the
  backend's ``message``/``error`` text when it sent one
- transport failure or timeout -> BACKEND_UNAVAILABLE
"""

import time
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from config.errors import BackendError, ErrorCode
from config.settings import settings
from models.aggregate import AggregateSource, TotalProposedAmountResponse

logger = structlog.get_logger()

BULK_TARGET_LOCATION = "aiExtractedData.demolitionItems"
BULK_OPERATION = "update_ai_extracted_demolition_items"


class BidBackendClient:
    """Async client for the bid item store and total endpoints.

    A new ``httpx.AsyncClient`` is opened per call, so an instance holds no
    connection state and can be shared freely.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize BidBackendClient.

        Args:
            base_url: API root, defaults to settings.api_base_url.
            token: Bearer token, defaults to settings.api_token.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests pass httpx.MockTransport).
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            return await client.request(method, path, **kwargs)

    @retry(
        stop=stop_after_attempt(settings.fetch_max_attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send_with_retry(self, method: str, path: str, **kwargs) -> httpx.Response:
        return await self._send(method, path, **kwargs)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        send = self._send_with_retry if method == "GET" else self._send
        try:
            response = await send(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("backend_unavailable", method=method, path=path, error=str(e))
            raise BackendError(
                code=ErrorCode.BACKEND_UNAVAILABLE,
                message=f"Backend unavailable: {str(e)}",
                details={"method": method, "path": path},
            ) from e
        return self._handle_response(response, method, path)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        message = f"HTTP error! status: {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return response.text or message
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or message
        return message

    def _handle_response(self, response: httpx.Response, method: str, path: str) -> Any:
        if response.is_error:
            message = self._error_message(response)
            logger.warning(
                "backend_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            code = ErrorCode.ITEM_NOT_FOUND if response.status_code == 404 else ErrorCode.BACKEND_HTTP_ERROR
            raise BackendError(
                code=code,
                message=message,
                status_code=response.status_code,
                details={"method": method, "path": path},
            )
        try:
            return response.json()
        except ValueError:
            return {"success": True, "message": response.text}

    # -------------------------------------------------------------------------
    # Demolition items
    # -------------------------------------------------------------------------

    async def fetch_demolition_items(self, bid_id: str) -> Any:
        """Fetch the raw demolition-items payload of a bid (cache-busted)."""
        return await self._request(
            "GET",
            f"/bids/{bid_id}/demolition-items",
            params={"_t": int(time.time() * 1000)},
        )

    async def create_demolition_item(self, bid_id: str, record: Dict[str, Any]) -> Any:
        """Create one item; the response echoes the backend-assigned id."""
        return await self._request("POST", f"/bids/{bid_id}/demolition-items", json=record)

    async def update_demolition_item(self, bid_id: str, item_id: str, payload: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/bids/{bid_id}/demolition-items/{item_id}", json=payload)

    async def delete_item(self, bid_id: str, item_id: str) -> Any:
        return await self._request("DELETE", f"/bids/{bid_id}/items/{item_id}")

    async def replace_demolition_items(
        self,
        bid_id: str,
        records: List[Dict[str, Any]],
        summary: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Replace the whole stored item list of a bid.

        Args:
            bid_id: Bid identifier.
            records: Storage-shaped records, in display order.
            summary: Optional summary stored next to the items.
        """
        payload = {
            "demolitionItems": records,
            "targetLocation": BULK_TARGET_LOCATION,
            "operation": BULK_OPERATION,
            "summary": summary or {"totalItems": len(records)},
        }
        return await self._request("PUT", f"/bids/{bid_id}/items", json=payload)

    @staticmethod
    def extract_created_id(body: Any) -> Optional[str]:
        """Find the id of a created item in a create response.

        Looked up under ``item``, ``data.item``, ``data`` and the root, as
        ``_id`` or ``id``.
        """
        if not isinstance(body, dict):
            return None
        data = body.get("data")
        candidates = [
            body.get("item"),
            data.get("item") if isinstance(data, dict) else None,
            data,
            body,
        ]
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            for key in ("_id", "id"):
                value = candidate.get(key)
                if value is not None and str(value).strip():
                    return str(value)
        return None

    # -------------------------------------------------------------------------
    # Total proposed amount
    # -------------------------------------------------------------------------

    async def get_total(self, bid_id: str) -> TotalProposedAmountResponse:
        """Fetch the stored total; a missing total is ``success=False``, not an error."""
        try:
            body = await self._request("GET", f"/total-proposed-amount/{bid_id}")
        except BackendError as e:
            if e.status_code == 404:
                return TotalProposedAmountResponse(success=False, message=e.message)
            raise
        return self._parse_total(body)

    async def set_total(
        self,
        bid_id: str,
        amount: float,
        source: AggregateSource = AggregateSource.CALCULATED,
        notes: Optional[str] = None,
    ) -> TotalProposedAmountResponse:
        """Create or overwrite the stored total."""
        body = await self._request(
            "POST",
            f"/total-proposed-amount/{bid_id}",
            json=self._total_body(amount, source, notes),
        )
        return self._parse_total(body)

    async def update_total(
        self,
        bid_id: str,
        amount: float,
        source: AggregateSource = AggregateSource.MANUAL,
        notes: Optional[str] = None,
    ) -> TotalProposedAmountResponse:
        body = await self._request(
            "PUT",
            f"/total-proposed-amount/{bid_id}",
            json=self._total_body(amount, source, notes),
        )
        return self._parse_total(body)

    async def calculate_total(
        self,
        bid_id: str,
        demolition_items: List[Dict[str, Any]],
        manual_items: List[Dict[str, Any]],
        force_recalculate: bool = False,
    ) -> TotalProposedAmountResponse:
        """Ask the backend to compute the total from the given items."""
        body = await self._request(
            "POST",
            f"/total-proposed-amount/{bid_id}/calculate",
            json={
                "demolitionItems": demolition_items,
                "manualItems": manual_items,
                "forceRecalculate": force_recalculate,
            },
        )
        return self._parse_total(body)

    async def clear_total(self, bid_id: str) -> TotalProposedAmountResponse:
        body = await self._request("DELETE", f"/total-proposed-amount/{bid_id}")
        return self._parse_total(body)

    @staticmethod
    def _parse_total(body: Any) -> TotalProposedAmountResponse:
        try:
            return TotalProposedAmountResponse.model_validate(body)
        except PydanticValidationError as e:
            raise BackendError(
                code=ErrorCode.BACKEND_INVALID_RESPONSE,
                message="Unexpected total proposed amount response",
                details={"errors": e.errors(include_url=False)},
            ) from e

    @staticmethod
    def _total_body(amount: float, source: AggregateSource, notes: Optional[str]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "totalProposedAmount": round(amount, 2),
            "source": AggregateSource(source).value,
        }
        if notes:
            body["notes"] = notes
        return body

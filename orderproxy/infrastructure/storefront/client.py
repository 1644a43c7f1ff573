"""
Storefront-side client for the proxy's own HTTP API.

This is what the cart store talks to: it fetches locations and discounts,
reads the store status and submits checkouts and payments. Transient
failures on reads are retried by :class:`RetryHandler`. Checkout and
payment posts are sent exactly once.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ...application.discounts import (
    automatic_discounts,
    discounts_from_catalog,
    validate_discount,
)
from ...application.locations import locations_from_square
from ...config import Settings
from ...constants import STORE_OFFLINE_MESSAGE
from ...domain.exceptions import StoreOfflineError, UpstreamError
from ...domain.models import (
    AppliedDiscount,
    CartItem,
    CheckoutRequest,
    CheckoutSession,
    Discount,
    DiscountValidationResult,
    StoreLocation,
)
from ...logging import LogEvent, LogRecord, warning
from ..square.http_client_factory import HttpClientFactory
from .retry import RetryHandler, TransientUpstreamError


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0].get("detail") or response.reason_phrase
        if isinstance(payload.get("error"), str):
            return payload["error"]
    return response.reason_phrase


class StorefrontClient:
    """Async client for ``/api`` routes served by the proxy.

    Implements the catalog interface the cart store depends on
    (``fetch_locations``, ``get_automatic_discounts``, ``validate_discount``).
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_handler: Optional[RetryHandler] = None,
    ) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or HttpClientFactory.create_client(
            settings,
            base_url=settings.storefront_base_url,
            headers={"Content-Type": "application/json"},
        )
        self._retry = retry_handler or RetryHandler(
            max_attempts=settings.storefront_max_attempts,
            base_delay=settings.storefront_retry_base_delay,
            jitter=settings.storefront_retry_jitter,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await HttpClientFactory.close_client(self._client)

    async def _call_once(
        self, method: str, path: str, json: Optional[Any] = None
    ) -> Dict[str, Any]:
        response = await self._client.request(method, path, json=json)
        if response.is_success:
            return response.json() if response.content else {}

        detail = _error_detail(response)
        if response.status_code == 503:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if isinstance(payload, dict) and payload.get("storeOffline"):
                raise StoreOfflineError(payload.get("error") or STORE_OFFLINE_MESSAGE)
        if response.status_code >= 500:
            raise TransientUpstreamError(
                f"Server error ({response.status_code}): {detail}",
                status_code=response.status_code,
            )
        raise UpstreamError(
            f"Square API error: {detail}", status_code=response.status_code
        )

    async def _call(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        retry: bool = True,
    ) -> Dict[str, Any]:
        """Call the proxy; writes that charge or create pass ``retry=False``."""
        attempts = self._retry.max_attempts if retry else 1
        try:
            if not retry:
                return await self._call_once(method, path, json)
            return await self._retry.execute_with_retry(
                self._call_once, method, path, json
            )
        except (UpstreamError, httpx.HTTPError) as e:
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=f"Storefront call failed: {method} {path}",
                    data={"attempts": attempts},
                ),
                exc=e,
            )
            raise

    async def get_locations(self) -> List[StoreLocation]:
        data = await self._call("GET", "/square/locations")
        return locations_from_square(data.get("locations") or [])

    async def fetch_locations(self) -> List[StoreLocation]:
        return await self.get_locations()

    async def get_discounts(self) -> List[Discount]:
        data = await self._call("POST", "/square/discounts")
        return discounts_from_catalog(data.get("objects") or [])

    async def get_store_status(self) -> bool:
        data = await self._call("GET", "/store-status")
        return bool(data.get("isOnline"))

    async def validate_discount(
        self,
        code: str,
        items: Sequence[CartItem],
        subtotal: float,
        now: Optional[datetime] = None,
    ) -> DiscountValidationResult:
        discounts = await self.get_discounts()
        return validate_discount(code, discounts, items, subtotal, now)

    async def get_automatic_discounts(
        self,
        items: Sequence[CartItem],
        subtotal: float,
        now: Optional[datetime] = None,
    ) -> List[AppliedDiscount]:
        discounts = await self.get_discounts()
        return automatic_discounts(discounts, items, subtotal, now)

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        data = await self._call(
            "POST", "/square/create-checkout", json=request.to_wire(), retry=False
        )
        return CheckoutSession.model_validate(data)

    async def process_payment(
        self, token: str, amount: float, order_id: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"token": token, "amount": amount}
        if order_id:
            body["orderId"] = order_id
        return await self._call("POST", "/square/payment", json=body, retry=False)

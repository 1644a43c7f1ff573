"""
Commerce API client with a cache-aside read path.

Reads are keyed by endpoint plus serialized body and served from the shared
:class:`ResponseCache` while fresh for their TTL class. Writes (orders,
payments, payment links) always go upstream. Failures are raised once as
:class:`UpstreamError`; nothing here retries.
"""

import time
from typing import Any, Dict, Mapping, Optional

import httpx
import orjson

from ...application.cache import ResponseCache, build_cache_key, classify, ttl_for
from ...config import Settings
from ...constants import EMPTY_RESULT_ERROR_MARKERS, UNCACHED_ENDPOINT_PREFIXES
from ...domain.exceptions import UpstreamError, UpstreamTimeoutError
from ...enums import CacheClass
from ...logging import LogEvent, LogRecord, debug, info, warning
from .http_client_factory import HttpClientFactory

JSONObject = Dict[str, Any]


def serialize_body(body: Optional[Any]) -> Optional[str]:
    """Compact JSON the cache key and the upstream request share."""
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return orjson.dumps(body).decode("utf-8")


def is_cacheable(endpoint: str, method: str) -> bool:
    path = endpoint.split("?", 1)[0]
    if any(path.startswith(prefix) for prefix in UNCACHED_ENDPOINT_PREFIXES):
        return False
    return method.upper() == "GET" or path.startswith("/catalog/search")


def is_empty_result_error(exc: UpstreamError) -> bool:
    return any(marker in exc.message for marker in EMPTY_RESULT_ERROR_MARKERS)


def _error_message(response: httpx.Response) -> str:
    detail = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        errors = payload.get("errors") or []
        if errors and isinstance(errors[0], dict):
            detail = errors[0].get("detail")
    return f"Square API error: {detail or response.reason_phrase}"


class SquareClient:
    """Thin async client for the commerce REST API.

    Args:
        settings: Application settings (token, API version, TTLs, timeouts).
        cache: Shared response cache.
        http_client: Optional preconfigured client; one is built from
            *settings* otherwise and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: Settings,
        cache: ResponseCache,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self._ttls: Mapping[CacheClass, int] = settings.cache_ttls()
        self._owns_client = http_client is None
        self._client = http_client or HttpClientFactory.create_client(
            settings,
            base_url=settings.square_base_url,
            headers=HttpClientFactory.get_square_headers(settings),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await HttpClientFactory.close_client(self._client)

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Any] = None,
        use_cache: bool = True,
        request_id: Optional[str] = None,
    ) -> JSONObject:
        """
        Issue an upstream call, serving cacheable reads from the response cache.

        Args:
            endpoint: Path below the API base URL, e.g. ``/catalog/search``
            method: HTTP method
            body: JSON-serializable request body
            use_cache: Set ``False`` to force an upstream call
            request_id: Correlation id for logging

        Returns:
            Parsed JSON response

        Raises:
            UpstreamError: Non-success status or transport failure
            UpstreamTimeoutError: The configured timeout elapsed
        """
        serialized = serialize_body(body)

        if not (use_cache and is_cacheable(endpoint, method)):
            return await self._send(endpoint, method, serialized, request_id)

        cache_class = classify(endpoint, serialized)
        ttl = ttl_for(cache_class, self._ttls)
        key = build_cache_key(endpoint, serialized)

        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message=f"Cache lookup: {endpoint}",
                request_id=request_id,
                data={"cache_class": str(cache_class), "ttl_seconds": ttl},
            )
        )
        return await self.cache.get_or_fetch(
            key, ttl, lambda: self._send(endpoint, method, serialized, request_id)
        )

    async def _send(
        self,
        endpoint: str,
        method: str,
        serialized: Optional[str],
        request_id: Optional[str],
    ) -> JSONObject:
        start = time.monotonic()
        debug(
            LogRecord(
                event=LogEvent.UPSTREAM_REQUEST.value,
                message=f"{method} {endpoint}",
                request_id=request_id,
            )
        )
        try:
            response = await self._client.request(
                method, endpoint, content=serialized.encode("utf-8") if serialized else None
            )
        except httpx.TimeoutException as e:
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=f"Upstream timeout: {endpoint}",
                    request_id=request_id,
                ),
                exc=e,
            )
            raise UpstreamTimeoutError(
                f"Square API error: request to {endpoint} timed out",
                request_id=request_id,
            ) from e
        except httpx.HTTPError as e:
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=f"Upstream transport error: {endpoint}",
                    request_id=request_id,
                ),
                exc=e,
            )
            raise UpstreamError(
                f"Square API error: {e}", request_id=request_id
            ) from e

        duration_ms = (time.monotonic() - start) * 1000
        if not response.is_success:
            message = _error_message(response)
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=message,
                    request_id=request_id,
                    data={
                        "endpoint": endpoint,
                        "status_code": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                    },
                )
            )
            raise UpstreamError(
                message, status_code=response.status_code, request_id=request_id
            )

        info(
            LogRecord(
                event=LogEvent.UPSTREAM_RESPONSE.value,
                message=f"{method} {endpoint} -> {response.status_code}",
                request_id=request_id,
                data={"duration_ms": round(duration_ms, 2)},
            )
        )
        if not response.content:
            return {}
        return response.json()

    async def search_catalog(
        self, object_types: list, request_id: Optional[str] = None, **extra: Any
    ) -> JSONObject:
        body: JSONObject = {"object_types": list(object_types), **extra}
        return await self.request(
            "/catalog/search", method="POST", body=body, request_id=request_id
        )

    async def search_catalog_or_empty(
        self, object_types: list, request_id: Optional[str] = None, **extra: Any
    ) -> JSONObject:
        """Catalog search where "none configured" is an empty result, not an error."""
        try:
            return await self.search_catalog(object_types, request_id=request_id, **extra)
        except UpstreamError as e:
            if is_empty_result_error(e):
                info(
                    LogRecord(
                        event=LogEvent.CATALOG_FILTER.value,
                        message=f"No {', '.join(object_types)} objects configured",
                        request_id=request_id,
                    )
                )
                return {"objects": []}
            raise

    async def list_locations(self, request_id: Optional[str] = None) -> JSONObject:
        return await self.request("/locations", request_id=request_id)

    async def first_location_id(self, request_id: Optional[str] = None) -> Optional[str]:
        data = await self.list_locations(request_id=request_id)
        locations = data.get("locations") or []
        if locations:
            return locations[0].get("id")
        return None

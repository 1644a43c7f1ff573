"""Tests for the commerce API client and its cache-aside read path."""

from typing import AsyncIterator, Iterator

import httpx
import orjson
import pytest
import respx

from orderproxy.application.cache import ResponseCache
from orderproxy.config import Settings
from orderproxy.constants import SQUARE_SANDBOX_BASE_URL
from orderproxy.domain.exceptions import UpstreamError, UpstreamTimeoutError
from orderproxy.infrastructure.square.client import (
    SquareClient,
    is_cacheable,
    serialize_body,
)
from orderproxy.infrastructure.square.http_client_factory import (
    ConnectionLimits,
    HttpClientFactory,
)


@pytest.fixture
def upstream() -> Iterator[respx.MockRouter]:
    with respx.mock(base_url=SQUARE_SANDBOX_BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache()


@pytest.fixture
async def client(settings: Settings, cache: ResponseCache) -> AsyncIterator[SquareClient]:
    square = SquareClient(settings, cache)
    yield square
    await square.aclose()


class TestHelpers:
    def test_serialize_body_is_compact(self) -> None:
        assert serialize_body({"object_types": ["ITEM"]}) == '{"object_types":["ITEM"]}'
        assert serialize_body(None) is None
        assert serialize_body('{"raw":1}') == '{"raw":1}'

    @pytest.mark.parametrize(
        "endpoint, method, expected",
        [
            ("/locations", "GET", True),
            ("/catalog/search", "POST", True),
            ("/catalog/list?types=CATEGORY", "GET", True),
            ("/orders", "POST", False),
            ("/orders/ORDER1", "GET", False),
            ("/payments", "POST", False),
            ("/online-checkout/payment-links", "POST", False),
            ("/catalog/batch-upsert", "POST", False),
        ],
    )
    def test_is_cacheable(self, endpoint: str, method: str, expected: bool) -> None:
        assert is_cacheable(endpoint, method) is expected

    def test_square_headers(self, settings: Settings) -> None:
        headers = HttpClientFactory.get_square_headers(settings)
        assert headers["Authorization"] == "Bearer test-token"
        assert headers["Square-Version"] == settings.square_api_version
        assert headers["Content-Type"] == "application/json"

    def test_production_connection_limits(self, settings: Settings) -> None:
        production = settings.model_copy(update={"environment": "production"})
        limits = ConnectionLimits.from_settings(production)
        assert limits.max_keepalive >= 50
        assert ConnectionLimits.from_settings(settings).max_keepalive == (
            settings.pool_max_keepalive_connections
        )


class TestRequests:
    @pytest.mark.anyio
    async def test_sends_auth_headers(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        route = upstream.get("/locations").respond(json={"locations": []})
        await client.list_locations()
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Square-Version"]

    @pytest.mark.anyio
    async def test_reads_are_cached(
        self, client: SquareClient, upstream: respx.MockRouter, cache: ResponseCache
    ) -> None:
        route = upstream.get("/locations").respond(json={"locations": [{"id": "L1"}]})
        first = await client.list_locations()
        second = await client.list_locations()
        assert first == second == {"locations": [{"id": "L1"}]}
        assert route.call_count == 1
        assert cache.get_stats()["cache_hits"] == 1

    @pytest.mark.anyio
    async def test_catalog_searches_keyed_by_body(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        route = upstream.post("/catalog/search").respond(json={"objects": []})
        await client.search_catalog(["ITEM"])
        await client.search_catalog(["ITEM"])
        await client.search_catalog(["CATEGORY"])
        assert route.call_count == 2
        sent = orjson.loads(route.calls[0].request.content)
        assert sent == {"object_types": ["ITEM"]}

    @pytest.mark.anyio
    async def test_discount_searches_expire_after_fifteen_minutes(
        self, settings: Settings, upstream: respx.MockRouter
    ) -> None:
        now = [1000.0]
        square = SquareClient(settings, ResponseCache(clock=lambda: now[0]))
        route = upstream.post("/catalog/search").respond(json={"objects": []})
        try:
            await square.search_catalog(["DISCOUNT"])
            now[0] += 14 * 60
            await square.search_catalog(["DISCOUNT"])
            assert route.call_count == 1
            now[0] += 6 * 60
            await square.search_catalog(["DISCOUNT"])
            assert route.call_count == 2
        finally:
            await square.aclose()

    @pytest.mark.anyio
    async def test_use_cache_false_always_goes_upstream(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        route = upstream.get("/locations").respond(json={"locations": []})
        await client.request("/locations", use_cache=False)
        await client.request("/locations", use_cache=False)
        assert route.call_count == 2

    @pytest.mark.anyio
    async def test_writes_are_never_cached(
        self, client: SquareClient, upstream: respx.MockRouter, cache: ResponseCache
    ) -> None:
        route = upstream.post("/orders").respond(json={"order": {"id": "O1"}})
        body = {"idempotency_key": "k", "order": {}}
        await client.request("/orders", method="POST", body=body)
        await client.request("/orders", method="POST", body=body)
        assert route.call_count == 2
        assert len(cache) == 0

    @pytest.mark.anyio
    async def test_empty_response_body(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.post("/payments").respond(status_code=200, content=b"")
        assert await client.request("/payments", method="POST", body={}) == {}


class TestErrors:
    @pytest.mark.anyio
    async def test_upstream_detail_is_surfaced(
        self, client: SquareClient, upstream: respx.MockRouter, cache: ResponseCache
    ) -> None:
        upstream.get("/locations").respond(
            status_code=401,
            json={"errors": [{"category": "AUTHENTICATION_ERROR", "detail": "Bad token"}]},
        )
        with pytest.raises(UpstreamError) as excinfo:
            await client.list_locations()
        assert excinfo.value.message == "Square API error: Bad token"
        assert excinfo.value.status_code == 401
        assert len(cache) == 0

    @pytest.mark.anyio
    async def test_status_text_when_no_detail(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/locations").respond(status_code=502, text="gateway")
        with pytest.raises(UpstreamError, match="Square API error: Bad Gateway"):
            await client.list_locations()

    @pytest.mark.anyio
    async def test_failures_are_not_retried(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        route = upstream.get("/locations").respond(status_code=500, json={})
        with pytest.raises(UpstreamError):
            await client.list_locations()
        assert route.call_count == 1

    @pytest.mark.anyio
    async def test_timeout(self, client: SquareClient, upstream: respx.MockRouter) -> None:
        upstream.get("/locations").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(UpstreamTimeoutError):
            await client.list_locations()

    @pytest.mark.anyio
    async def test_transport_error(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/locations").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(UpstreamError) as excinfo:
            await client.list_locations()
        assert not isinstance(excinfo.value, UpstreamTimeoutError)


class TestEmptyResults:
    @pytest.mark.anyio
    @pytest.mark.parametrize("detail", ["Object not found", "No objects of type DISCOUNT"])
    async def test_absence_of_configuration_is_empty(
        self, client: SquareClient, upstream: respx.MockRouter, detail: str
    ) -> None:
        upstream.post("/catalog/search").respond(
            status_code=404, json={"errors": [{"detail": detail}]}
        )
        assert await client.search_catalog_or_empty(["DISCOUNT"]) == {"objects": []}

    @pytest.mark.anyio
    async def test_other_errors_propagate(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.post("/catalog/search").respond(
            status_code=500, json={"errors": [{"detail": "Internal failure"}]}
        )
        with pytest.raises(UpstreamError, match="Internal failure"):
            await client.search_catalog_or_empty(["MEASUREMENT_UNIT"])

    @pytest.mark.anyio
    async def test_first_location_id(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/locations").respond(json={"locations": [{"id": "L9"}, {"id": "L2"}]})
        assert await client.first_location_id() == "L9"

    @pytest.mark.anyio
    async def test_first_location_id_none(
        self, client: SquareClient, upstream: respx.MockRouter
    ) -> None:
        upstream.get("/locations").respond(json={})
        assert await client.first_location_id() is None

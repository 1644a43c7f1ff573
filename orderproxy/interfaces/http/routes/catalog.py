"""Catalog and location read routes under ``/api/square``."""

from typing import Any, Dict, List

import anyio
from fastapi import APIRouter, Depends

from ....application.catalog_filter import (
    attach_availability_periods,
    collect_availability_period_ids,
    filter_visible_categories,
    filter_visible_items,
    hidden_category_ids,
)
from ....domain.exceptions import UpstreamError
from ....infrastructure.square.client import SquareClient
from ....logging import LogEvent, LogRecord, debug, warning
from ..dependencies import get_request_id, get_square_client

router = APIRouter(prefix="/api/square")

_SEARCH_OPTIONS = {"include_deleted_objects": False, "include_related_objects": True}


@router.get("/locations")
async def list_locations(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    return await client.list_locations(request_id=request_id)


@router.post("/products")
async def search_products(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    """Items with archived, private and hidden-category entries removed."""
    results: Dict[str, Dict[str, Any]] = {}

    async def fetch(name: str, object_type: str) -> None:
        results[name] = await client.search_catalog(
            [object_type], request_id=request_id, **_SEARCH_OPTIONS
        )

    async with anyio.create_task_group() as tg:
        tg.start_soon(fetch, "products", "ITEM")
        tg.start_soon(fetch, "categories", "CATEGORY")

    products = dict(results["products"])
    hidden = hidden_category_ids(results["categories"].get("objects") or [])
    if "objects" in products:
        original = products["objects"] or []
        products["objects"] = filter_visible_items(original, hidden)
        debug(
            LogRecord(
                event=LogEvent.CATALOG_FILTER.value,
                message="Filtered catalog items",
                request_id=request_id,
                data={
                    "before": len(original),
                    "after": len(products["objects"]),
                    "hidden_categories": len(hidden),
                },
            )
        )
    return products


def _period_summary(period: Dict[str, Any]) -> Dict[str, Any]:
    data = period.get("availability_period_data") or {}
    return {
        "id": period.get("id"),
        "startTime": data.get("start_local_time"),
        "endTime": data.get("end_local_time"),
        "dayOfWeek": data.get("day_of_week"),
    }


@router.get("/categories")
async def list_categories_with_periods(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    """Every category, hidden ones included, with availability periods resolved."""
    categories = await client.request(
        "/catalog/list?types=CATEGORY", request_id=request_id
    )
    periods = await client.request(
        "/catalog/list?types=AVAILABILITY_PERIOD", request_id=request_id
    )
    period_objects: List[Dict[str, Any]] = [
        p for p in periods.get("objects") or [] if p.get("availability_period_data")
    ]
    return {
        "objects": attach_availability_periods(
            categories.get("objects") or [], period_objects
        ),
        "availabilityPeriods": [_period_summary(p) for p in period_objects],
    }


@router.post("/categories")
async def search_categories(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    """Visible categories plus the availability periods they reference."""
    data = dict(
        await client.request("/catalog/list?types=CATEGORY", request_id=request_id)
    )
    objects = data.get("objects") or []
    period_ids = collect_availability_period_ids(objects)
    if "objects" in data:
        data["objects"] = filter_visible_categories(objects)

    availability_periods: Dict[str, Any] = {}
    for period_id in period_ids:
        try:
            period = await client.request(
                f"/catalog/object/{period_id}", request_id=request_id
            )
        except UpstreamError as e:
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=f"Skipping availability period {period_id}",
                    request_id=request_id,
                ),
                exc=e,
            )
            continue
        obj = period.get("object") or {}
        if obj.get("type") == "AVAILABILITY_PERIOD":
            availability_periods[period_id] = obj

    data["availability_periods"] = availability_periods
    return data


@router.post("/modifiers")
async def search_modifiers(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    return await client.search_catalog(
        ["MODIFIER_LIST"], request_id=request_id, **_SEARCH_OPTIONS
    )


@router.post("/discounts")
async def search_discounts(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    return await client.search_catalog_or_empty(
        ["DISCOUNT"], request_id=request_id, **_SEARCH_OPTIONS
    )


@router.post("/measurement-units")
async def search_measurement_units(
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    return await client.search_catalog_or_empty(
        ["MEASUREMENT_UNIT"], request_id=request_id, **_SEARCH_OPTIONS
    )

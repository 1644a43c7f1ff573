"""Mapping of upstream location objects to pickup locations."""

from typing import Any, Dict, Iterable, List, Optional

from ..constants import BUSINESS_DAY_NAMES, DEFAULT_ESTIMATED_WAIT_MINUTES
from ..domain.models import BusinessHours, Coordinates, StoreLocation


def map_business_hours(business_hours: Optional[Dict[str, Any]]) -> Dict[str, BusinessHours]:
    """Weekly hour table keyed by lowercase day name.

    Returns an empty table when the location publishes no hours. Otherwise
    every day is present and stays closed unless a period covers it.
    """
    if not business_hours or not business_hours.get("periods"):
        return {}

    hours = {day: BusinessHours(closed=True) for day in BUSINESS_DAY_NAMES.values()}
    for period in business_hours["periods"]:
        day = BUSINESS_DAY_NAMES.get(period.get("day_of_week", ""))
        start = period.get("start_local_time")
        end = period.get("end_local_time")
        if day and start and end:
            hours[day] = BusinessHours(open=start[:5], close=end[:5], closed=False)
    return hours


def location_from_square(obj: Dict[str, Any]) -> Optional[StoreLocation]:
    if obj.get("status") != "ACTIVE":
        return None
    address = obj.get("address") or {}
    coordinates = obj.get("coordinates")
    return StoreLocation(
        id=obj["id"],
        name=obj.get("name") or obj.get("business_name") or "Unnamed Location",
        address=address.get("address_line_1", ""),
        city=address.get("locality", ""),
        state=address.get("administrative_district_level_1", ""),
        zip_code=address.get("postal_code", ""),
        phone=obj.get("phone_number", ""),
        email=obj.get("business_email") or obj.get("email", ""),
        hours=map_business_hours(obj.get("business_hours")),
        coordinates=(
            Coordinates(lat=coordinates["latitude"], lng=coordinates["longitude"])
            if coordinates
            else None
        ),
        features=obj.get("capabilities") or [],
        estimated_wait_time=DEFAULT_ESTIMATED_WAIT_MINUTES,
        is_active=True,
    )


def locations_from_square(objects: Iterable[Dict[str, Any]]) -> List[StoreLocation]:
    return [loc for loc in (location_from_square(obj) for obj in objects) if loc]


def revalidate_location(
    selected: Optional[StoreLocation], available: Iterable[StoreLocation]
) -> Optional[StoreLocation]:
    """Return the fresh copy of *selected* if it still exists, else ``None``."""
    if selected is None:
        return None
    for location in available:
        if location.id == selected.id:
            return location
    return None

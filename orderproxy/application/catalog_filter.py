"""Visibility filtering over raw upstream catalog objects.

Everything here is pure: inputs are the JSON objects the commerce API
returns, outputs are new lists in the original order.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

JSONObject = Dict[str, Any]

_DAY_INDEX = {
    "SUNDAY": 6,
    "MONDAY": 0,
    "TUESDAY": 1,
    "WEDNESDAY": 2,
    "THURSDAY": 3,
    "FRIDAY": 4,
    "SATURDAY": 5,
    "SUN": 6,
    "MON": 0,
    "TUE": 1,
    "WED": 2,
    "THU": 3,
    "FRI": 4,
    "SAT": 5,
}


def hidden_category_ids(objects: Iterable[JSONObject]) -> Set[str]:
    """Ids of categories whose online visibility is explicitly ``False``."""
    hidden: Set[str] = set()
    for obj in objects:
        if obj.get("type") != "CATEGORY":
            continue
        data = obj.get("category_data") or {}
        if data.get("online_visibility") is False and obj.get("id"):
            hidden.add(obj["id"])
    return hidden


def _item_category_ids(item_data: JSONObject) -> Set[str]:
    ids: Set[str] = set()
    for cat in item_data.get("categories") or []:
        if isinstance(cat, dict):
            if cat.get("id"):
                ids.add(cat["id"])
        elif cat:
            ids.add(cat)
    legacy = item_data.get("category_id")
    if legacy:
        ids.add(legacy)
    return ids


def is_item_visible(obj: JSONObject, hidden_ids: Set[str]) -> bool:
    """Decide whether one catalog object survives the visibility filter.

    Only ``ITEM`` objects with ``item_data`` can be dropped. An item with no
    category references is judged on its archived/private flags alone.
    """
    if obj.get("type") != "ITEM":
        return True
    item_data = obj.get("item_data")
    if not item_data:
        return True
    if item_data.get("is_archived") is True:
        return False
    if item_data.get("visibility") == "PRIVATE":
        return False
    if hidden_ids and _item_category_ids(item_data) & hidden_ids:
        return False
    return True


def filter_visible_items(
    objects: Iterable[JSONObject], hidden_ids: Optional[Set[str]] = None
) -> List[JSONObject]:
    """Drop archived, private and hidden-category items; keep everything else.

    When *hidden_ids* is not given it is derived from the category objects
    present in *objects*.
    """
    objects = list(objects)
    if hidden_ids is None:
        hidden_ids = hidden_category_ids(objects)
    return [obj for obj in objects if is_item_visible(obj, hidden_ids)]


def filter_visible_categories(objects: Iterable[JSONObject]) -> List[JSONObject]:
    """Drop categories marked hidden from the online store."""
    visible = []
    for obj in objects:
        if obj.get("type") == "CATEGORY":
            data = obj.get("category_data") or {}
            if data.get("online_visibility") is False:
                continue
        visible.append(obj)
    return visible


def collect_availability_period_ids(objects: Iterable[JSONObject]) -> List[str]:
    """Availability period ids referenced by categories, first-seen order."""
    seen: Dict[str, None] = {}
    for obj in objects:
        data = obj.get("category_data") or {}
        for period_id in data.get("availability_period_ids") or []:
            seen.setdefault(period_id, None)
    return list(seen)


def attach_availability_periods(
    categories: Iterable[JSONObject], periods: Iterable[JSONObject]
) -> List[JSONObject]:
    """Return copies of *categories* with an ``availability_periods`` list.

    Each entry resolves one of the category's ``availability_period_ids``
    against *periods*; unknown ids are skipped.
    """
    by_id = {p.get("id"): p for p in periods if p.get("type") == "AVAILABILITY_PERIOD"}
    enhanced = []
    for category in categories:
        if category.get("type") != "CATEGORY":
            enhanced.append(category)
            continue
        data = category.get("category_data") or {}
        resolved = [
            by_id[pid]
            for pid in data.get("availability_period_ids") or []
            if pid in by_id
        ]
        enhanced.append({**category, "availability_periods": resolved})
    return enhanced


def _period_fields(period: JSONObject) -> JSONObject:
    return period.get("availability_period_data") or period


def _time_in_range(current: str, start: str, end: str) -> bool:
    if end < start:
        # Window crosses midnight
        return current >= start or current <= end
    return start <= current <= end


def _day_matches(day_of_week: Optional[str], weekday: int) -> bool:
    if not day_of_week:
        return True
    return _DAY_INDEX.get(day_of_week.upper()) == weekday


def is_category_available(
    periods: List[JSONObject], now: datetime
) -> Dict[str, Any]:
    """Check whether a category with *periods* can be ordered at *now*.

    A category without periods is always available. Otherwise the result
    carries the next opening (within a week) when currently unavailable.
    """
    if not periods:
        return {"is_available": True}

    current = now.strftime("%H:%M:%S")
    for period in periods:
        fields = _period_fields(period)
        if not _day_matches(fields.get("day_of_week"), now.weekday()):
            continue
        start = fields.get("start_local_time") or fields.get("start_time")
        end = fields.get("end_local_time") or fields.get("end_time")
        if start and end and _time_in_range(current, start, end):
            return {"is_available": True, "current_period": period}

    next_time = _next_available_time(periods, now)
    return {
        "is_available": False,
        "next_available_time": next_time,
        "reason": (
            f"Available again at {next_time.strftime('%I:%M %p').lstrip('0')}"
            if next_time
            else "No upcoming availability periods found"
        ),
    }


def _next_available_time(
    periods: List[JSONObject], now: datetime
) -> Optional[datetime]:
    current = now.strftime("%H:%M:%S")
    for day_offset in range(8):
        check = now + timedelta(days=day_offset)
        for period in periods:
            fields = _period_fields(period)
            if not _day_matches(fields.get("day_of_week"), check.weekday()):
                continue
            start = fields.get("start_local_time") or fields.get("start_time")
            if not start:
                continue
            if day_offset == 0 and start <= current:
                continue
            parts = [int(p) for p in start.split(":")] + [0, 0]
            return check.replace(
                hour=parts[0], minute=parts[1], second=parts[2], microsecond=0
            )
    return None

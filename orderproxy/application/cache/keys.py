"""Cache key derivation and TTL classification for upstream requests."""

from typing import Dict, Mapping, Optional

from ...constants import (
    CACHE_NO_BODY_SENTINEL,
    CACHE_TTL_SECONDS,
    CATALOG_SEARCH_ENDPOINT,
    CATALOG_TYPE_MARKERS,
    LOCATIONS_ENDPOINT,
)
from ...enums import CacheClass
from ...logging import LogEvent, LogRecord, debug


def build_cache_key(endpoint: str, body: Optional[str]) -> str:
    """Key an upstream request by endpoint and its exact serialized body."""
    return f"{endpoint}:{body if body else CACHE_NO_BODY_SENTINEL}"


def classify(endpoint: str, body: Optional[str]) -> CacheClass:
    """Pick the TTL class for an upstream request.

    Catalog searches are classified by scanning the serialized body for
    object-type markers in a fixed order; the first marker present wins.
    A body carrying several markers is logged, not re-ordered.
    """
    if LOCATIONS_ENDPOINT in endpoint:
        return CacheClass.LOCATIONS
    if CATALOG_SEARCH_ENDPOINT in endpoint and body:
        matched = [cls for marker, cls in CATALOG_TYPE_MARKERS if marker in body]
        if not matched:
            return CacheClass.DEFAULT
        if len(matched) > 1:
            debug(
                LogRecord(
                    event=LogEvent.CACHE_CLASSIFICATION_AMBIGUOUS.value,
                    message="Catalog search body matches several type markers",
                    data={
                        "endpoint": endpoint,
                        "matched": [str(cls) for cls in matched],
                        "chosen": str(matched[0]),
                    },
                )
            )
        return matched[0]
    return CacheClass.DEFAULT


def ttl_for(
    cache_class: CacheClass, ttls: Optional[Mapping[CacheClass, int]] = None
) -> int:
    table: Mapping[CacheClass, int] = ttls or CACHE_TTL_SECONDS
    return table.get(cache_class, table.get(CacheClass.DEFAULT, 300))


def describe_ttls(ttls: Optional[Mapping[CacheClass, int]] = None) -> Dict[str, int]:
    table = ttls or CACHE_TTL_SECONDS
    return {str(cls): seconds for cls, seconds in table.items()}

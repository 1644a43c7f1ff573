"""Response cache monitoring endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from ....application.cache import ResponseCache
from ..dependencies import get_response_cache

router = APIRouter(prefix="/api/cache")


@router.get("/stats")
async def get_cache_stats(
    cache: ResponseCache = Depends(get_response_cache),
) -> ORJSONResponse:
    """Hit/miss counters, upstream fetches, evictions and current size."""
    return ORJSONResponse(content={"response_cache": cache.get_stats()})


@router.post("/clear")
async def clear_cache(
    cache: ResponseCache = Depends(get_response_cache),
) -> ORJSONResponse:
    removed = cache.clear()
    return ORJSONResponse(content={"status": "cache_cleared", "removed": removed})

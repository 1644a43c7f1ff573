"""Liveness, readiness and configuration introspection."""

import platform
import time
from datetime import datetime, timezone
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Depends, Request
from fastapi.responses import ORJSONResponse

from ....application.cache import ResponseCache
from ....config import Settings
from ....constants import HEALTH_CACHE_PROBE_KEY, HIGH_MEMORY_THRESHOLD_MB
from ....domain.exceptions import CacheError, OrderProxyException
from ....enums import HealthStatus
from ....infrastructure.square.client import SquareClient
from ....logging import LogEvent, LogRecord, warning
from ..dependencies import (
    get_request_id,
    get_response_cache,
    get_settings,
    get_square_client,
)

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime_seconds(request: Request) -> float:
    started = getattr(request.app.state, "started_at", time.monotonic())
    return round(time.monotonic() - started, 3)


def probe_cache(cache: ResponseCache) -> None:
    """Write, read back and delete a marker entry.

    Raises:
        CacheError: The value read back differs from the one written
    """
    cache.set(HEALTH_CACHE_PROBE_KEY, {"test": True})
    try:
        entry = cache.peek(HEALTH_CACHE_PROBE_KEY)
        if entry is None or entry.data != {"test": True}:
            raise CacheError("Cache read-back mismatch")
    finally:
        cache.delete(HEALTH_CACHE_PROBE_KEY)


@router.get("/health")
async def legacy_health_check() -> Dict[str, Any]:
    return {"status": "OK", "timestamp": _now_iso()}


@router.get("/api/health")
async def health_check(
    request: Request, settings: Settings = Depends(get_settings)
) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "uptime": _uptime_seconds(request),
        "environment": settings.environment,
        "version": settings.app_version,
    }


@router.get("/api/health/detailed")
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: SquareClient = Depends(get_square_client),
    cache: ResponseCache = Depends(get_response_cache),
    request_id: str = Depends(get_request_id),
) -> ORJSONResponse:
    """Probe upstream connectivity, the cache round-trip and process memory.

    Any failing probe marks the report ``DEGRADED`` and answers 503.
    """
    status = HealthStatus.OK
    services: Dict[str, Any] = {}

    try:
        locations = await client.request(
            "/locations", use_cache=False, request_id=request_id
        )
        if locations.get("locations") is not None:
            services["square"] = "healthy"
        else:
            services["square"] = "degraded"
            status = HealthStatus.DEGRADED
    except OrderProxyException as e:
        services["square"] = "unhealthy"
        services["squareError"] = e.message
        status = HealthStatus.DEGRADED

    try:
        probe_cache(cache)
        services["cache"] = "healthy"
    except CacheError:
        services["cache"] = "unhealthy"
        status = HealthStatus.DEGRADED

    memory = psutil.Process().memory_info()
    rss_mb = memory.rss / 1024 / 1024
    if rss_mb > HIGH_MEMORY_THRESHOLD_MB:
        services["memory"] = "high_usage"
        status = HealthStatus.DEGRADED
    else:
        services["memory"] = "healthy"

    if status != HealthStatus.OK:
        warning(
            LogRecord(
                event=LogEvent.HEALTH_CHECK.value,
                message="Detailed health check degraded",
                request_id=request_id,
                data={"services": services},
            )
        )

    report = {
        "status": str(status),
        "timestamp": _now_iso(),
        "uptime": _uptime_seconds(request),
        "environment": settings.environment,
        "version": settings.app_version,
        "services": services,
        "metrics": {
            "cacheSize": len(cache),
            "memoryUsage": {"rss": memory.rss, "vms": memory.vms},
            "pythonVersion": platform.python_version(),
        },
    }
    return ORJSONResponse(
        status_code=200 if status == HealthStatus.OK else 503, content=report
    )


@router.get("/api/health/config")
async def config_health_check(
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    token = settings.square_access_token
    config: Dict[str, Any] = {
        "environment": settings.environment,
        "squareEnvironment": settings.square_environment,
        "hasSquareToken": bool(token),
        "squareTokenLength": len(token),
        "port": settings.port,
        "pythonVersion": platform.python_version(),
        "timestamp": _now_iso(),
    }
    if settings.is_production:
        del config["squareTokenLength"]
    return config

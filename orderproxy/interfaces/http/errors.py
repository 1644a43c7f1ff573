import time
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from fastapi.responses import ORJSONResponse

from ...constants import INTERNAL_ERROR_MESSAGE
from ...domain.exceptions import (
    OrderProxyException,
    StoreOfflineError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from ...logging import LogEvent, LogRecord, error, warning


def get_error_details_from_exc(exc: Exception) -> Tuple[int, str, Dict[str, Any]]:
    """Maps caught exceptions to status code, client message and extra body fields."""
    if isinstance(exc, ValidationError):
        extra: Dict[str, Any] = {}
        if exc.field_errors:
            extra["errors"] = exc.field_errors
        return 400, exc.message, extra
    if isinstance(exc, StoreOfflineError):
        return 503, exc.message, {"storeOffline": True}
    if isinstance(exc, UpstreamTimeoutError):
        return 504, exc.message, {}
    if isinstance(exc, UpstreamError):
        return 500, exc.message, {}
    if isinstance(exc, OrderProxyException):
        return 500, exc.message, {}
    return 500, INTERNAL_ERROR_MESSAGE, {}


def build_error_response(
    status_code: int,
    message: str,
    extra: Optional[Dict[str, Any]] = None,
) -> ORJSONResponse:
    """Creates the ``{"error": message, ...}`` body every failure uses."""
    content: Dict[str, Any] = {"error": message}
    if extra:
        content.update(extra)
    return ORJSONResponse(status_code=status_code, content=content)


async def log_and_return_error_response(
    request: Request,
    status_code: int,
    error_message: str,
    caught_exception: Optional[Exception] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    start_time_mono = getattr(request.state, "start_time_monotonic", time.monotonic())
    duration_ms = (time.monotonic() - start_time_mono) * 1000

    log_data = {
        "status_code": status_code,
        "duration_ms": duration_ms,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    record = LogRecord(
        event=LogEvent.REQUEST_FAILURE.value,
        message=f"Request failed: {error_message}",
        request_id=request_id,
        data=log_data,
    )
    if status_code >= 500 and status_code != 503:
        error(record, exc=caught_exception)
    else:
        warning(record, exc=caught_exception)
    return build_error_response(status_code, error_message, extra)


def field_errors_from_pydantic(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in errors
    ]

"""FastAPI dependencies resolving per-app state."""

from fastapi import Request

from ...application.cache import ResponseCache
from ...config import Settings
from ...constants import STORE_OFFLINE_MESSAGE
from ...domain.exceptions import StoreOfflineError
from ...infrastructure.square.client import SquareClient
from ...logging import LogEvent, LogRecord, warning


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_square_client(request: Request) -> SquareClient:
    return request.app.state.square_client


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def require_store_online(request: Request) -> None:
    """Gate for order and payment mutations.

    Raises:
        StoreOfflineError: Online ordering is switched off
    """
    settings: Settings = request.app.state.settings
    if not settings.store_online:
        request_id = get_request_id(request)
        warning(
            LogRecord(
                event=LogEvent.STORE_OFFLINE.value,
                message=f"Rejected {request.method} {request.url.path}: store offline",
                request_id=request_id,
            )
        )
        raise StoreOfflineError(STORE_OFFLINE_MESSAGE, request_id=request_id)

"""Online-ordering status, read from process configuration."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....config import Settings
from ..dependencies import get_settings

router = APIRouter(prefix="/api")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/store-status")
async def store_status(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {"isOnline": settings.store_online, "timestamp": _now_iso()}


@router.get("/store/status")
async def store_status_detail(
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    online = settings.store_online
    return {
        "online": online,
        "status": "Online ordering available" if online else "Online ordering disabled",
        "timestamp": _now_iso(),
    }

"""
Health check and log endpoints.
"""

import time
from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from pluginhub import __version__
from pluginhub.lib.logger import get_log_buffer

router = APIRouter()

# Server start time for uptime calculation
_start_time = time.time()


@router.get("/health")
async def health_check(
    request: Request,
    detailed: bool = Query(False, description="Include store and editor information"),
) -> dict[str, Any]:
    basic = {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
        "version": __version__,
    }
    if not detailed:
        return basic

    hub = request.app.state.hub
    return {
        **basic,
        "uptime": int(time.time() - _start_time),
        "store": {
            "root": str(hub.store.root),
            "status": "ok" if hub.store.objects_root.is_dir() else "inaccessible",
            "objects": len(hub.store.list_objects()),
        },
        "editors": [
            {"id": e.id, "enabled": e.is_enabled, "exists": e.extensions_directory_exists}
            for e in hub.editors
        ],
        "symlinks": hub.links.enable_symlinks,
    }


@router.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=1, le=1000),
    level: Optional[str] = Query(None, description="Minimum level, e.g. WARNING"),
) -> dict[str, Any]:
    """Most recent log entries from the in-memory buffer."""
    buffer = get_log_buffer()
    return {"logs": buffer.get_recent(limit, min_level=level), "total": len(buffer)}

"""
Content store endpoints.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from pluginhub.models.plugin import Plugin, PluginIdentity

router = APIRouter()
logger = logging.getLogger(__name__)


class IngestInput(BaseModel):
    """Store a plugin directory; with unique_id it is also indexed."""

    path: str
    unique_id: Optional[str] = None
    version: Optional[str] = None


@router.get("/store")
async def store_info(request: Request) -> dict[str, Any]:
    hub = request.app.state.hub

    def _info() -> dict[str, Any]:
        return {
            "root": str(hub.store.root),
            "objects": hub.store.list_objects(),
            "totalSize": hub.total_size(),
            "plugins": {
                uid: rec.model_dump(mode="json") for uid, rec in hub.index.items()
            },
        }

    return await asyncio.to_thread(_info)


@router.post("/store/ingest")
async def ingest(request: Request, body: IngestInput) -> dict[str, Any]:
    hub = request.app.state.hub

    if body.unique_id:
        try:
            identity = PluginIdentity.parse(body.unique_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        plugin = Plugin(
            publisher_id=identity.publisher_id,
            extension_id=identity.extension_id,
            version=body.version,
            installed_path=body.path,
        )
        stored = await asyncio.to_thread(hub.add_plugin, plugin)
        object_path = stored.store_path
    else:
        object_path = str(await asyncio.to_thread(hub.ensure_stored_copy, body.path))

    return {
        "objectPath": object_path,
        "digest": hub.store.digest_of(object_path),
        "uniqueId": body.unique_id,
    }


@router.post("/store/gc")
async def garbage_collect(request: Request) -> dict[str, Any]:
    hub = request.app.state.hub

    def _gc() -> dict[str, int]:
        staging = hub.store.cleanup_staging()
        removed = hub.garbage_collect_store()
        return {"removed": removed, "stagingRemoved": staging}

    return await asyncio.to_thread(_gc)

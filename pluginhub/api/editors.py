"""
Editor endpoints: configured editors and the plugins installed in each.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from pluginhub.models.editor import Editor
from pluginhub.models.plugin import Plugin

router = APIRouter()
logger = logging.getLogger(__name__)


def _editor_to_dict(editor: Editor) -> dict[str, Any]:
    return {
        "id": editor.id,
        "type": editor.type.value,
        "name": editor.name,
        "extensionsPath": editor.extensions_path,
        "isEnabled": editor.is_enabled,
        "exists": editor.extensions_directory_exists,
    }


def _plugin_to_dict(plugin: Plugin, link_status: str) -> dict[str, Any]:
    return {
        "uniqueId": plugin.unique_id,
        "displayName": plugin.display_name,
        "description": plugin.description,
        "version": plugin.version,
        "source": plugin.source.value,
        "path": plugin.full_path,
        "linkStatus": link_status,
    }


def _lookup(request: Request, editor_id: str) -> Editor:
    try:
        return request.app.state.hub.get_editor(editor_id)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Editor '{editor_id}' not found")


@router.get("/editors")
async def list_editors(request: Request) -> dict[str, Any]:
    hub = request.app.state.hub
    return {"editors": [_editor_to_dict(e) for e in hub.editors]}


@router.get("/editors/{editor_id}/plugins")
async def list_editor_plugins(request: Request, editor_id: str) -> dict[str, Any]:
    """Scan one editor and report each plugin with its link status."""
    hub = request.app.state.hub
    editor = _lookup(request, editor_id)

    def _scan() -> list[dict[str, Any]]:
        plugins = hub.discover_installations([editor]).get(editor.id, [])
        return [_plugin_to_dict(p, hub.link_status(p, editor).value) for p in plugins]

    plugins = await asyncio.to_thread(_scan)
    return {"editor": _editor_to_dict(editor), "plugins": plugins, "count": len(plugins)}

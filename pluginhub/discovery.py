"""
Plugin discovery.

Walks each editor's extensions directories and reads the package.json of
every extension folder:

    <extensions dir>/
        ms-python.python-2024.2.1/
            package.json          # publisher, name, displayName, version
            ...

Symlinked folders (links into the store) are followed and reported with
source "linked". The core never imports this module; it only consumes the
inventories it produces.
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Optional

from pluginhub.core.errors import PluginHubError
from pluginhub.lib.typed_errors import ErrorCode
from pluginhub.models.editor import Editor
from pluginhub.models.plugin import Plugin, PluginSource

logger = logging.getLogger(__name__)


class EditorDirectoryNotFound(PluginHubError):
    code = ErrorCode.SOURCE_NOT_FOUND

    def __init__(self, editor: Editor):
        super().__init__(
            f"Extension directory not found for {editor.name}: {editor.expanded_path}",
            editor.expanded_path,
        )


def discover_plugins(editor: Editor) -> list[Plugin]:
    """Discover the plugins installed in one editor.

    Every existing candidate directory of the editor is scanned; when the
    same plugin shows up in several of them, the first one found wins.

    Raises:
        EditorDirectoryNotFound: none of the editor's directories exist
    """
    if not editor.is_enabled:
        return []

    paths = editor.all_extensions_paths
    if not paths:
        raise EditorDirectoryNotFound(editor)

    plugins: list[Plugin] = []
    seen: set[str] = set()
    for extensions_dir in paths:
        for plugin in _scan_directory(Path(extensions_dir)):
            if plugin.unique_id in seen:
                continue
            seen.add(plugin.unique_id)
            plugins.append(plugin)

    logger.info(f"Discovered {len(plugins)} plugins in {editor.name}")
    return plugins


def _scan_directory(path: Path) -> list[Plugin]:
    plugins = []
    try:
        entries = sorted(path.iterdir())
    except OSError as e:
        logger.warning(f"Failed to scan directory {path}: {e}")
        return plugins

    for entry in entries:
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        plugin = read_plugin_manifest(entry)
        if plugin:
            plugins.append(plugin)
    return plugins


def read_plugin_manifest(folder: Path) -> Optional[Plugin]:
    """Plugin described by folder/package.json, or None if there is no usable manifest."""
    manifest = folder / "package.json"
    if not manifest.is_file():
        return None
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to parse {manifest}: {e}")
        return None

    if not isinstance(data, dict) or not isinstance(data.get("name"), str):
        return None

    name = data["name"]
    version = data.get("version")
    return Plugin(
        publisher_id=data.get("publisher") or "unknown",
        extension_id=name,
        display_name=data.get("displayName") or name,
        description=data.get("description") or "",
        version=version if isinstance(version, str) else None,
        source=PluginSource.LINKED if os.path.islink(folder) else PluginSource.LOCAL,
        installed_path=str(folder),
    )


def scan_editors(
    editors: Iterable[Editor],
    progress: Optional[Callable[[float], None]] = None,
    errors: Optional[list[Exception]] = None,
) -> dict[str, list[Plugin]]:
    """Discover plugins for several editors.

    Disabled editors are skipped. An editor that fails to scan is left out
    of the result; its exception is appended to `errors` when given.
    """
    editors = list(editors)
    results: dict[str, list[Plugin]] = {}
    total = len(editors)

    for position, editor in enumerate(editors):
        if editor.is_enabled:
            try:
                results[editor.id] = discover_plugins(editor)
            except PluginHubError as e:
                logger.warning(f"Failed to scan {editor.name}: {e}")
                if errors is not None:
                    errors.append(e)
        if progress is not None:
            progress((position + 1) / total)

    return results

"""
Pytest configuration and fixtures.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

import pytest
import yaml
from fastapi.testclient import TestClient

# Set test environment before pluginhub.config builds its global settings
os.environ["PLUGINHUB_HOME"] = tempfile.mkdtemp(prefix="pluginhub-test-")
os.environ["PLUGINHUB_LOG_LEVEL"] = "WARNING"

from pluginhub.core.content_store import ContentStore  # noqa: E402
from pluginhub.core.hub import PluginHub  # noqa: E402
from pluginhub.core.link_engine import LinkEngine  # noqa: E402
from pluginhub.core.plugin_index import MemoryIndexBackend, PluginIndex  # noqa: E402
from pluginhub.discovery import scan_editors  # noqa: E402
from pluginhub.models.editor import Editor, EditorType  # noqa: E402

TEST_EDITORS = ("vscode", "cursor")


def write_plugin(
    extensions_dir: Path,
    publisher: str = "ms-python",
    name: str = "python",
    version: Optional[str] = "1.0.0",
    folder: Optional[str] = None,
    extra_files: Optional[dict[str, str]] = None,
    display_name: Optional[str] = None,
) -> Path:
    """Create an extension folder with a package.json and a small dist/ tree."""
    folder_name = folder or f"{publisher}.{name}-{version or '0'}"
    plugin_dir = extensions_dir / folder_name
    (plugin_dir / "dist").mkdir(parents=True)

    manifest = {"publisher": publisher, "name": name}
    if version is not None:
        manifest["version"] = version
    if display_name is not None:
        manifest["displayName"] = display_name
    (plugin_dir / "package.json").write_text(json.dumps(manifest, sort_keys=True))
    (plugin_dir / "dist" / "index.js").write_text(f"module.exports = '{publisher}.{name}';\n")
    for rel, content in (extra_files or {}).items():
        path = plugin_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return plugin_dir


@pytest.fixture
def make_plugin() -> Callable[..., Path]:
    return write_plugin


@pytest.fixture
def editor_dirs(tmp_path: Path) -> dict[str, Path]:
    """One empty extensions directory per test editor."""
    dirs = {}
    for key in TEST_EDITORS:
        path = tmp_path / "editors" / key / "extensions"
        path.mkdir(parents=True)
        dirs[key] = path
    return dirs


@pytest.fixture
def editors(editor_dirs: dict[str, Path]) -> list[Editor]:
    return [
        Editor(id=key, type=EditorType.from_key(key), extensions_path=str(path))
        for key, path in editor_dirs.items()
    ]


@pytest.fixture
def store(tmp_path: Path) -> ContentStore:
    return ContentStore(tmp_path / "store")


@pytest.fixture
def link_engine(store: ContentStore) -> LinkEngine:
    return LinkEngine(store.objects_root, enable_symlinks=True)


@pytest.fixture
def index() -> PluginIndex:
    return PluginIndex(MemoryIndexBackend())


@pytest.fixture
def hub(store, link_engine, index, editors) -> PluginHub:
    return PluginHub(
        store=store,
        links=link_engine,
        index=index,
        editors=editors,
        discoverer=scan_editors,
    )


@pytest.fixture
def test_home(tmp_path: Path, editor_dirs: dict[str, Path]) -> Path:
    """A PluginHub home whose config.yaml points at the test editors only."""
    home = tmp_path / "home"
    home.mkdir()
    config = {
        "editor_paths": {key: str(path) for key, path in editor_dirs.items()},
        "disabled_editors": [t.key for t in EditorType if t.key not in TEST_EDITORS],
        "log_level": "WARNING",
    }
    (home / "config.yaml").write_text(yaml.safe_dump(config))
    return home


@pytest.fixture
def test_settings(test_home: Path):
    from pluginhub.config import Settings

    return Settings(home=test_home)


@pytest.fixture
def test_client(test_home: Path, monkeypatch) -> TestClient:
    """Create a FastAPI test client backed by the test home."""
    monkeypatch.setenv("PLUGINHUB_HOME", str(test_home))

    from pluginhub.config import reload_settings

    reload_settings()

    from pluginhub.server import app

    with TestClient(app) as client:
        yield client

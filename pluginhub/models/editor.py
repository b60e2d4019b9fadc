"""
Editor models.

Each supported editor keeps its extensions in one directory per install,
e.g. ~/.vscode/extensions/<publisher>.<name>-<version>/.
"""

import os
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class EditorType(str, Enum):
    """Supported editors (values are the display names)."""

    VSCODE = "VS Code"
    VSCODE_INSIDERS = "VS Code Insiders"
    VSCODIUM = "VSCodium"
    CURSOR = "Cursor"
    WINDSURF = "Windsurf"
    TRAE = "Trae"
    MARSCODE = "MarsCode"

    @property
    def key(self) -> str:
        """Config key for this editor, e.g. 'vscode_insiders'."""
        return self.name.lower()

    @classmethod
    def from_key(cls, key: str) -> "EditorType":
        normalized = key.strip().lower().replace("-", "_").replace(" ", "_")
        for member in cls:
            if member.key == normalized or member.value.lower().replace(" ", "_") == normalized:
                return member
        raise ValueError(f"Unknown editor: {key}")

    @property
    def default_extensions_path(self) -> str:
        return _DEFAULT_PATHS[self][0]

    @property
    def all_possible_extensions_paths(self) -> list[str]:
        return list(_DEFAULT_PATHS[self])


_DEFAULT_PATHS: dict[EditorType, tuple[str, ...]] = {
    EditorType.VSCODE: ("~/.vscode/extensions",),
    EditorType.VSCODE_INSIDERS: ("~/.vscode-insiders/extensions",),
    EditorType.VSCODIUM: ("~/.vscode-oss/extensions",),
    EditorType.CURSOR: (
        "~/Library/Application Support/Cursor/extensions",
        "~/.cursor/extensions",
    ),
    EditorType.WINDSURF: (
        "~/Library/Application Support/Windsurf/extensions",
        "~/.windsurf/extensions",
    ),
    EditorType.TRAE: (
        "~/Library/Application Support/Trae/extensions",
        "~/.trae/extensions",
    ),
    EditorType.MARSCODE: (
        "~/Library/Application Support/MarsCode/extensions",
        "~/.marscode/extensions",
    ),
}


class Editor(BaseModel):
    """A configured editor and the extensions directory it loads plugins from."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    type: EditorType
    name: str = ""
    extensions_path: str = ""
    is_enabled: bool = True

    def model_post_init(self, __context) -> None:
        if not self.name:
            self.name = self.type.value
        if not self.extensions_path:
            self.extensions_path = self.type.default_extensions_path

    @property
    def expanded_path(self) -> str:
        return os.path.expanduser(self.extensions_path)

    @property
    def extensions_directory_exists(self) -> bool:
        return os.path.isdir(self.expanded_path)

    @property
    def all_extensions_paths(self) -> list[str]:
        """Existing extension directories: the configured one first, then the type's candidates.

        An overridden path replaces the candidates entirely.
        """
        candidates = [self.expanded_path]
        if self.extensions_path != self.type.default_extensions_path:
            return [p for p in candidates if os.path.isdir(p)]
        for path in self.type.all_possible_extensions_paths:
            expanded = os.path.expanduser(path)
            if expanded not in candidates:
                candidates.append(expanded)
        return [p for p in candidates if os.path.isdir(p)]


def default_editors(
    overrides: Optional[dict[str, str]] = None,
    disabled: Optional[list[str]] = None,
) -> list[Editor]:
    """Build one Editor per supported type, applying path overrides and disabled keys.

    Editors get stable ids (their config key) so inventories and reports stay
    comparable across runs.
    """
    overrides = {EditorType.from_key(k).key: v for k, v in (overrides or {}).items()}
    disabled_keys = {EditorType.from_key(k).key for k in (disabled or [])}

    editors = []
    for editor_type in EditorType:
        editors.append(
            Editor(
                id=editor_type.key,
                type=editor_type,
                extensions_path=overrides.get(editor_type.key, ""),
                is_enabled=editor_type.key not in disabled_keys,
            )
        )
    return editors

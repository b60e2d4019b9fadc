"""
Plugin models.

A plugin is identified by its publisher and extension id, the same
`publisher.name` key editors use in their extensions directories.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PluginSource(str, Enum):
    LOCAL = "local"
    MARKETPLACE = "marketplace"
    LINKED = "linked"


class PluginIdentity(BaseModel):
    """Logical plugin identity; `unique_id` is the dedup key."""

    model_config = ConfigDict(frozen=True)

    publisher_id: str
    extension_id: str

    @property
    def unique_id(self) -> str:
        return f"{self.publisher_id}.{self.extension_id}"

    @classmethod
    def parse(cls, unique_id: str) -> "PluginIdentity":
        publisher, sep, extension = unique_id.partition(".")
        if not sep or not publisher or not extension:
            raise ValueError(f"Not a publisher.extension id: {unique_id!r}")
        return cls(publisher_id=publisher, extension_id=extension)

    def __str__(self) -> str:
        return self.unique_id


def _version_key(version: str) -> tuple:
    return tuple(int(part) if part.isdigit() else part for part in re.split(r"[.\-+]", version))


class Plugin(BaseModel):
    """A plugin as discovered in an editor or recorded in the store."""

    publisher_id: str
    extension_id: str
    display_name: str = ""
    description: str = ""
    version: Optional[str] = None
    latest_version: Optional[str] = None
    source: PluginSource = PluginSource.LOCAL
    installed_path: Optional[str] = None
    store_path: Optional[str] = None
    is_enabled: bool = True

    @property
    def identity(self) -> PluginIdentity:
        return PluginIdentity(publisher_id=self.publisher_id, extension_id=self.extension_id)

    @property
    def unique_id(self) -> str:
        return f"{self.publisher_id}.{self.extension_id}"

    @property
    def full_path(self) -> str:
        return self.installed_path or self.store_path or ""

    @property
    def has_update(self) -> bool:
        if not self.version or not self.latest_version:
            return False
        if self.version == self.latest_version:
            return False
        try:
            return _version_key(self.latest_version) > _version_key(self.version)
        except TypeError:
            # Mixed numeric/text segments at the same position
            return self.latest_version > self.version


class Installation(BaseModel):
    """One physical copy of a plugin inside one editor's extensions directory."""

    editor_id: str
    editor_name: str
    path: str
    version: Optional[str] = None
    size_bytes: Optional[int] = None  # measured lazily
    is_linked: bool = False


class IndexRecord(BaseModel):
    """Persisted index entry for a stored plugin."""

    store_path: str
    version: Optional[str] = None
    source: PluginSource = PluginSource.LINKED
    display_name: str = ""
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

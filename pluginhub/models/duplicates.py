"""
Duplicate analysis models.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from pluginhub.models.editor import Editor
from pluginhub.models.plugin import Installation


class DuplicateGroup(BaseModel):
    """All installations of one plugin identity across editors.

    `instances` is kept sorted by size descending; the first one is the
    master that gets stored and linked everywhere else.
    """

    plugin_unique_id: str
    display_name: str = ""
    instances: list[Installation] = Field(default_factory=list)

    @computed_field
    @property
    def duplicate_count(self) -> int:
        return len(self.instances)

    @computed_field
    @property
    def all_versions(self) -> list[str]:
        return sorted({i.version for i in self.instances if i.version})

    @computed_field
    @property
    def is_version_conflict(self) -> bool:
        return len(self.all_versions) > 1

    @computed_field
    @property
    def wasted_space(self) -> int:
        return sum(i.size_bytes or 0 for i in self.instances[1:])

    @property
    def master(self) -> Optional[Installation]:
        return self.instances[0] if self.instances else None


class DuplicateReport(BaseModel):
    scan_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    editors: list[Editor] = Field(default_factory=list)
    groups: list[DuplicateGroup] = Field(default_factory=list)

    @computed_field
    @property
    def total_duplicates(self) -> int:
        return sum(g.duplicate_count - 1 for g in self.groups)

    @computed_field
    @property
    def wasted_space(self) -> int:
        return sum(g.wasted_space for g in self.groups)

    @property
    def version_conflicts(self) -> list[DuplicateGroup]:
        return [g for g in self.groups if g.is_version_conflict]

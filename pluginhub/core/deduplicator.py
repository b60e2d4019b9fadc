"""
Duplicate detection across editors.
"""

import logging
import os
from typing import Callable, Iterable, Mapping, Optional

from pluginhub.lib.fs_utils import folder_size, format_size
from pluginhub.models.duplicates import DuplicateGroup, DuplicateReport
from pluginhub.models.editor import Editor
from pluginhub.models.plugin import Installation, Plugin

logger = logging.getLogger(__name__)

BULK_LINK_THRESHOLD = 5


class DuplicateAnalyzer:
    """Groups per-editor inventories by plugin identity.

    The largest installation of each group is treated as the master copy;
    it is the least likely to be partial or stripped.
    """

    def __init__(self, size_fn: Optional[Callable[[str], int]] = None):
        self.size_fn = size_fn or folder_size

    def analyze_duplicates(
        self,
        installations_by_editor: Mapping[str, Iterable[Plugin]],
        editors: Iterable[Editor],
    ) -> DuplicateReport:
        editors = list(editors)
        by_id: dict[str, list[tuple[Editor, Plugin]]] = {}

        for editor in editors:
            plugins = installations_by_editor.get(editor.id)
            if not plugins:
                continue
            for plugin in plugins:
                by_id.setdefault(plugin.unique_id, []).append((editor, plugin))

        ignored = set(installations_by_editor) - {e.id for e in editors}
        if ignored:
            logger.debug(f"Ignoring inventories of unknown editors: {sorted(ignored)}")

        groups = []
        for unique_id, entries in by_id.items():
            if len(entries) < 2:
                continue
            instances = [self._measure(editor, plugin) for editor, plugin in entries]
            # sorted() is stable, so equal sizes keep editor order
            instances = sorted(instances, key=lambda i: i.size_bytes or 0, reverse=True)
            groups.append(
                DuplicateGroup(
                    plugin_unique_id=unique_id,
                    display_name=entries[0][1].display_name or unique_id,
                    instances=instances,
                )
            )

        groups.sort(key=lambda g: (-g.wasted_space, g.plugin_unique_id))
        report = DuplicateReport(editors=editors, groups=groups)
        logger.info(
            f"Found {len(groups)} duplicated plugins, "
            f"{format_size(report.wasted_space)} reclaimable"
        )
        return report

    def _measure(self, editor: Editor, plugin: Plugin) -> Installation:
        path = plugin.full_path
        try:
            size = self.size_fn(path) if path else 0
        except OSError as e:
            logger.warning(f"Could not measure {path}: {e}")
            size = 0
        return Installation(
            editor_id=editor.id,
            editor_name=editor.name,
            path=path,
            version=plugin.version,
            size_bytes=size,
            is_linked=bool(path) and os.path.islink(path),
        )

    @staticmethod
    def generate_suggestions(report: DuplicateReport) -> list[str]:
        suggestions = []

        linked = [g for g in report.groups if any(i.is_linked for i in g.instances)]
        if linked:
            suggestions.append(f"{len(linked)} duplicated plugins are already partly linked to the store")

        for group in report.version_conflicts:
            suggestions.append(f"{group.display_name}: {', '.join(group.all_versions)}")

        if report.wasted_space > 0:
            suggestions.append(f"Linking duplicates can free {format_size(report.wasted_space)}")

        if report.total_duplicates > BULK_LINK_THRESHOLD:
            suggestions.append("Many duplicates found: run optimize to link them all at once")

        return suggestions

"""
PluginHub facade.

Wires the content store, link engine, index, analyzer and planner together
for one store root and one set of editors. Built explicitly, or from
settings via PluginHub.from_settings().
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from pluginhub.core.content_store import ContentStore
from pluginhub.core.deduplicator import DuplicateAnalyzer
from pluginhub.core.errors import BatchPartialFailure, PluginNotInStore
from pluginhub.core.link_engine import LinkEngine, LinkKind, LinkStatus
from pluginhub.core.optimizer import OptimizationPlanner, ProgressCallback
from pluginhub.core.plugin_index import JsonFileIndexBackend, MemoryIndexBackend, PluginIndex
from pluginhub.models.duplicates import DuplicateReport
from pluginhub.models.editor import Editor, EditorType, default_editors
from pluginhub.models.plan import ExecutionResult, Plan
from pluginhub.models.plugin import Plugin, PluginSource

logger = logging.getLogger(__name__)

Discoverer = Callable[[list[Editor]], dict[str, list[Plugin]]]


class PluginHub:
    def __init__(
        self,
        store: ContentStore,
        links: LinkEngine,
        index: Optional[PluginIndex] = None,
        editors: Optional[list[Editor]] = None,
        discoverer: Optional[Discoverer] = None,
        analyzer: Optional[DuplicateAnalyzer] = None,
    ):
        self.store = store
        self.links = links
        self.index = index if index is not None else PluginIndex(MemoryIndexBackend())
        self.editors = list(editors) if editors is not None else default_editors()
        self.discoverer = discoverer
        self.analyzer = analyzer or DuplicateAnalyzer()
        self.planner = OptimizationPlanner(store, links, self.index)

    @classmethod
    def from_settings(cls, settings=None, discoverer: Optional[Discoverer] = None) -> "PluginHub":
        """Build a hub from Settings (the global settings when omitted)."""
        if settings is None:
            from pluginhub.config import get_settings

            settings = get_settings()
        if discoverer is None:
            from pluginhub.discovery import scan_editors

            discoverer = scan_editors

        store = ContentStore(settings.store_root, chunk_size=settings.hash_chunk_size)
        return cls(
            store=store,
            links=LinkEngine(store.objects_root, enable_symlinks=settings.enable_symlinks),
            index=PluginIndex(JsonFileIndexBackend(settings.index_file)),
            editors=default_editors(settings.editor_paths, settings.disabled_editors),
            discoverer=discoverer,
        )

    # -----------------------------------------------------------------------
    # Editors
    # -----------------------------------------------------------------------

    def get_editor(self, key: str) -> Editor:
        """Look up an editor by id or type name ('cursor', 'VS Code', ...)."""
        for editor in self.editors:
            if editor.id == key:
                return editor
        editor_type = EditorType.from_key(key)
        for editor in self.editors:
            if editor.type == editor_type:
                return editor
        raise ValueError(f"Unknown editor: {key}")

    @property
    def enabled_editors(self) -> list[Editor]:
        return [e for e in self.editors if e.is_enabled]

    def editor_dirs(self) -> list[str]:
        """Every existing extensions directory of every known editor, enabled or not."""
        dirs: list[str] = []
        for editor in self.editors:
            for path in editor.all_extensions_paths:
                if path not in dirs:
                    dirs.append(path)
        return dirs

    def target_path(self, plugin: Plugin, editor: Editor) -> Path:
        return Path(editor.expanded_path) / plugin.unique_id

    # -----------------------------------------------------------------------
    # Scan / analyze / optimize
    # -----------------------------------------------------------------------

    def discover_installations(
        self, editors: Optional[Iterable[Editor]] = None
    ) -> dict[str, list[Plugin]]:
        if self.discoverer is None:
            raise RuntimeError("No plugin discoverer configured")
        editors = list(editors) if editors is not None else self.enabled_editors
        return self.discoverer(editors)

    def analyze_duplicates(
        self,
        installations_by_editor: Mapping[str, Iterable[Plugin]],
        editors: Optional[Iterable[Editor]] = None,
    ) -> DuplicateReport:
        return self.analyzer.analyze_duplicates(
            installations_by_editor, editors if editors is not None else self.editors
        )

    def generate_suggestions(self, report: DuplicateReport) -> list[str]:
        return self.analyzer.generate_suggestions(report)

    def create_optimization_plan(
        self,
        report: DuplicateReport,
        include_version_conflicts: bool = False,
        cleanup: bool = False,
    ) -> Plan:
        return self.planner.create_plan(report, include_version_conflicts, cleanup)

    def execute_plan(
        self,
        plan: Plan,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        return self.planner.execute_plan(plan, on_progress, cancel_event)

    # -----------------------------------------------------------------------
    # Store
    # -----------------------------------------------------------------------

    def ensure_stored_copy(
        self, source_path: Path | str, cancel_event: Optional[threading.Event] = None
    ) -> Path:
        return self.store.ensure_stored_copy(source_path, cancel_event)

    def garbage_collect_store(self) -> int:
        return self.store.garbage_collect(self.index, self.editor_dirs())

    def is_linked(self, path: Path | str, object_path: Path | str) -> bool:
        return self.links.is_linked(path, object_path)

    def clear_store(self) -> None:
        self.store.clear()
        self.index.clear()

    def total_size(self) -> int:
        return self.store.total_size()

    # -----------------------------------------------------------------------
    # Plugin-level operations
    # -----------------------------------------------------------------------

    def stored_path(self, plugin: Plugin) -> Optional[str]:
        """Object path for a plugin: its own store_path, else the index record's."""
        if plugin.store_path:
            return plugin.store_path
        record = self.index.get(plugin.unique_id)
        return record.store_path if record else None

    def add_plugin(self, plugin: Plugin, source_path: Optional[Path | str] = None) -> Plugin:
        """Store a plugin's files and index them. Returns the plugin with its store_path set."""
        source = source_path or plugin.installed_path
        if not source:
            raise PluginNotInStore(plugin.unique_id)
        object_path = self.store.ensure_stored_copy(source)
        self.index.record(
            plugin.unique_id,
            object_path,
            version=plugin.version,
            source=PluginSource.LINKED,
            display_name=plugin.display_name,
        )
        return plugin.model_copy(
            update={"store_path": os.fspath(object_path), "source": PluginSource.LINKED}
        )

    def link_plugin(self, plugin: Plugin, editor: Editor, overwrite: bool = False) -> LinkKind:
        """Link a plugin into an editor, storing it first if needed."""
        object_path = self.stored_path(plugin)
        if not object_path or not os.path.exists(object_path):
            object_path = self.add_plugin(plugin).store_path
        target = self.target_path(plugin, editor)
        kind = self.links.materialize(object_path, target, overwrite=overwrite)
        logger.info(
            f"Linked {plugin.unique_id} into {editor.name} ({kind.value})", extra={"path": target}
        )
        return kind

    def link_plugins(
        self, plugins: Iterable[Plugin], editor: Editor, overwrite: bool = False
    ) -> dict[str, LinkKind]:
        results: dict[str, LinkKind] = {}
        errors: list[Exception] = []
        for plugin in plugins:
            try:
                results[plugin.unique_id] = self.link_plugin(plugin, editor, overwrite)
            except Exception as e:
                logger.error(f"Failed to link {plugin.unique_id} into {editor.name}: {e}")
                errors.append(e)
        if errors:
            raise BatchPartialFailure(errors, results)
        return results

    def unlink_plugin(self, plugin: Plugin, editor: Editor) -> bool:
        """Remove a plugin's link from an editor.

        Real installations are left alone; returns True if a link was removed.
        """
        target = self.target_path(plugin, editor)
        status = self.link_status(plugin, editor)
        if status == LinkStatus.NOT_LINKED:
            return False
        if status == LinkStatus.DIRECT_INSTALL:
            logger.warning(f"Not unlinking {target}: it is a real installation")
            return False
        return self.links.remove_link(target)

    def unlink_plugins(self, plugins: Iterable[Plugin], editor: Editor) -> list[str]:
        removed: list[str] = []
        errors: list[Exception] = []
        for plugin in plugins:
            try:
                if self.unlink_plugin(plugin, editor):
                    removed.append(plugin.unique_id)
            except Exception as e:
                logger.error(f"Failed to unlink {plugin.unique_id} from {editor.name}: {e}")
                errors.append(e)
        if errors:
            raise BatchPartialFailure(errors, removed)
        return removed

    def link_status(self, plugin: Plugin, editor: Editor) -> LinkStatus:
        return self.links.link_status(self.target_path(plugin, editor), self.stored_path(plugin))

    def is_plugin_linked(self, plugin: Plugin, editor: Editor) -> bool:
        return self.link_status(plugin, editor) == LinkStatus.LINKED

    def remove_plugin(self, plugin: Plugin) -> int:
        """Forget a stored plugin and collect its object if nothing else uses it.

        Returns the number of objects garbage collected.
        """
        if not self.stored_path(plugin):
            raise PluginNotInStore(plugin.unique_id)
        self.index.remove(plugin.unique_id)
        return self.garbage_collect_store()

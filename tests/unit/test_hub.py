"""End-to-end tests through the PluginHub facade."""

import os
from pathlib import Path

import pytest

from pluginhub.core.content_store import ContentStore
from pluginhub.core.errors import BatchPartialFailure, PluginNotInStore, TargetAlreadyExists
from pluginhub.core.hub import PluginHub
from pluginhub.core.link_engine import LinkEngine, LinkKind, LinkStatus
from pluginhub.core.plugin_index import MemoryIndexBackend, PluginIndex
from pluginhub.discovery import read_plugin_manifest, scan_editors
from pluginhub.models.plugin import Plugin, PluginSource


def _unique_bytes(*roots: Path) -> int:
    """Bytes on disk below roots, counting each inode once and not following symlinks."""
    seen = set()
    total = 0
    for root in roots:
        for dirpath, dirnames, filenames in os.walk(root):
            for name in filenames:
                st = os.lstat(os.path.join(dirpath, name))
                if os.path.islink(os.path.join(dirpath, name)):
                    continue
                if (st.st_dev, st.st_ino) in seen:
                    continue
                seen.add((st.st_dev, st.st_ino))
                total += st.st_size
    return total


@pytest.fixture(params=[True, False], ids=["symlinks", "hardlinks"])
def scenario_hub(request, tmp_path, editors):
    store = ContentStore(tmp_path / "store")
    return PluginHub(
        store=store,
        links=LinkEngine(store.objects_root, enable_symlinks=request.param),
        index=PluginIndex(MemoryIndexBackend()),
        editors=editors,
        discoverer=scan_editors,
    )


class TestScenario:
    def test_duplicate_is_migrated_to_one_stored_copy(self, scenario_hub, make_plugin, editor_dirs):
        vscode_copy = make_plugin(editor_dirs["vscode"])
        cursor_copy = make_plugin(editor_dirs["cursor"])
        one_copy = _unique_bytes(vscode_copy)

        inventories = scenario_hub.discover_installations()
        report = scenario_hub.analyze_duplicates(inventories)

        assert len(report.groups) == 1
        group = report.groups[0]
        assert group.plugin_unique_id == "ms-python.python"
        assert group.duplicate_count == 2
        assert not group.is_version_conflict

        plan = scenario_hub.create_optimization_plan(report)
        assert len(plan.actions) == 1
        action = plan.actions[0]
        assert action.kind == "migrate"

        before = _unique_bytes(editor_dirs["vscode"], editor_dirs["cursor"], scenario_hub.store.root)
        assert before == 2 * one_copy

        result = scenario_hub.execute_plan(plan)

        object_path = scenario_hub.index.get("ms-python.python").store_path
        assert scenario_hub.is_linked(action.target_path, object_path)
        assert scenario_hub.is_linked(vscode_copy, object_path)
        after = _unique_bytes(editor_dirs["vscode"], editor_dirs["cursor"], scenario_hub.store.root)
        assert after == one_copy
        assert result.space_saved == one_copy
        assert {vscode_copy.name} == set(os.listdir(editor_dirs["vscode"]))
        assert {cursor_copy.name} == set(os.listdir(editor_dirs["cursor"]))

    def test_second_scan_finds_nothing_to_do(self, hub, make_plugin, editor_dirs):
        make_plugin(editor_dirs["vscode"])
        make_plugin(editor_dirs["cursor"])
        report = hub.analyze_duplicates(hub.discover_installations())
        hub.execute_plan(hub.create_optimization_plan(report))

        report = hub.analyze_duplicates(hub.discover_installations())
        assert [i.is_linked for i in report.groups[0].instances] == [True, True]
        assert hub.create_optimization_plan(report).actions == []

    def test_gc_keeps_linked_objects(self, scenario_hub, make_plugin, editor_dirs):
        make_plugin(editor_dirs["vscode"])
        make_plugin(editor_dirs["cursor"])
        report = scenario_hub.analyze_duplicates(scenario_hub.discover_installations())
        scenario_hub.execute_plan(scenario_hub.create_optimization_plan(report))

        scenario_hub.index.clear()
        assert scenario_hub.garbage_collect_store() == 0
        assert len(scenario_hub.store.list_objects()) == 1


class TestPluginOperations:
    def test_add_plugin_indexes_object(self, hub, make_plugin, tmp_path):
        source = make_plugin(tmp_path / "src")
        plugin = read_plugin_manifest(source)

        stored = hub.add_plugin(plugin)

        assert stored.source == PluginSource.LINKED
        assert Path(stored.store_path).parent == hub.store.objects_root
        assert hub.index.get("ms-python.python").store_path == stored.store_path

    def test_link_plugin_stores_then_links(self, hub, make_plugin, tmp_path, editors):
        plugin = read_plugin_manifest(make_plugin(tmp_path / "src"))
        cursor = hub.get_editor("cursor")

        assert hub.link_plugin(plugin, cursor) == LinkKind.SYMLINK
        assert hub.is_plugin_linked(plugin, cursor)
        assert (Path(cursor.expanded_path) / "ms-python.python" / "package.json").exists()

    def test_link_over_real_install_needs_overwrite(self, hub, make_plugin, editor_dirs, tmp_path):
        plugin = read_plugin_manifest(make_plugin(tmp_path / "src"))
        make_plugin(editor_dirs["cursor"], folder="ms-python.python", version="0.1.0")
        cursor = hub.get_editor("cursor")

        assert hub.link_status(plugin, cursor) == LinkStatus.DIRECT_INSTALL
        with pytest.raises(TargetAlreadyExists):
            hub.link_plugin(plugin, cursor)
        hub.link_plugin(plugin, cursor, overwrite=True)
        assert hub.link_status(plugin, cursor) == LinkStatus.LINKED

    def test_link_plugins_partial_failure(self, hub, make_plugin, tmp_path):
        good = read_plugin_manifest(make_plugin(tmp_path / "src"))
        orphan = Plugin(publisher_id="ghost", extension_id="missing")
        vscode = hub.get_editor("vscode")

        with pytest.raises(BatchPartialFailure) as exc_info:
            hub.link_plugins([orphan, good], vscode)

        assert exc_info.value.count == 1
        assert isinstance(exc_info.value.errors[0], PluginNotInStore)
        assert set(exc_info.value.result) == {"ms-python.python"}
        assert hub.is_plugin_linked(good, vscode)

    def test_unlink_plugin(self, hub, make_plugin, tmp_path):
        plugin = read_plugin_manifest(make_plugin(tmp_path / "src"))
        cursor = hub.get_editor("cursor")
        hub.link_plugin(plugin, cursor)

        assert hub.unlink_plugins([plugin], cursor) == ["ms-python.python"]
        assert hub.link_status(plugin, cursor) == LinkStatus.NOT_LINKED
        assert hub.unlink_plugin(plugin, cursor) is False

    def test_unlink_leaves_real_installs(self, hub, make_plugin, editor_dirs):
        target = make_plugin(editor_dirs["cursor"], folder="ms-python.python")
        plugin = read_plugin_manifest(target)

        assert hub.unlink_plugin(plugin, hub.get_editor("cursor")) is False
        assert target.is_dir()

    def test_remove_plugin_collects_unused_object(self, hub, make_plugin, tmp_path):
        plugin = hub.add_plugin(read_plugin_manifest(make_plugin(tmp_path / "src")))

        assert hub.remove_plugin(plugin) == 1
        assert hub.store.list_objects() == []
        assert "ms-python.python" not in hub.index

    def test_remove_plugin_keeps_object_still_linked(self, hub, make_plugin, tmp_path):
        plugin = read_plugin_manifest(make_plugin(tmp_path / "src"))
        hub.link_plugin(plugin, hub.get_editor("cursor"))

        assert hub.remove_plugin(plugin) == 0
        assert len(hub.store.list_objects()) == 1

    def test_remove_plugin_not_in_store(self, hub):
        with pytest.raises(PluginNotInStore):
            hub.remove_plugin(Plugin(publisher_id="a", extension_id="b"))

    def test_clear_store(self, hub, make_plugin, tmp_path):
        hub.add_plugin(read_plugin_manifest(make_plugin(tmp_path / "src")))
        assert hub.total_size() > 0

        hub.clear_store()
        assert hub.total_size() == 0
        assert len(hub.index) == 0


class TestFromSettings:
    def test_builds_from_settings(self, test_settings, editor_dirs):
        hub = PluginHub.from_settings(test_settings)

        assert hub.store.root == test_settings.store_root
        assert hub.links.enable_symlinks is True
        assert [e.id for e in hub.enabled_editors] == ["vscode", "cursor"]
        assert hub.get_editor("cursor").expanded_path == str(editor_dirs["cursor"])

    def test_unknown_editor(self, hub):
        with pytest.raises(ValueError):
            hub.get_editor("notepad")

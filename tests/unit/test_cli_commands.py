"""Tests for CLI commands (config, store, link, optimize)."""

import json
import os
from unittest.mock import patch

import pytest

from pluginhub.cli import _config_get, _config_set, _config_show, main
from pluginhub.config import _load_yaml_config, save_yaml_config


@pytest.fixture
def home(tmp_path):
    home_path = tmp_path / "home"
    home_path.mkdir()
    return home_path


@pytest.fixture
def cli_hub(hub):
    with patch("pluginhub.cli._get_hub", return_value=hub), patch("pluginhub.cli.setup_logging"):
        yield hub


class TestConfigSetGet:
    def test_set_and_get_port(self, home, capsys):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            with patch.dict(os.environ, {}, clear=False):
                os.environ.pop("PLUGINHUB_PORT", None)
                _config_set("port", "7777")
                _config_get("port")

        out = capsys.readouterr().out
        assert "7777" in out

    def test_set_rejects_unknown_key(self, home):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            with pytest.raises(SystemExit):
                _config_set("unknown_key", "value")

    def test_set_converts_types(self, home):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            _config_set("port", "8888")
            _config_set("enable_symlinks", "false")
        config = _load_yaml_config(home)
        assert config["port"] == 8888
        assert config["enable_symlinks"] is False

    def test_set_rejects_non_numeric_port(self, home):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            with pytest.raises(SystemExit):
                _config_set("hash_chunk_size", "big")

    def test_get_env_override(self, home, capsys):
        save_yaml_config(home, {"port": 3333})
        with patch("pluginhub.cli._resolve_home", return_value=home):
            with patch.dict(os.environ, {"PLUGINHUB_PORT": "9999"}):
                _config_get("port")
        assert "9999" in capsys.readouterr().out

    def test_get_nonexistent_key(self, home):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            with pytest.raises(SystemExit):
                _config_get("nonexistent")

    def test_show_empty_config(self, home, capsys):
        with patch("pluginhub.cli._resolve_home", return_value=home):
            _config_show()
        assert "empty" in capsys.readouterr().out

    def test_show_with_values(self, home, capsys):
        save_yaml_config(home, {"port": 3333, "store_path": "/data/store"})
        with patch("pluginhub.cli._resolve_home", return_value=home):
            _config_show()
        out = capsys.readouterr().out
        assert "3333" in out
        assert "/data/store" in out


class TestScanAndOptimize:
    def test_scan_lists_plugins(self, cli_hub, make_plugin, editor_dirs, capsys):
        make_plugin(editor_dirs["cursor"], name="pylance")

        main(["scan"])

        out = capsys.readouterr().out
        assert "Cursor: 1 plugins" in out
        assert "ms-python.pylance" in out

    def test_duplicates_json(self, cli_hub, make_plugin, editor_dirs, capsys):
        make_plugin(editor_dirs["vscode"])
        make_plugin(editor_dirs["cursor"])

        main(["duplicates", "--json"])

        report = json.loads(capsys.readouterr().out)
        assert report["total_duplicates"] == 1
        assert report["groups"][0]["plugin_unique_id"] == "ms-python.python"

    def test_no_duplicates(self, cli_hub, capsys):
        main(["duplicates"])
        assert "No duplicate plugins found" in capsys.readouterr().out

    def test_optimize_dry_run_changes_nothing(self, cli_hub, make_plugin, editor_dirs, capsys):
        make_plugin(editor_dirs["vscode"])
        cursor_copy = make_plugin(editor_dirs["cursor"])

        main(["optimize", "--dry-run"])

        assert "Dry run" in capsys.readouterr().out
        assert not os.path.islink(cursor_copy)
        assert cli_hub.store.list_objects() == []

    def test_optimize_links_duplicates(self, cli_hub, make_plugin, editor_dirs, capsys):
        make_plugin(editor_dirs["vscode"])
        cursor_copy = make_plugin(editor_dirs["cursor"])

        main(["optimize"])

        assert "Done: 2/2 actions" in capsys.readouterr().out
        assert os.path.islink(cursor_copy)

        main(["optimize"])
        assert "Nothing to optimize" in capsys.readouterr().out


class TestStoreAndLinkCommands:
    def test_ingest_indexes_plugin(self, cli_hub, make_plugin, tmp_path, capsys):
        source = make_plugin(tmp_path / "src")

        main(["store", "ingest", str(source)])

        assert "Indexed ms-python.python" in capsys.readouterr().out
        assert "ms-python.python" in cli_hub.index

    def test_link_status_unlink(self, cli_hub, make_plugin, tmp_path, capsys):
        source = make_plugin(tmp_path / "src")

        main(["link", str(source), "--editor", "cursor"])
        main(["status", "ms-python.python", "--editor", "cursor"])
        main(["unlink", "ms-python.python", "--editor", "cursor"])
        main(["status", "ms-python.python", "--editor", "cursor"])

        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "Linked ms-python.python into Cursor (symlink)"
        assert lines[1] == "linked"
        assert lines[2] == "Unlinked ms-python.python from Cursor"
        assert lines[3] == "not_linked"

    def test_link_over_install_needs_force(self, cli_hub, make_plugin, editor_dirs, tmp_path, capsys):
        source = make_plugin(tmp_path / "src")
        make_plugin(editor_dirs["cursor"], folder="ms-python.python")

        with pytest.raises(SystemExit):
            main(["link", str(source), "--editor", "cursor"])
        assert "Plugin Already Installed" in capsys.readouterr().out

        main(["link", str(source), "--editor", "cursor", "--force"])
        assert os.path.islink(editor_dirs["cursor"] / "ms-python.python")

    def test_bad_plugin_id(self, cli_hub):
        with pytest.raises(SystemExit):
            main(["status", "nodot", "--editor", "cursor"])

    def test_unknown_editor(self, cli_hub, capsys):
        with pytest.raises(SystemExit):
            main(["status", "a.b", "--editor", "notepad"])
        assert "Unknown editor" in capsys.readouterr().out

    def test_gc_and_clear(self, cli_hub, make_plugin, tmp_path, capsys):
        cli_hub.ensure_stored_copy(make_plugin(tmp_path / "src"))

        main(["store", "gc"])
        assert "Removed 1 unreferenced objects" in capsys.readouterr().out

        cli_hub.ensure_stored_copy(make_plugin(tmp_path / "src2"))
        with patch("builtins.input", return_value="n"):
            main(["store", "clear"])
        assert "Aborted" in capsys.readouterr().out
        assert len(cli_hub.store.list_objects()) == 1

        main(["store", "clear", "--yes"])
        assert cli_hub.store.list_objects() == []

    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage: pluginhub" in capsys.readouterr().out

"""
PluginHub CLI.

Usage:
    pluginhub scan                           # List plugins per editor
    pluginhub duplicates [--json]            # Duplicate report + suggestions
    pluginhub optimize [--dry-run]           # Link duplicates to the store
    pluginhub optimize --include-conflicts   # ...including version conflicts
    pluginhub store info                     # Store location, objects, size
    pluginhub store ingest PATH [--id ID]    # Store a plugin directory
    pluginhub store gc                       # Remove unreferenced objects
    pluginhub store clear [--yes]            # Delete everything in the store
    pluginhub link PATH --editor TYPE        # Link a plugin folder into an editor
    pluginhub unlink ID --editor TYPE        # Remove a plugin link from an editor
    pluginhub status ID --editor TYPE        # Link status of a plugin in an editor
    pluginhub config show                    # Show current config
    pluginhub config set KEY VALUE           # Set a config value
    pluginhub config get KEY                 # Get a config value
    pluginhub server                         # Run the HTTP API in the foreground
"""

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from pluginhub.config import (
    CONFIG_KEYS,
    ENV_PREFIX,
    _load_yaml_config,
    _resolve_home,
    get_config_path,
    get_settings,
    save_yaml_config,
)
from pluginhub.core.errors import BatchPartialFailure, PluginHubError
from pluginhub.core.hub import PluginHub
from pluginhub.discovery import read_plugin_manifest
from pluginhub.lib.fs_utils import format_size
from pluginhub.lib.logger import setup_logging
from pluginhub.lib.typed_errors import parse_error
from pluginhub.models.plan import MigrateInstanceAction
from pluginhub.models.plugin import Plugin, PluginIdentity

_INT_KEYS = {"port", "hash_chunk_size"}
_BOOL_KEYS = {"enable_symlinks", "debug"}


# --- Helpers ---


def _get_hub() -> PluginHub:
    return PluginHub.from_settings(get_settings())


def _print_error(error: Exception) -> None:
    typed = parse_error(error)
    print(f"Error: {typed.title}")
    print(f"  {error}")
    if typed.details:
        for detail in typed.details:
            print(f"  - {detail}")
    for action in typed.actions:
        print(f"  [{action.key}] {action.label}")


def _plugin_from_id(unique_id: str) -> Plugin:
    identity = PluginIdentity.parse(unique_id)
    return Plugin(publisher_id=identity.publisher_id, extension_id=identity.extension_id)


def _progress_printer(prefix: str):
    def _report(fraction: float) -> None:
        print(f"\r{prefix} {fraction * 100:5.1f}%", end="", flush=True)
        if fraction >= 1:
            print()

    return _report


# --- Scan / duplicates / optimize ---


def cmd_scan(args: argparse.Namespace) -> None:
    """List discovered plugins for every enabled editor."""
    hub = _get_hub()
    inventories = hub.discover_installations()

    for editor in hub.enabled_editors:
        plugins = inventories.get(editor.id)
        if plugins is None:
            print(f"\n{editor.name}: not found ({editor.expanded_path})")
            continue
        print(f"\n{editor.name}: {len(plugins)} plugins ({editor.expanded_path})")
        for plugin in plugins:
            status = hub.link_status(plugin, editor).value
            print(f"  {plugin.unique_id:<50} {plugin.version or '-':<12} {status}")


def cmd_duplicates(args: argparse.Namespace) -> None:
    hub = _get_hub()
    report = hub.analyze_duplicates(hub.discover_installations())

    if args.json:
        print(report.model_dump_json(indent=2))
        return

    if not report.groups:
        print("No duplicate plugins found.")
        return

    print(f"\n{len(report.groups)} duplicated plugins, {format_size(report.wasted_space)} reclaimable")
    print("-" * 40)
    for group in report.groups:
        conflict = " (version conflict)" if group.is_version_conflict else ""
        print(f"  {group.display_name} [{group.plugin_unique_id}]{conflict}")
        for instance in group.instances:
            linked = " -> store" if instance.is_linked else ""
            print(
                f"    {instance.editor_name:<18} {instance.version or '-':<12} "
                f"{format_size(instance.size_bytes or 0):>10}{linked}"
            )

    suggestions = hub.generate_suggestions(report)
    if suggestions:
        print("\nSuggestions:")
        for line in suggestions:
            print(f"  - {line}")


def cmd_optimize(args: argparse.Namespace) -> None:
    hub = _get_hub()
    report = hub.analyze_duplicates(hub.discover_installations())
    plan = hub.create_optimization_plan(
        report, include_version_conflicts=args.include_conflicts, cleanup=True
    )

    migrations = [a for a in plan.actions if isinstance(a, MigrateInstanceAction)]
    if not migrations:
        print("Nothing to optimize.")
        return

    print(f"\nPlan: {len(plan.actions)} actions, saves ~{format_size(plan.estimated_space_saved)}")
    for action in plan.actions:
        print(f"  {action.describe()}")

    if args.dry_run:
        print("\nDry run: no changes made.")
        return

    try:
        result = hub.execute_plan(plan, on_progress=_progress_printer("Optimizing"))
    except BatchPartialFailure as e:
        _print_error(e)
        sys.exit(1)
    print(f"Done: {result.completed}/{result.total} actions, {format_size(result.space_saved)} freed")


# --- Store ---


def cmd_store(args: argparse.Namespace) -> None:
    """Store management: info, ingest, gc, clear."""
    action = getattr(args, "action", None)

    if action == "info":
        _store_info()
    elif action == "ingest":
        _store_ingest(args.path, args.id)
    elif action == "gc":
        _store_gc()
    elif action == "clear":
        _store_clear(args.yes)
    else:
        print("Usage: pluginhub store {info|ingest|gc|clear}")


def _store_info() -> None:
    hub = _get_hub()
    objects = hub.store.list_objects()
    print(f"\nStore: {hub.store.root}")
    print("-" * 40)
    print(f"  objects: {len(objects)}")
    print(f"  size:    {format_size(hub.total_size())}")
    print(f"  indexed: {len(hub.index)}")
    for unique_id, record in hub.index.items():
        digest = hub.store.digest_of(record.store_path) or "?"
        print(f"    {unique_id:<50} {record.version or '-':<12} {digest[:12]}")


def _store_ingest(path: str, unique_id: Optional[str]) -> None:
    hub = _get_hub()
    if unique_id:
        plugin = _plugin_from_id(unique_id).model_copy(update={"installed_path": path})
    else:
        plugin = read_plugin_manifest(Path(path).expanduser())

    if plugin is None:
        object_path = hub.ensure_stored_copy(path)
    else:
        object_path = hub.add_plugin(plugin, path).store_path
        print(f"Indexed {plugin.unique_id}")
    print(f"Stored {path} -> {object_path}")


def _store_gc() -> None:
    hub = _get_hub()
    staging = hub.store.cleanup_staging()
    removed = hub.garbage_collect_store()
    print(f"Removed {removed} unreferenced objects ({staging} staging entries)")


def _store_clear(confirmed: bool) -> None:
    hub = _get_hub()
    if not confirmed:
        answer = input(f"Delete everything under {hub.store.root}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return
    hub.clear_store()
    print("Store cleared.")


# --- Link commands ---


def cmd_link(args: argparse.Namespace) -> None:
    hub = _get_hub()
    editor = hub.get_editor(args.editor)
    plugin = read_plugin_manifest(Path(args.path).expanduser())
    if plugin is None:
        print(f"Error: no package.json found in {args.path}")
        sys.exit(1)

    kind = hub.link_plugin(plugin, editor, overwrite=args.force)
    print(f"Linked {plugin.unique_id} into {editor.name} ({kind.value})")


def cmd_unlink(args: argparse.Namespace) -> None:
    hub = _get_hub()
    editor = hub.get_editor(args.editor)
    plugin = _plugin_from_id(args.id)
    if hub.unlink_plugin(plugin, editor):
        print(f"Unlinked {plugin.unique_id} from {editor.name}")
    else:
        print(f"{plugin.unique_id} is not linked in {editor.name}")


def cmd_status(args: argparse.Namespace) -> None:
    hub = _get_hub()
    editor = hub.get_editor(args.editor)
    plugin = _plugin_from_id(args.id)
    print(hub.link_status(plugin, editor).value)


# --- Config ---


def cmd_config(args: argparse.Namespace) -> None:
    """Config management: show, set, get."""
    action = getattr(args, "action", None)

    if action == "show":
        _config_show()
    elif action == "set":
        _config_set(args.key, args.value)
    elif action == "get":
        _config_get(args.key)
    else:
        print("Usage: pluginhub config {show|set|get}")


def _config_show() -> None:
    """Show current config with env overrides noted."""
    home = _resolve_home()
    config = _load_yaml_config(home)

    print(f"\nConfig: {get_config_path(home)}")
    print("-" * 40)

    if not config:
        print("  (empty, defaults in effect)")
        return

    for key, value in config.items():
        env_name = f"{ENV_PREFIX}{key.upper()}"
        override = f" (overridden by env: {env_name})" if os.environ.get(env_name) else ""
        print(f"  {key}: {value}{override}")


def _config_set(key: str, value: str) -> None:
    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS))}")
        sys.exit(1)

    home = _resolve_home()
    config = _load_yaml_config(home)

    # Type conversion
    if key in _INT_KEYS:
        try:
            value = int(value)
        except ValueError:
            print(f"Error: {key} must be an integer, got '{value}'")
            sys.exit(1)
    elif key in _BOOL_KEYS:
        value = value.lower() in ("true", "1", "yes")

    config[key] = value
    save_yaml_config(home, config)
    print(f"Set {key} = {value}")


def _config_get(key: str) -> None:
    home = _resolve_home()
    config = _load_yaml_config(home)

    env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
    if env_val:
        print(env_val)
        return

    if key in config:
        print(config[key])
    else:
        print(f"Key '{key}' not set in config.yaml")
        sys.exit(1)


def cmd_server(args: argparse.Namespace) -> None:
    from pluginhub.server import main as server_main

    server_main()


# --- Entry point ---


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="pluginhub",
        description="Deduplicate editor extensions through one content-addressed store",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("scan", help="List plugins per editor")

    duplicates_parser = subparsers.add_parser("duplicates", help="Show duplicated plugins")
    duplicates_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    optimize_parser = subparsers.add_parser("optimize", help="Link duplicates to the store")
    optimize_parser.add_argument("--dry-run", action="store_true", help="Only print the plan")
    optimize_parser.add_argument(
        "--include-conflicts", action="store_true", help="Also migrate version-conflict groups"
    )

    store_parser = subparsers.add_parser("store", help="Store management")
    store_sub = store_parser.add_subparsers(dest="action")
    store_sub.add_parser("info", help="Show store contents")
    ingest_parser = store_sub.add_parser("ingest", help="Store a plugin directory")
    ingest_parser.add_argument("path", help="Plugin directory or file")
    ingest_parser.add_argument("--id", help="publisher.name to index it under")
    store_sub.add_parser("gc", help="Remove unreferenced objects")
    clear_parser = store_sub.add_parser("clear", help="Delete everything in the store")
    clear_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    link_parser = subparsers.add_parser("link", help="Link a plugin folder into an editor")
    link_parser.add_argument("path", help="Plugin folder containing package.json")
    link_parser.add_argument("--editor", required=True, help="Editor type, e.g. cursor")
    link_parser.add_argument(
        "--force", action="store_true", help="Replace an existing installation"
    )

    unlink_parser = subparsers.add_parser("unlink", help="Remove a plugin link from an editor")
    unlink_parser.add_argument("id", help="publisher.name")
    unlink_parser.add_argument("--editor", required=True, help="Editor type")

    status_parser = subparsers.add_parser("status", help="Link status of a plugin")
    status_parser.add_argument("id", help="publisher.name")
    status_parser.add_argument("--editor", required=True, help="Editor type")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show current config")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    subparsers.add_parser("server", help="Run the HTTP API in the foreground")

    args = parser.parse_args(argv)

    commands = {
        "scan": cmd_scan,
        "duplicates": cmd_duplicates,
        "optimize": cmd_optimize,
        "store": cmd_store,
        "link": cmd_link,
        "unlink": cmd_unlink,
        "status": cmd_status,
        "config": cmd_config,
        "server": cmd_server,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return

    if args.command not in ("config", "server"):
        setup_logging(level="WARNING")

    try:
        handler(args)
    except PluginHubError as e:
        _print_error(e)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

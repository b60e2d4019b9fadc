"""
Optimization planning and execution.

A plan migrates every non-master duplicate onto a stored copy of the
master: ingest the master, then swap the duplicate for a link. The first
migration of a group also swaps the master itself, so only the stored
object keeps real bytes.
"""

import logging
import threading
from typing import Callable, Optional

from pluginhub.core.content_store import ContentStore
from pluginhub.core.errors import BatchPartialFailure, OperationCancelled
from pluginhub.core.link_engine import LinkEngine, LinkKind, LinkStatus
from pluginhub.core.plugin_index import PluginIndex
from pluginhub.lib.fs_utils import folder_size, format_size
from pluginhub.models.duplicates import DuplicateReport
from pluginhub.models.plan import (
    ActionFailure,
    CleanupAction,
    ExecutionResult,
    MigrateInstanceAction,
    Plan,
    RemoveAction,
)
from pluginhub.models.plugin import PluginSource

logger = logging.getLogger(__name__)

SECONDS_PER_ACTION = 0.5

ProgressCallback = Callable[[float], None]


class OptimizationPlanner:
    def __init__(
        self,
        store: ContentStore,
        links: LinkEngine,
        index: Optional[PluginIndex] = None,
    ):
        self.store = store
        self.links = links
        self.index = index

    def create_plan(
        self,
        report: DuplicateReport,
        include_version_conflicts: bool = False,
        cleanup: bool = False,
    ) -> Plan:
        """Build the ordered action list for a report.

        Version-conflict groups are skipped unless explicitly included;
        picking a version is the user's call.
        """
        actions = []
        saved = 0
        for group in report.groups:
            if group.is_version_conflict and not include_version_conflicts:
                logger.debug(f"Skipping version conflict {group.plugin_unique_id}")
                continue
            master = group.master
            if master is None:
                continue
            others = group.instances[1:]
            pending = [i for i in others if not i.is_linked]
            # A linked copy means the object is already in the store
            object_stored = any(i.is_linked for i in others)
            if not pending and not master.is_linked and object_stored:
                pending = [master]

            for position, instance in enumerate(pending):
                actions.append(
                    MigrateInstanceAction(
                        plugin_unique_id=group.plugin_unique_id,
                        source_path=master.path,
                        target_path=instance.path,
                        editor_id=instance.editor_id,
                        version=master.version,
                        size_bytes=instance.size_bytes or 0,
                        relink_source=position == 0 and not master.is_linked,
                    )
                )
                saved += instance.size_bytes or 0
            if pending and pending[0] is not master and not master.is_linked and object_stored:
                saved += master.size_bytes or 0

        if cleanup:
            actions.append(CleanupAction())

        return Plan(
            actions=actions,
            estimated_space_saved=saved,
            estimated_time=len(actions) * SECONDS_PER_ACTION,
        )

    def execute_plan(
        self,
        plan: Plan,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionResult:
        """Run every action in order, continuing past failures.

        Raises BatchPartialFailure after the last action if any failed, and
        OperationCancelled if cancel_event is set between actions.
        """
        total = len(plan.actions)
        result = ExecutionResult(total=total)
        errors: list[Exception] = []

        for position, action in enumerate(plan.actions):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Plan cancelled after {position} of {total} actions")
                raise OperationCancelled(f"Plan cancelled after {position} of {total} actions")

            try:
                freed = self._run(action, cancel_event)
            except OperationCancelled:
                raise
            except Exception as e:
                logger.error(f"Action {position + 1}/{total} failed ({action.describe()}): {e}")
                errors.append(e)
                result.failures.append(
                    ActionFailure(
                        index=position,
                        kind=action.kind,
                        plugin_unique_id=getattr(action, "plugin_unique_id", None),
                        error=str(e),
                    )
                )
            else:
                result.completed += 1
                result.space_saved += freed

            if on_progress is not None:
                on_progress((position + 1) / total)

        logger.info(
            f"Plan finished: {result.completed}/{total} actions, "
            f"{format_size(result.space_saved)} saved"
        )
        if errors:
            raise BatchPartialFailure(errors, result)
        return result

    def _run(self, action, cancel_event: Optional[threading.Event]) -> int:
        """Execute one action. Returns the net bytes it freed on disk."""
        if isinstance(action, MigrateInstanceAction):
            return self._migrate(action, cancel_event)
        if isinstance(action, RemoveAction):
            self.links.remove_link(action.target_path)
        elif isinstance(action, CleanupAction):
            self.store.cleanup_staging()
        else:
            raise TypeError(f"Unknown plan action: {action!r}")
        return 0

    def _migrate(self, action: MigrateInstanceAction, cancel_event: Optional[threading.Event]) -> int:
        stored_before = set(self.store.list_objects())
        object_path = self.store.ensure_stored_copy(action.source_path, cancel_event)
        added = 0
        if object_path.name not in stored_before:
            added = folder_size(object_path, include_hidden=True)

        # The master goes first so that no real copy of it outlives the migration
        paths = [action.target_path]
        if action.relink_source and action.source_path != action.target_path:
            paths.insert(0, action.source_path)

        freed = 0
        for path in paths:
            if self.links.link_status(path, object_path) == LinkStatus.LINKED:
                continue
            size = folder_size(path, include_hidden=True)
            kind = self.links.replace_with_link(object_path, path)
            if kind != LinkKind.RAW_COPY:
                freed += size

        if self.index is not None:
            self.index.record(
                action.plugin_unique_id,
                object_path,
                version=action.version,
                source=PluginSource.LINKED,
            )
        return freed - added

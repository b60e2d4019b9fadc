"""
Pydantic models for PluginHub.
"""

from pluginhub.models.duplicates import DuplicateGroup, DuplicateReport
from pluginhub.models.editor import Editor, EditorType, default_editors
from pluginhub.models.plan import (
    Action,
    ActionFailure,
    CleanupAction,
    ExecutionResult,
    MigrateInstanceAction,
    Plan,
    RemoveAction,
)
from pluginhub.models.plugin import (
    IndexRecord,
    Installation,
    Plugin,
    PluginIdentity,
    PluginSource,
)

__all__ = [
    "Action",
    "ActionFailure",
    "CleanupAction",
    "DuplicateGroup",
    "DuplicateReport",
    "Editor",
    "EditorType",
    "ExecutionResult",
    "IndexRecord",
    "Installation",
    "MigrateInstanceAction",
    "Plan",
    "Plugin",
    "PluginIdentity",
    "PluginSource",
    "RemoveAction",
    "default_editors",
]

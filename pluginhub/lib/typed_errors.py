"""
Typed errors for user-facing error reporting.

Store, link and plan failures are raised as PluginHubError subclasses inside
the core. The CLI and HTTP API convert them (or any other exception) into a
TypedError carrying a stable code, a user-friendly message and suggested
recovery actions.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    # Store errors
    SOURCE_NOT_FOUND = "source_not_found"
    STORE_WRITE_FAILURE = "store_write_failure"
    PLUGIN_NOT_IN_STORE = "plugin_not_in_store"

    # Link errors
    TARGET_ALREADY_EXISTS = "target_already_exists"
    LINK_FAILED = "link_failed"

    # Batch errors
    BATCH_PARTIAL_FAILURE = "batch_partial_failure"

    OPERATION_CANCELLED = "operation_cancelled"

    # Generic
    PERMISSION_DENIED = "permission_denied"
    UNKNOWN_ERROR = "unknown_error"


class RecoveryAction(BaseModel):
    """A suggested recovery action for an error."""

    key: str = Field(description="Keyboard shortcut (single letter)")
    label: str = Field(description="Description of the action")
    action: Literal["retry", "confirm", "rescan", "settings", "dismiss"] = Field(
        description="Action type for handling"
    )


class TypedError(BaseModel):
    """A structured error with user-friendly info and recovery suggestions."""

    code: ErrorCode = Field(description="Error code for programmatic handling")
    title: str = Field(description="User-friendly title")
    message: str = Field(description="Detailed message explaining what went wrong")
    actions: list[RecoveryAction] = Field(
        default_factory=list, description="Suggested recovery actions"
    )
    can_retry: bool = Field(
        alias="canRetry", default=False, description="Whether retrying may succeed"
    )
    original_error: Optional[str] = Field(
        alias="originalError", default=None, description="Original error message"
    )
    details: Optional[list[str]] = Field(
        default=None, description="Per-item failures for batch operations"
    )

    model_config = {"populate_by_name": True}


ERROR_DEFINITIONS: dict[ErrorCode, dict[str, Any]] = {
    ErrorCode.SOURCE_NOT_FOUND: {
        "title": "Plugin Not Found",
        "message": "The plugin directory no longer exists. It may have been uninstalled.",
        "actions": [
            RecoveryAction(key="s", label="Rescan editors", action="rescan"),
        ],
        "can_retry": False,
    },
    ErrorCode.STORE_WRITE_FAILURE: {
        "title": "Store Write Failed",
        "message": "The plugin could not be copied into the store. The store was left unchanged.",
        "actions": [
            RecoveryAction(key="r", label="Retry", action="retry"),
            RecoveryAction(key="c", label="Check store location", action="settings"),
        ],
        "can_retry": True,
    },
    ErrorCode.PLUGIN_NOT_IN_STORE: {
        "title": "Plugin Not Stored",
        "message": "The plugin has no copy in the store and no installed path to store from.",
        "actions": [
            RecoveryAction(key="s", label="Rescan editors", action="rescan"),
        ],
        "can_retry": False,
    },
    ErrorCode.TARGET_ALREADY_EXISTS: {
        "title": "Plugin Already Installed",
        "message": "The editor already has a real installation at this location. Confirm to replace it.",
        "actions": [
            RecoveryAction(key="y", label="Replace installation", action="confirm"),
            RecoveryAction(key="d", label="Dismiss", action="dismiss"),
        ],
        "can_retry": False,
    },
    ErrorCode.LINK_FAILED: {
        "title": "Link Failed",
        "message": "The plugin could not be linked, hard-linked or copied into the editor.",
        "actions": [
            RecoveryAction(key="r", label="Retry", action="retry"),
            RecoveryAction(key="c", label="Check link settings", action="settings"),
        ],
        "can_retry": True,
    },
    ErrorCode.BATCH_PARTIAL_FAILURE: {
        "title": "Some Operations Failed",
        "message": "Part of the batch completed. Failed items were left as they were.",
        "actions": [
            RecoveryAction(key="r", label="Retry failed items", action="retry"),
            RecoveryAction(key="d", label="Dismiss", action="dismiss"),
        ],
        "can_retry": True,
    },
    ErrorCode.OPERATION_CANCELLED: {
        "title": "Cancelled",
        "message": "The operation was cancelled before it finished.",
        "actions": [
            RecoveryAction(key="r", label="Run again", action="retry"),
        ],
        "can_retry": True,
    },
    ErrorCode.PERMISSION_DENIED: {
        "title": "Permission Denied",
        "message": "PluginHub is not allowed to write to one of the directories involved.",
        "actions": [
            RecoveryAction(key="c", label="Check settings", action="settings"),
        ],
        "can_retry": False,
    },
    ErrorCode.UNKNOWN_ERROR: {
        "title": "Error",
        "message": "An unexpected error occurred.",
        "actions": [
            RecoveryAction(key="r", label="Retry", action="retry"),
        ],
        "can_retry": True,
    },
}


def parse_error(error: Exception | str) -> TypedError:
    """
    Parse an error and return a typed error with user-friendly info.

    PluginHubError subclasses map directly through their code; other
    exceptions fall back to message matching.
    """
    # Imported here to keep lib free of core imports at module load
    from pluginhub.core.errors import BatchPartialFailure, PluginHubError

    details: Optional[list[str]] = None

    if isinstance(error, Exception):
        error_message = str(error)
        original_error = f"{type(error).__name__}: {error_message}"
    else:
        error_message = str(error)
        original_error = error_message

    if isinstance(error, PluginHubError):
        code = error.code
        if isinstance(error, BatchPartialFailure):
            details = [str(e) for e in error.errors]
    elif isinstance(error, PermissionError):
        code = ErrorCode.PERMISSION_DENIED
    elif isinstance(error, FileNotFoundError):
        code = ErrorCode.SOURCE_NOT_FOUND
    else:
        lower_message = error_message.lower()
        code = ErrorCode.UNKNOWN_ERROR
        if "permission denied" in lower_message:
            code = ErrorCode.PERMISSION_DENIED
        elif "no such file" in lower_message or "not found" in lower_message:
            code = ErrorCode.SOURCE_NOT_FOUND
        elif "cross-device" in lower_message:
            code = ErrorCode.LINK_FAILED

    definition = ERROR_DEFINITIONS[code]

    return TypedError(
        code=code,
        title=definition["title"],
        message=definition["message"],
        actions=definition["actions"],
        can_retry=definition.get("can_retry", False),
        original_error=original_error,
        details=details,
    )

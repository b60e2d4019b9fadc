"""
Exceptions raised by the store, link engine and planner.
"""

from pathlib import Path
from typing import Optional, Sequence

from pluginhub.lib.typed_errors import ErrorCode


class PluginHubError(Exception):
    """Base class for all PluginHub errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, path: Optional[Path | str] = None):
        self.path = str(path) if path is not None else None
        super().__init__(message)


class SourceNotFound(PluginHubError):
    """Ingest or link source does not exist."""

    code = ErrorCode.SOURCE_NOT_FOUND

    def __init__(self, path: Path | str):
        super().__init__(f"Source path does not exist: {path}", path)


class StoreWriteFailure(PluginHubError):
    """Copying or renaming into the store failed for a reason other than a lost race."""

    code = ErrorCode.STORE_WRITE_FAILURE


class PluginNotInStore(PluginHubError):
    code = ErrorCode.PLUGIN_NOT_IN_STORE

    def __init__(self, unique_id: str):
        self.unique_id = unique_id
        super().__init__(f"Plugin not in store: {unique_id}")


class TargetAlreadyExists(PluginHubError):
    """Target holds a real, non-empty installation; replacing it needs confirmation."""

    code = ErrorCode.TARGET_ALREADY_EXISTS

    def __init__(self, path: Path | str):
        super().__init__(f"Target already exists: {path}", path)


class LinkFailed(PluginHubError):
    code = ErrorCode.LINK_FAILED


class OperationCancelled(PluginHubError):
    code = ErrorCode.OPERATION_CANCELLED


class BatchPartialFailure(PluginHubError):
    """One or more items of a batch failed; the successful ones were kept."""

    code = ErrorCode.BATCH_PARTIAL_FAILURE

    def __init__(self, errors: Sequence[Exception], result: object = None):
        self.errors = list(errors)
        self.result = result
        super().__init__(f"Batch operation had {len(self.errors)} failures")

    @property
    def count(self) -> int:
        return len(self.errors)

"""
Optimization plan models.

Actions are a tagged union on `kind` so a plan can travel through the HTTP
API and be executed back unchanged.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class MigrateInstanceAction(BaseModel):
    """Store the master copy, then swap one duplicate for a link to it."""

    kind: Literal["migrate"] = "migrate"
    plugin_unique_id: str
    source_path: str
    target_path: str
    editor_id: str
    version: Optional[str] = None
    size_bytes: int = 0
    # Also swap source_path for a link once it is stored
    relink_source: bool = False

    def describe(self) -> str:
        if self.relink_source and self.source_path != self.target_path:
            return f"Link {self.plugin_unique_id} in {self.editor_id} and its master copy to the store"
        return f"Link {self.plugin_unique_id} in {self.editor_id} to the store"


class RemoveAction(BaseModel):
    kind: Literal["remove"] = "remove"
    plugin_unique_id: str
    target_path: str
    editor_id: str

    def describe(self) -> str:
        return f"Remove {self.plugin_unique_id} from {self.editor_id}"


class CleanupAction(BaseModel):
    kind: Literal["cleanup"] = "cleanup"

    def describe(self) -> str:
        return "Remove leftover staging entries from the store"


Action = Annotated[
    Union[MigrateInstanceAction, RemoveAction, CleanupAction],
    Field(discriminator="kind"),
]


class Plan(BaseModel):
    actions: list[Action] = Field(default_factory=list)
    estimated_space_saved: int = 0
    estimated_time: float = 0.0  # seconds, display only


class ActionFailure(BaseModel):
    index: int
    kind: str
    plugin_unique_id: Optional[str] = None
    error: str


class ExecutionResult(BaseModel):
    completed: int = 0
    total: int = 0
    space_saved: int = 0
    failures: list[ActionFailure] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

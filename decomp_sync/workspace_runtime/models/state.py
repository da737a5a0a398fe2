"""Canonical workspace state and persisted local state."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from pydantic import BaseModel, Field

from decomp_sync.workspace_runtime.models.config import ProjectConfig, Unit
from decomp_sync.workspace_runtime.models.preferences import ConfigProperties


class BuildStatus(BaseModel):
    """Outcome of building one side of the comparison."""

    success: bool
    cmdline: str = ""
    stdout: str = ""
    stderr: str = ""


@dataclass
class WorkspaceState:
    """Everything a view needs to render the comparison.

    Owned by ``StateBroadcaster``; mutated only through ``publish`` so that
    every change reaches connected views.  Field names double as the keys of
    the outbound ``state`` message.
    """

    build_running: bool = False
    config_properties: ConfigProperties = field(default_factory=dict)
    current_unit: Unit | None = None
    left_status: BuildStatus | None = None
    right_status: BuildStatus | None = None
    left_object: bytes | None = None
    right_object: bytes | None = None
    diff_output: bytes | None = None
    project_config: ProjectConfig | None = None
    view_state: dict[str, Any] = field(default_factory=dict)


STATE_FIELDS = frozenset(f.name for f in fields(WorkspaceState))


class PersistedState(BaseModel):
    """Per-workspace state restored across restarts."""

    current_unit: str | None = Field(default=None, description="Name of the last selected unit")
    view_state: dict[str, Any] = Field(default_factory=dict, description="Opaque view-local state (scroll, collapsed sections)")

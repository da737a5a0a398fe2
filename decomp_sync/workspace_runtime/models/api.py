"""HTTP request / response schemas.

These thin schemas sit between the HTTP surface and the workspace.  The view
protocol itself (``models/messages.py``) travels over
``/api/views/{view_id}/...``; everything here serves editor integrations and
the CLI.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from decomp_sync.workspace_runtime.models.config import Unit
from decomp_sync.workspace_runtime.models.messages import LineRange
from decomp_sync.workspace_runtime.models.preferences import ConfigProperties
from decomp_sync.workspace_runtime.models.state import BuildStatus

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


class UnitSummary(BaseModel):
    name: str
    target_path: str | None = None
    base_path: str | None = None
    source_path: str | None = None
    complete: bool | None = None
    auto_generated: bool = False

    @classmethod
    def from_unit(cls, unit: Unit) -> UnitSummary:
        metadata = unit.metadata
        return cls(
            name=unit.display_name,
            target_path=unit.target_path,
            base_path=unit.base_path,
            source_path=unit.source_path,
            complete=metadata.complete if metadata else None,
            auto_generated=unit.auto_generated,
        )


class UnitSelect(BaseModel):
    name: str = Field(description="Exact unit name")


class ResolveActiveResponse(BaseModel):
    resolved: bool
    unit: str | None = None


# ---------------------------------------------------------------------------
# Editor integration
# ---------------------------------------------------------------------------


class ActiveFileUpdate(BaseModel):
    """Reported by the editor integration whenever the focused document changes."""

    path: str | None = Field(default=None, description="Absolute path, or None when no editor is focused")
    scheme: str = "file"


class LineRangesResponse(BaseModel):
    ranges: list[LineRange] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class BuildResponse(BaseModel):
    accepted: bool = Field(description="False when a build was already running or preconditions failed")


class DispatchResponse(BaseModel):
    accepted: bool = Field(description="False when the message was malformed or its handler failed")


class CopySymbolRequest(BaseModel):
    symbol_name: str
    symbol_demangled_name: str | None = None
    demangled: bool = False


class CopySymbolResponse(BaseModel):
    text: str


class OpenSettingsResponse(BaseModel):
    path: str


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class StateSummary(BaseModel):
    """Workspace snapshot without object bytes."""

    config_loaded: bool
    build_running: bool
    current_unit: str | None = None
    left_status: BuildStatus | None = None
    right_status: BuildStatus | None = None
    left_object_size: int | None = None
    right_object_size: int | None = None
    diff_output_size: int | None = None
    config_properties: ConfigProperties = Field(default_factory=dict)
    view_count: int = 0
    log_file: str | None = Field(default=None, description="Target of the \"Show log\" notification action")

"""Data models for the workspace runtime."""

from decomp_sync.workspace_runtime.models.api import (
    ActiveFileUpdate,
    BuildResponse,
    CopySymbolRequest,
    CopySymbolResponse,
    DispatchResponse,
    LineRangesResponse,
    OpenSettingsResponse,
    ResolveActiveResponse,
    StateSummary,
    UnitSelect,
    UnitSummary,
)
from decomp_sync.workspace_runtime.models.config import (
    CONFIG_FILENAME,
    DEFAULT_WATCH_PATTERNS,
    ProgressCategory,
    ProjectConfig,
    Scratch,
    Unit,
    UnitMetadata,
)
from decomp_sync.workspace_runtime.models.enums import (
    ExecutorKind,
    FileChange,
    NotificationLevel,
    Side,
    TaskType,
)
from decomp_sync.workspace_runtime.models.messages import (
    NotificationMessage,
    PickUnitMessage,
    ProtocolError,
    StateMessage,
    ViewMessage,
    parse_view_message,
)
from decomp_sync.workspace_runtime.models.preferences import (
    CONFIG_SCHEMA,
    ConfigProperties,
    get_modified_config_properties,
)
from decomp_sync.workspace_runtime.models.state import BuildStatus, PersistedState, WorkspaceState

__all__ = [
    # Config
    "CONFIG_FILENAME",
    # Preferences
    "CONFIG_SCHEMA",
    "DEFAULT_WATCH_PATTERNS",
    # API schemas
    "ActiveFileUpdate",
    "BuildResponse",
    # State
    "BuildStatus",
    "ConfigProperties",
    "CopySymbolRequest",
    "CopySymbolResponse",
    "DispatchResponse",
    # Enums
    "ExecutorKind",
    "FileChange",
    "LineRangesResponse",
    "NotificationLevel",
    # Messages
    "NotificationMessage",
    "OpenSettingsResponse",
    "PersistedState",
    "PickUnitMessage",
    "ProgressCategory",
    "ProjectConfig",
    "ProtocolError",
    "ResolveActiveResponse",
    "Scratch",
    "Side",
    "StateMessage",
    "StateSummary",
    "TaskType",
    "Unit",
    "UnitMetadata",
    "UnitSelect",
    "UnitSummary",
    "ViewMessage",
    "WorkspaceState",
    "get_modified_config_properties",
    "parse_view_message",
]

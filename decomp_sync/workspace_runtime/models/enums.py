"""Shared enumerations used across the workspace runtime."""

from __future__ import annotations

from enum import StrEnum

# -- Build -------------------------------------------------------------------


class Side(StrEnum):
    """Which half of the comparison an artifact belongs to."""

    TARGET = "target"
    BASE = "base"


class TaskType(StrEnum):
    BUILD = "build"
    DIFF = "diff"


class ExecutorKind(StrEnum):
    """Task execution strategy."""

    CAPTURE = "capture"
    TERMINAL = "terminal"


# -- Notifications -------------------------------------------------------------


class NotificationLevel(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# -- File system ---------------------------------------------------------------


class FileChange(StrEnum):
    """Kind of workspace file-system event."""

    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"

"""User-facing notifications.

Every notification is logged at the matching level and broadcast to ready
views as a ``notification`` message.  Errors carry a "Show log" action which
views resolve against the log file reported by ``GET /api/state``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from decomp_sync.workspace_runtime.models.enums import NotificationLevel
from decomp_sync.workspace_runtime.models.messages import NotificationMessage

if TYPE_CHECKING:
    from decomp_sync.workspace_runtime.broadcaster import StateBroadcaster

NOTIFICATION_PREFIX = "decomp-sync: "
SHOW_LOG_ACTION = "Show log"


class PreconditionError(RuntimeError):
    """An operation was requested without what it needs (config, unit, editor).

    Advisory only: surfaced as a warning, never changes state.
    """


class Notifier:
    def __init__(self, broadcaster: StateBroadcaster) -> None:
        self._broadcaster = broadcaster

    def info(self, message: str, *actions: str) -> None:
        logger.opt(depth=1).info(message)
        self._send(NotificationLevel.INFO, message, list(actions))

    def warning(self, message: str, *actions: str) -> None:
        logger.opt(depth=1).warning(message)
        self._send(NotificationLevel.WARNING, message, list(actions))

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            logger.opt(depth=1, exception=exc).error("{}: {}", message, exc)
            message = f"{message}: {exc}"
        else:
            logger.opt(depth=1).error(message)
        self._send(NotificationLevel.ERROR, message, [SHOW_LOG_ACTION])

    def advise(self, exc: PreconditionError) -> None:
        self.warning(str(exc))

    def _send(self, level: NotificationLevel, message: str, actions: list[str]) -> None:
        self._broadcaster.broadcast(
            NotificationMessage(level=level, message=NOTIFICATION_PREFIX + message, actions=actions)
        )

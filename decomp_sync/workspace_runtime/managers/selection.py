"""Unit selection.

The selected unit lives in the broadcast state; its *name* is persisted so
the selection survives a restart.  Because the config may not be loaded yet
when persisted state is read, the restored name is kept as a *deferred*
selection and applied once, on the first config load that follows.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from decomp_sync.workspace_runtime.managers.editor import FILE_SCHEME, EditorState
from decomp_sync.workspace_runtime.managers.notifications import Notifier, PreconditionError
from decomp_sync.workspace_runtime.models.config import ProjectConfig, Unit

if TYPE_CHECKING:
    from decomp_sync.workspace_runtime.broadcaster import StateBroadcaster


class UnitSelector:
    def __init__(
        self,
        root: Path,
        *,
        broadcaster: StateBroadcaster,
        editor: EditorState,
        notifier: Notifier,
        persist: Callable[[str | None], None],
        request_build: Callable[[], object],
    ) -> None:
        self._root = root
        self._broadcaster = broadcaster
        self._editor = editor
        self._notifier = notifier
        self._persist = persist
        self._request_build = request_build
        self._deferred: str | None = None

    @property
    def current(self) -> Unit | None:
        return self._broadcaster.state.current_unit

    @property
    def deferred(self) -> str | None:
        return self._deferred

    def defer(self, name: str | None) -> None:
        self._deferred = name

    def set_current_unit(self, unit: Unit | None) -> None:
        """Select *unit* (or clear the selection) and rebuild if possible."""
        self._broadcaster.publish(current_unit=unit)
        self._persist(unit.name if unit else None)
        logger.info("Current unit: {}", unit.display_name if unit else None)
        if unit is not None and self._broadcaster.state.project_config is not None:
            self._request_build()

    def restore(self, config: ProjectConfig | None) -> Unit | None:
        """Apply the deferred selection against *config*, at most once."""
        if config is None or self._deferred is None:
            return None
        name, self._deferred = self._deferred, None
        unit = config.find_unit(name)
        if unit is None:
            logger.info("Persisted unit {} no longer exists", name)
            return None
        self._broadcaster.publish(current_unit=unit)
        logger.info("Restored unit {}", name)
        return unit

    def find_by_name(self, name: str) -> Unit | None:
        config = self._broadcaster.state.project_config
        return config.find_unit(name) if config else None

    def pickable_units(self) -> list[Unit]:
        config = self._broadcaster.state.project_config
        if config is None:
            return []
        return [unit for unit in config.units or [] if not unit.auto_generated]

    def resolve_from_active_file(self) -> bool:
        """Select the unit built from the editor's active file."""
        config = self._broadcaster.state.project_config
        if config is None:
            return False
        try:
            unit = self._unit_for_active_file(config)
        except PreconditionError as exc:
            self._notifier.advise(exc)
            return False
        self.set_current_unit(unit)
        return True

    def _unit_for_active_file(self, config: ProjectConfig) -> Unit:
        editor = self._editor
        if editor.active_file is None:
            msg = "No active editor"
            raise PreconditionError(msg)
        if editor.scheme != FILE_SCHEME:
            msg = "Active editor not a file"
            raise PreconditionError(msg)
        relative = editor.relative_to(self._root)
        if relative is None:
            msg = "Active editor not in workspace"
            raise PreconditionError(msg)
        unit = config.find_unit_by_source(relative)
        if unit is None:
            msg = f"No unit found for {relative}"
            raise PreconditionError(msg)
        return unit

"""Workspace -- wires the managers of one project together.

``Workspace`` owns every long-lived piece of a workspace:

- ``StateBroadcaster`` (canonical state + views)
- ``ConfigStore`` / ``PreferenceStore`` and their watchers
- ``FileChangeRouter`` (workspace tree watcher)
- ``UnitSelector`` / ``EditorState``
- ``BuildOrchestrator`` + ``DiffEngine``
- ``DebouncedWriter`` for persisted state

It also implements ``ViewCommandHandler`` so the broadcaster can route view
messages to it.  Watchers are registered on one ``AsyncExitStack`` and
released by ``close``, which runs once.

Builds requested by watchers and views run as tracked background tasks:
a request arriving while a build runs is dropped by the build guard rather
than queued.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from contextlib import AsyncExitStack
from functools import partial
from pathlib import Path
from typing import Any

import click
from anyio import to_thread
from loguru import logger
from pydantic import ValidationError

from decomp_sync.workspace_runtime.broadcaster import StateBroadcaster
from decomp_sync.workspace_runtime.execution.builder import BuildOrchestrator
from decomp_sync.workspace_runtime.execution.diff_engine import DiffEngine, workspace_hash
from decomp_sync.workspace_runtime.execution.executor import TaskExecutor, create_task_executor
from decomp_sync.workspace_runtime.log import current_log_file
from decomp_sync.workspace_runtime.managers.config_store import ConfigLoadError, ConfigStore
from decomp_sync.workspace_runtime.managers.editor import EditorState
from decomp_sync.workspace_runtime.managers.file_router import FileChangeRouter
from decomp_sync.workspace_runtime.managers.notifications import Notifier, PreconditionError
from decomp_sync.workspace_runtime.managers.preferences import (
    PreferenceStore,
    SettingsFileError,
    UnknownPropertyError,
    ensure_settings_file,
)
from decomp_sync.workspace_runtime.managers.selection import UnitSelector
from decomp_sync.workspace_runtime.models.api import StateSummary
from decomp_sync.workspace_runtime.models.config import ProjectConfig, Unit
from decomp_sync.workspace_runtime.models.enums import FileChange, TaskType
from decomp_sync.workspace_runtime.models.messages import SOURCE_UNIT, LineRange, PickUnitMessage
from decomp_sync.workspace_runtime.models.preferences import PropertyValue
from decomp_sync.workspace_runtime.models.state import PersistedState
from decomp_sync.workspace_runtime.settings import DecompSettings
from decomp_sync.workspace_runtime.store.base import StateStore
from decomp_sync.workspace_runtime.store.debounce import DebouncedWriter
from decomp_sync.workspace_runtime.store.local import LocalStateStore
from decomp_sync.workspace_runtime.watcher import FileWatcher, WatcherFactory


class Workspace:
    def __init__(
        self,
        root: Path,
        settings: DecompSettings,
        *,
        executor: TaskExecutor | None = None,
        store: StateStore | None = None,
        watcher_factory: WatcherFactory | None = FileWatcher,
        autobuild: bool = True,
    ) -> None:
        self.root = Path(root).resolve()
        self.settings = settings
        self.key = workspace_hash(self.root)

        self.broadcaster = StateBroadcaster()
        self.notifier = Notifier(self.broadcaster)
        self.editor = EditorState()

        self.executor = executor or create_task_executor(settings.executor, self.root)
        self.config_store = ConfigStore(self.root)
        self.preferences = PreferenceStore.for_workspace(self.root, settings.user_settings_path)
        self.builder = BuildOrchestrator(
            self.root,
            executor=self.executor,
            broadcaster=self.broadcaster,
            notifier=self.notifier,
            diff_engine=DiffEngine(self.executor, settings.storage_path, self.root),
        )
        self.selector = UnitSelector(
            self.root,
            broadcaster=self.broadcaster,
            editor=self.editor,
            notifier=self.notifier,
            persist=self._persist_unit,
            request_build=self.request_build,
        )
        self.router = FileChangeRouter(
            self.root,
            can_trigger=self.can_build,
            trigger=self.request_build,
            watcher_factory=watcher_factory,
        )

        self._watcher_factory = watcher_factory
        self._autobuild = autobuild
        self._store = store or LocalStateStore(settings.storage_path)
        self._writer = DebouncedWriter(self._store, self.key, delay=settings.debounce_delay)
        self._persisted = PersistedState()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._stack = AsyncExitStack()
        self._opened = False
        self._closed = False

        self.broadcaster.bind(self)

    # -- Lifecycle -------------------------------------------------------------

    async def open(self) -> Workspace:
        """Restore persisted state, load preferences and config, start watchers."""
        if self._opened:
            return self
        self._opened = True
        logger.info("Workspace {} opening (key={})", self.root, self.key)

        self._persisted = await self._read_persisted()
        self.selector.defer(self._persisted.current_unit)
        self.broadcaster.publish(view_state=dict(self._persisted.view_state))

        self._stack.push_async_callback(self.router.close)
        await self.reload_preferences()
        await self.reload_config()

        if self._watcher_factory is not None:
            config_watcher = self.config_store.watch(self._watcher_factory, self._on_config_file)
            await config_watcher.start()
            self._stack.push_async_callback(config_watcher.close)

            preference_watcher = self.preferences.watch(self._watcher_factory, self._on_settings_file)
            if preference_watcher is not None:
                await preference_watcher.start()
                self._stack.push_async_callback(preference_watcher.close)
        return self

    async def close(self, timeout: float | None = None) -> None:
        """Stop watchers, wait for background builds and flush persisted state."""
        if self._closed:
            return
        self._closed = True
        logger.info("Workspace {} closing (pending_tasks={})", self.root, len(self._tasks))
        try:
            await self._stack.aclose()
        finally:
            if not await self.wait_for_pending(timeout):
                logger.warning("Workspace {}: background tasks still running after {}s", self.root, timeout)
            await self._writer.close()
            self.broadcaster.close()

    async def __aenter__(self) -> Workspace:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def wait_for_pending(self, timeout: float | None = None) -> bool:
        """Wait for background tasks.  Returns False if *timeout* expired first."""
        try:
            async with asyncio.timeout(timeout):
                while self._tasks:
                    await asyncio.gather(*self._tasks, return_exceptions=True)
        except TimeoutError:
            return False
        return True

    # -- Reloads ---------------------------------------------------------------

    async def reload_config(self) -> ProjectConfig | None:
        """Reload ``objdiff.json``; on failure keep the previous config."""
        try:
            config = await self.config_store.load()
        except ConfigLoadError as exc:
            self.notifier.error("Failed to load configuration", exc)
            return self.config_store.config

        self.broadcaster.publish(project_config=config)
        await self.router.update_patterns(config.watch_patterns if config else None)
        self.selector.restore(config)
        if self._autobuild and self.can_build():
            self.request_build()
        return config

    async def reload_preferences(self) -> None:
        properties = await self.preferences.load()
        self.broadcaster.publish(config_properties=properties)
        if self._autobuild and self.can_build():
            self.request_build()

    async def _on_config_file(self, change: FileChange, path: Path) -> None:
        logger.debug("Config file {}: {}", change, path)
        await self.reload_config()

    async def _on_settings_file(self, change: FileChange, path: Path) -> None:
        logger.debug("Settings file {}: {}", change, path)
        await self.reload_preferences()

    # -- Builds ----------------------------------------------------------------

    def can_build(self) -> bool:
        state = self.broadcaster.state
        return state.project_config is not None and state.current_unit is not None

    def request_build(self) -> asyncio.Task[bool] | None:
        """Start a build in the background.  Returns None if one is running."""
        if self.builder.running:
            logger.debug("Build request dropped, build already running")
            return None
        return self._spawn(self.builder.try_build(), name="build")

    def trigger_build(self) -> bool:
        """Start a build if one can start now; advise the user otherwise."""
        if self.builder.running:
            return False
        try:
            self.builder.plan()
        except PreconditionError as exc:
            self.notifier.advise(exc)
            return False
        return self.request_build() is not None

    async def build(self) -> bool:
        """Build in the foreground.  Returns False if the request was dropped."""
        return await self.builder.try_build()

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._guarded(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, Any], name: str) -> Any:
        try:
            return await coro
        except Exception:
            logger.exception("Background task {} failed", name)
            return None

    # -- View commands ---------------------------------------------------------

    async def run_task(self, task_type: str) -> None:
        if task_type == TaskType.BUILD:
            self.trigger_build()
        else:
            logger.warning("Unknown task type {!r}", task_type)

    async def set_current_unit(self, unit: Unit | str | None) -> None:
        if unit == SOURCE_UNIT:
            self.selector.resolve_from_active_file()
        elif isinstance(unit, Unit) or unit is None:
            self.selector.set_current_unit(unit)
        else:
            logger.warning("Ignoring unit selection {!r}", unit)

    async def quick_pick_unit(self, view_id: str) -> None:
        if self.broadcaster.state.project_config is None:
            self.notifier.warning("No configuration loaded")
            return
        names = [unit.display_name for unit in self.selector.pickable_units()]
        self.broadcaster.send(view_id, PickUnitMessage(units=names))

    async def set_config_property(self, property_id: str, value: PropertyValue | None) -> None:
        try:
            properties = await self.preferences.set_property(property_id, value)
        except UnknownPropertyError as exc:
            self.notifier.warning(str(exc))
            return
        except SettingsFileError as exc:
            self.notifier.error("Failed to update settings", exc)
            return
        except ValueError as exc:
            self.notifier.warning(f"Invalid value for {property_id}: {exc}")
            return
        self.broadcaster.publish(config_properties=properties)
        if self.can_build():
            self.request_build()

    async def open_settings(self) -> Path:
        path = await to_thread.run_sync(partial(ensure_settings_file, self.preferences.workspace_path))
        logger.info("Opening settings {}", path)
        await to_thread.run_sync(partial(click.launch, str(path)))
        return path

    async def line_ranges(self, ranges: list[LineRange]) -> None:
        self.editor.line_ranges = list(ranges)

    async def save_view_state(self, data: dict[str, Any]) -> None:
        self.broadcaster.publish(view_state=data)
        self._persist(view_state=data)

    # -- Editor integration ----------------------------------------------------

    def set_active_file(self, path: str | Path | None, scheme: str = "file") -> None:
        self.editor.set_active(path, scheme)

    @staticmethod
    def copy_symbol(symbol_name: str, demangled_name: str | None = None, *, demangled: bool = False) -> str:
        """Text to put on the clipboard for a symbol."""
        if demangled and demangled_name:
            return demangled_name
        return symbol_name

    # -- Queries ---------------------------------------------------------------

    def summary(self) -> StateSummary:
        state = self.broadcaster.state
        log_file = current_log_file()
        return StateSummary(
            config_loaded=state.project_config is not None,
            build_running=state.build_running,
            current_unit=state.current_unit.display_name if state.current_unit else None,
            left_status=state.left_status,
            right_status=state.right_status,
            left_object_size=len(state.left_object) if state.left_object is not None else None,
            right_object_size=len(state.right_object) if state.right_object is not None else None,
            diff_output_size=len(state.diff_output) if state.diff_output is not None else None,
            config_properties=state.config_properties,
            view_count=self.broadcaster.view_count,
            log_file=str(log_file) if log_file else None,
        )

    # -- Persistence -----------------------------------------------------------

    async def _read_persisted(self) -> PersistedState:
        try:
            return await self._store.read_state(self.key)
        except FileNotFoundError:
            return PersistedState()
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable persisted state for {}: {}", self.root, exc)
            return PersistedState()

    def _persist_unit(self, name: str | None) -> None:
        self._persist(current_unit=name)

    def _persist(self, **changes: Any) -> None:
        self._persisted = self._persisted.model_copy(update=changes)
        self._writer.update(self._persisted)

"""Filesystem watcher built on ``watchfiles.awatch``.

A ``FileWatcher`` runs one background task that forwards every change event
to a callback.  Callbacks receive an absolute path and a ``FileChange`` kind;
they may be plain functions or coroutines.  Exceptions raised by a callback
are logged and do not stop the watcher.  A failure of the watch itself (for
example a watched directory being removed) ends the task with a log entry;
``close`` still succeeds afterwards.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import Protocol

from loguru import logger
from watchfiles import Change, DefaultFilter, awatch

from decomp_sync.workspace_runtime.models.enums import FileChange

ChangeCallback = Callable[[FileChange, Path], Awaitable[None] | None]
WatchFilter = Callable[[Change, str], bool]

_CHANGE_KINDS = {
    Change.added: FileChange.CREATED,
    Change.modified: FileChange.CHANGED,
    Change.deleted: FileChange.DELETED,
}


class Watcher(Protocol):
    async def start(self) -> None: ...

    async def close(self) -> None: ...


class WatcherFactory(Protocol):
    def __call__(
        self,
        paths: Sequence[Path],
        callback: ChangeCallback,
        *,
        recursive: bool = True,
        watch_filter: WatchFilter | None = None,
        name: str = "watcher",
    ) -> Watcher: ...


class FileWatcher:
    """Watch *paths* and invoke *callback* for every change.

    ``start`` and ``close`` are idempotent.  The watcher also works as an
    async context manager.
    """

    def __init__(
        self,
        paths: Sequence[Path],
        callback: ChangeCallback,
        *,
        recursive: bool = True,
        watch_filter: WatchFilter | None = None,
        name: str = "watcher",
    ) -> None:
        self._paths = [Path(p) for p in paths]
        self._callback = callback
        self._recursive = recursive
        self._watch_filter = watch_filter if watch_filter is not None else DefaultFilter()
        self._name = name
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"watch:{self._name}")
        logger.debug("Watcher {}: watching {} (recursive={})", self._name, self._paths, self._recursive)

    async def close(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        task, self._task = self._task, None
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Watcher {}: stopped", self._name)

    async def __aenter__(self) -> FileWatcher:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _run(self) -> None:
        try:
            async for changes in awatch(
                *self._paths,
                watch_filter=self._watch_filter,
                recursive=self._recursive,
                stop_event=self._stop_event,
            ):
                for raw_change, raw_path in changes:
                    await self._dispatch(_CHANGE_KINDS[raw_change], Path(raw_path))
        except Exception:
            logger.exception("Watcher {}: stopped watching {}", self._name, self._paths)

    async def _dispatch(self, change: FileChange, path: Path) -> None:
        try:
            result = self._callback(change, path)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Watcher {}: callback failed for {} {}", self._name, change, path)

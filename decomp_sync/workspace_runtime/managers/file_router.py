"""File change router -- turns source edits into rebuild requests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from decomp_sync.workspace_runtime.globs import PathMatcher, compile_watch_patterns
from decomp_sync.workspace_runtime.models.enums import FileChange
from decomp_sync.workspace_runtime.watcher import Watcher, WatcherFactory


class FileChangeRouter:
    """Watch the workspace tree and request a build when a watched file changes.

    ``can_trigger`` is consulted per event (a config and a unit must both be
    present); ``trigger`` must not block -- builds run as background tasks
    so that a change arriving mid-build is dropped by the build guard.
    """

    def __init__(
        self,
        root: Path,
        *,
        can_trigger: Callable[[], bool],
        trigger: Callable[[], object],
        watcher_factory: WatcherFactory | None = None,
    ) -> None:
        self._root = root
        self._can_trigger = can_trigger
        self._trigger = trigger
        self._watcher_factory = watcher_factory
        self._matcher: PathMatcher | None = None
        self._watcher: Watcher | None = None

    @property
    def matcher(self) -> PathMatcher | None:
        return self._matcher

    @property
    def watching(self) -> bool:
        return self._watcher is not None

    async def update_patterns(self, patterns: Iterable[str] | None) -> None:
        """Replace the watch patterns, closing any previous watcher.

        No watcher is created for an empty pattern list.
        """
        await self.close()
        self._matcher = compile_watch_patterns(patterns or ())
        if self._matcher is None:
            logger.debug("File router: no watch patterns, workspace watcher disabled")
            return
        if self._watcher_factory is None:
            return
        self._watcher = self._watcher_factory([self._root], self.handle_change, recursive=True, name="workspace")
        await self._watcher.start()
        logger.debug("File router: watching {} pattern(s)", len(self._matcher.patterns))

    def handle_change(self, change: FileChange, path: Path) -> bool:
        """Route one change event.  Returns True when a build was requested."""
        if self._matcher is None:
            return False
        try:
            relative = Path(path).relative_to(self._root).as_posix()
        except ValueError:
            return False
        if not self._matcher.matches(relative):
            return False
        if not self._can_trigger():
            logger.debug("File router: {} {} ignored, nothing to build", change, relative)
            return False
        logger.info("File {} {}, rebuilding", relative, change)
        self._trigger()
        return True

    async def close(self) -> None:
        if self._watcher is not None:
            watcher, self._watcher = self._watcher, None
            await watcher.close()

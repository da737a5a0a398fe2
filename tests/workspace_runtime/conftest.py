"""Shared fixtures for workspace-runtime tests.

No subprocesses or real filesystem watchers: ``FakeExecutor`` plays the
build tool (writing object files like ``make`` would) and ``FakeWatcher``
lets tests fire change events by hand.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
from collections.abc import AsyncIterator
from functools import partial
from pathlib import Path
from typing import Any

import pytest
from watchfiles import Change

from decomp_sync.workspace_runtime.execution.executor import Task, TaskResult
from decomp_sync.workspace_runtime.models.config import CONFIG_FILENAME
from decomp_sync.workspace_runtime.models.enums import FileChange, TaskType
from decomp_sync.workspace_runtime.settings import DecompSettings
from decomp_sync.workspace_runtime.store.local import LocalStateStore
from decomp_sync.workspace_runtime.workspace import Workspace

SAMPLE_CONFIG: dict[str, Any] = {
    "custom_make": "ninja",
    "custom_args": ["-j4"],
    "target_dir": "build/asm",
    "base_dir": "build/src",
    "build_target": False,
    "build_base": True,
    "watch_patterns": ["*.c", "*.h"],
    "units": [
        {"name": "main/foo", "path": "foo.o", "metadata": {"source_path": "src/foo.c"}},
        {"name": "main/bar", "path": "bar.o", "metadata": {"source_path": "src/bar.c", "auto_generated": True}},
    ],
}


def write_config(root: Path, data: dict[str, Any] | str) -> Path:
    path = root / CONFIG_FILENAME
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


def write_object(root: Path, relative: str, data: bytes) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeExecutor:
    """Records tasks; successful builds write ``obj:<path>`` like a real build would.

    ``results`` maps a task's last argument (the side path) to a ``TaskResult``
    or an exception to raise.  Set ``gate`` to hold every task until released.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.tasks: list[Task] = []
        self.results: dict[str, TaskResult | Exception] = {}
        self.gate: asyncio.Event | None = None
        self.produce = True

    async def run(self, task: Task) -> TaskResult:
        self.tasks.append(task)
        if self.gate is not None:
            await self.gate.wait()

        outcome = self.results.get(task.args[-1] if task.args else task.command)
        if isinstance(outcome, Exception):
            raise outcome
        result = outcome or TaskResult(code=0, start_time=0.0, stdout="", stderr="")

        if result.success and self.produce:
            if task.type == TaskType.BUILD:
                write_object(self.root, task.args[-1], f"obj:{task.args[-1]}".encode())
            elif task.type == TaskType.DIFF:
                output = Path(task.args[task.args.index("-o") + 1])
                output.parent.mkdir(parents=True, exist_ok=True)
                output.write_bytes(b"diff-bytes")
        return result


class FakeWatcher:
    def __init__(
        self,
        paths: list[Path],
        callback: Any,
        *,
        recursive: bool = True,
        watch_filter: Any = None,
        name: str = "watcher",
    ) -> None:
        self.paths = list(paths)
        self.callback = callback
        self.recursive = recursive
        self.watch_filter = watch_filter
        self.name = name
        self.started = False
        self.closed = False
        self.close_error: Exception | None = None

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error

    def accepts(self, path: Path) -> bool:
        return self.watch_filter is None or self.watch_filter(Change.modified, str(path))

    async def emit(self, change: FileChange, path: Path) -> None:
        if not self.accepts(path):
            return
        result = self.callback(change, path)
        if inspect.isawaitable(result):
            await result


class FakeWatcherFactory:
    def __init__(self) -> None:
        self.created: list[FakeWatcher] = []

    def __call__(self, paths: list[Path], callback: Any, **kwargs: Any) -> FakeWatcher:
        watcher = FakeWatcher(paths, callback, **kwargs)
        self.created.append(watcher)
        return watcher

    def named(self, name: str) -> FakeWatcher:
        """Most recent watcher created under *name*."""
        return [w for w in self.created if w.name == name][-1]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_config() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_CONFIG)


@pytest.fixture
def config_writer(root: Path):
    return partial(write_config, root)


@pytest.fixture
def object_writer(root: Path):
    return partial(write_object, root)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path.resolve()


@pytest.fixture
def settings(tmp_path: Path, root: Path) -> DecompSettings:
    return DecompSettings(
        workspace_root=str(root),
        storage_dir=str(tmp_path / "storage"),
        user_settings=str(tmp_path / "user" / "settings.json"),
        debounce_delay=0.01,
    )


@pytest.fixture
def executor(root: Path) -> FakeExecutor:
    return FakeExecutor(root)


@pytest.fixture
def watchers() -> FakeWatcherFactory:
    return FakeWatcherFactory()


@pytest.fixture
def state_store(tmp_path: Path) -> LocalStateStore:
    return LocalStateStore(tmp_path / "storage")


@pytest.fixture
async def make_workspace(
    root: Path,
    settings: DecompSettings,
    executor: FakeExecutor,
    watchers: FakeWatcherFactory,
    state_store: LocalStateStore,
):
    created: list[Workspace] = []

    def factory(**kwargs: Any) -> Workspace:
        kwargs.setdefault("executor", executor)
        kwargs.setdefault("store", state_store)
        kwargs.setdefault("watcher_factory", watchers)
        workspace = Workspace(root, settings, **kwargs)
        created.append(workspace)
        return workspace

    yield factory

    for ws in created:
        await ws.close()


@pytest.fixture
async def workspace(make_workspace) -> AsyncIterator[Workspace]:
    """Opened workspace over an empty project (no config yet)."""
    ws = make_workspace()
    await ws.open()
    yield ws
    await ws.close()


@pytest.fixture
async def configured(root: Path, make_workspace) -> AsyncIterator[Workspace]:
    """Opened workspace with ``SAMPLE_CONFIG`` loaded and no unit selected."""
    write_config(root, SAMPLE_CONFIG)
    ws = make_workspace()
    await ws.open()
    await ws.wait_for_pending()
    yield ws
    await ws.close()

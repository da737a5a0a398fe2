"""BuildOrchestrator against a fake build tool."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from decomp_sync.workspace_runtime.broadcaster import StateBroadcaster
from decomp_sync.workspace_runtime.execution.builder import BuildOrchestrator
from decomp_sync.workspace_runtime.execution.diff_engine import DiffEngine, DiffEngineError
from decomp_sync.workspace_runtime.execution.executor import TaskExecutionError, TaskLaunchError, TaskResult
from decomp_sync.workspace_runtime.execution.resolver import resolve_project_config
from decomp_sync.workspace_runtime.managers.notifications import Notifier
from decomp_sync.workspace_runtime.models.config import ProjectConfig, Unit
from decomp_sync.workspace_runtime.models.enums import TaskType

TARGET = "build/asm/foo.o"
BASE = "build/src/foo.o"


@pytest.fixture
def broadcaster() -> StateBroadcaster:
    return StateBroadcaster()


@pytest.fixture
def notifier() -> MagicMock:
    return MagicMock(spec=Notifier)


@pytest.fixture
def diff_engine(executor, tmp_path: Path, root: Path) -> DiffEngine:
    return DiffEngine(executor, tmp_path / "storage", root)


@pytest.fixture
def builder(root: Path, executor, broadcaster, notifier, diff_engine) -> BuildOrchestrator:
    return BuildOrchestrator(
        root,
        executor=executor,
        broadcaster=broadcaster,
        notifier=notifier,
        diff_engine=diff_engine,
    )


@pytest.fixture
def select(broadcaster: StateBroadcaster, sample_config: dict[str, Any]):
    """Publish the sample config (with overrides) and select ``main/foo``."""

    def apply(**overrides: Any) -> ProjectConfig:
        config = resolve_project_config(ProjectConfig.model_validate({**sample_config, **overrides}))
        broadcaster.publish(project_config=config, current_unit=config.find_unit("main/foo"))
        return config

    return apply


def _failure(code: int = 2, stderr: str = "error: undefined symbol") -> TaskResult:
    return TaskResult(code=code, start_time=0.0, stdout="", stderr=stderr)


# -- Preconditions -------------------------------------------------------------


async def test_no_config(builder, notifier, executor, broadcaster) -> None:
    assert await builder.try_build() is False

    assert str(notifier.advise.call_args.args[0]) == "No configuration loaded"
    assert executor.tasks == []
    assert broadcaster.state.build_running is False


async def test_no_unit(builder, notifier, select, broadcaster) -> None:
    select()
    broadcaster.publish(current_unit=None)

    assert await builder.try_build() is False
    assert str(notifier.advise.call_args.args[0]) == "No unit selected"


async def test_unit_without_paths(builder, notifier, select, broadcaster) -> None:
    select()
    broadcaster.publish(current_unit=Unit(name="orphan"))

    assert await builder.try_build() is False
    assert str(notifier.advise.call_args.args[0]) == "No target or base path"


# -- Sides ---------------------------------------------------------------------


async def test_builds_base_and_reads_existing_target(builder, select, executor, broadcaster, object_writer) -> None:
    select()
    object_writer(TARGET, b"target-bytes")

    assert await builder.try_build() is True

    assert [(t.type, t.command, t.args) for t in executor.tasks] == [(TaskType.BUILD, "ninja", ("-j4", BASE))]
    state = broadcaster.state
    assert state.build_running is False
    assert state.left_status is None
    assert state.left_object == b"target-bytes"
    assert state.right_status.success is True
    assert state.right_status.cmdline == f"ninja -j4 {BASE}"
    assert state.right_object == f"obj:{BASE}".encode()
    assert state.diff_output is None


async def test_missing_unbuilt_target_is_not_an_error(builder, select, broadcaster, notifier) -> None:
    select()

    await builder.try_build()

    assert broadcaster.state.left_object is None
    assert broadcaster.state.right_object is not None
    notifier.error.assert_not_called()


async def test_builds_target_before_base(builder, select, executor, broadcaster) -> None:
    select(build_target=True, custom_make=None, custom_args=None)

    await builder.try_build()

    assert [t.cmdline for t in executor.tasks] == [f"make {TARGET}", f"make {BASE}"]
    assert broadcaster.state.left_object == f"obj:{TARGET}".encode()
    assert broadcaster.state.right_object == f"obj:{BASE}".encode()


async def test_failed_side_keeps_other_side(builder, select, executor, broadcaster) -> None:
    select(build_target=True)
    executor.results[BASE] = _failure()

    assert await builder.try_build() is True

    state = broadcaster.state
    assert state.left_status.success is True
    assert state.left_object is not None
    assert state.right_status.success is False
    assert state.right_status.stderr == "error: undefined symbol"
    assert state.right_object is None


async def test_launch_error_is_reported(builder, select, executor, broadcaster, notifier) -> None:
    select()
    executor.results[BASE] = TaskLaunchError("ninja: not found")

    await builder.try_build()

    message, exc = notifier.error.call_args.args
    assert message == "Failed to start base build"
    assert isinstance(exc, TaskLaunchError)
    assert broadcaster.state.right_status.success is False
    assert broadcaster.state.right_status.stderr == "ninja: not found"


async def test_silent_failure_becomes_failed_status(builder, select, executor, broadcaster, notifier) -> None:
    select()
    executor.results[BASE] = TaskExecutionError(f"ninja -j4 {BASE}", 1)

    await builder.try_build()

    assert broadcaster.state.right_status.success is False
    assert "exited with code 1" in broadcaster.state.right_status.stderr
    notifier.error.assert_not_called()


async def test_unreadable_artifact_fails_the_side(builder, select, executor, broadcaster, notifier) -> None:
    select()
    executor.produce = False

    await builder.try_build()

    assert broadcaster.state.right_status.success is False
    assert broadcaster.state.right_object is None
    assert f"Failed to read base object {BASE}" in notifier.error.call_args.args[0]


# -- Guard ---------------------------------------------------------------------


async def test_concurrent_request_is_dropped(builder, select, executor, broadcaster) -> None:
    select()
    executor.gate = asyncio.Event()

    first = asyncio.create_task(builder.try_build())
    while not executor.tasks:
        await asyncio.sleep(0)

    assert broadcaster.state.build_running is True
    assert await builder.try_build() is False

    executor.gate.set()
    assert await first is True
    assert len(executor.tasks) == 1
    assert broadcaster.state.build_running is False


async def test_guard_released_on_unexpected_error(builder, select, executor, broadcaster) -> None:
    select()
    executor.results[BASE] = RuntimeError("executor crashed")

    with pytest.raises(RuntimeError, match="executor crashed"):
        await builder.try_build()

    assert broadcaster.state.build_running is False
    executor.results.clear()
    assert await builder.try_build() is True


async def test_plan_is_captured_before_building(builder, select, executor, broadcaster) -> None:
    select()
    executor.gate = asyncio.Event()

    running = asyncio.create_task(builder.try_build())
    while not executor.tasks:
        await asyncio.sleep(0)
    select(custom_make="other-make")
    executor.gate.set()
    await running

    assert [t.command for t in executor.tasks] == ["ninja"]


# -- Diff ----------------------------------------------------------------------


async def test_diff_runs_with_binary_path(builder, select, executor, broadcaster, diff_engine, root: Path) -> None:
    select(build_target=True)
    broadcaster.publish(config_properties={"binaryPath": "/opt/objdiff-cli", "spaceBetweenArgs": False})

    await builder.try_build()

    diff_task = executor.tasks[-1]
    assert diff_task.type == TaskType.DIFF
    assert diff_task.command == "/opt/objdiff-cli"
    assert diff_task.args == (
        "diff",
        "-1",
        str(root / TARGET),
        "-2",
        str(root / BASE),
        "--format",
        "proto",
        "-o",
        str(diff_engine.output_path),
        "-c",
        "spaceBetweenArgs=false",
    )
    assert broadcaster.state.diff_output == b"diff-bytes"
    assert not diff_engine.output_path.exists()


async def test_diff_omits_missing_side(builder, select, executor, broadcaster, root: Path) -> None:
    select()
    broadcaster.publish(config_properties={"binaryPath": "objdiff-cli"})

    await builder.try_build()

    args = executor.tasks[-1].args
    assert "-1" not in args
    assert args[1:3] == ("-2", str(root / BASE))


async def test_diff_skipped_when_a_side_failed(builder, select, executor, broadcaster) -> None:
    select()
    broadcaster.publish(config_properties={"binaryPath": "objdiff-cli"})
    executor.results[BASE] = _failure()

    await builder.try_build()

    assert [t.type for t in executor.tasks] == [TaskType.BUILD]
    assert broadcaster.state.diff_output is None


async def test_diff_failure_is_reported(builder, select, executor, broadcaster, notifier, diff_engine) -> None:
    select()
    broadcaster.publish(config_properties={"binaryPath": "objdiff-cli"})
    executor.results[str(diff_engine.output_path)] = _failure(code=3, stderr="")

    await builder.try_build()

    message, exc = notifier.error.call_args.args
    assert message == "Diff failed"
    assert isinstance(exc, DiffEngineError)
    assert str(exc) == "Diff failed with code 3"
    assert broadcaster.state.diff_output is None
    assert broadcaster.state.right_object is not None


async def test_unusable_diff_output_dir_is_reported(
    root: Path, tmp_path: Path, select, executor, broadcaster, notifier
) -> None:
    (tmp_path / "blocker").write_text("not a directory")
    builder = BuildOrchestrator(
        root,
        executor=executor,
        broadcaster=broadcaster,
        notifier=notifier,
        diff_engine=DiffEngine(executor, tmp_path / "blocker" / "storage", root),
    )
    select()
    broadcaster.publish(config_properties={"binaryPath": "objdiff-cli"})

    assert await builder.try_build() is True

    message, exc = notifier.error.call_args.args
    assert message == "Diff failed"
    assert isinstance(exc, DiffEngineError)
    assert "Cannot create diff output directory" in str(exc)
    assert [t.type for t in executor.tasks] == [TaskType.BUILD]
    assert broadcaster.state.build_running is False
    assert broadcaster.state.right_object == f"obj:{BASE}".encode()

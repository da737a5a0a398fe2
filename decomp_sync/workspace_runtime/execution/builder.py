"""Build orchestrator -- rebuilds both sides of the current unit.

One build runs at a time.  ``try_build`` checks its preconditions, flips the
``build_running`` guard *before* its first suspension point, then:

1. Builds the target side, then the base side, each as an independent
   ``<make> <args...> <side_path>`` invocation.  A side is built only when
   its path is set and its ``build_target`` / ``build_base`` flag is on.
2. Reads each side's object file.  Sides that were not rebuilt still have
   their existing object read if present.
3. Runs the external diff engine when ``binaryPath`` is configured.
4. Publishes one state delta (statuses, objects, diff, guard cleared) in a
   ``finally`` block so the guard is released on every exit path.

The plan (unit, paths, command) is captured up front; config reloads during
a build do not affect it.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING

from anyio import to_thread
from loguru import logger

from decomp_sync.workspace_runtime.execution.diff_engine import DiffEngine, DiffEngineError
from decomp_sync.workspace_runtime.execution.executor import (
    Task,
    TaskExecutionError,
    TaskExecutor,
    TaskLaunchError,
)
from decomp_sync.workspace_runtime.managers.notifications import Notifier, PreconditionError
from decomp_sync.workspace_runtime.models.config import Unit
from decomp_sync.workspace_runtime.models.enums import Side, TaskType
from decomp_sync.workspace_runtime.models.preferences import BINARY_PATH_PROPERTY, get_modified_config_properties
from decomp_sync.workspace_runtime.models.state import BuildStatus

if TYPE_CHECKING:
    from decomp_sync.workspace_runtime.broadcaster import StateBroadcaster


class ArtifactReadError(OSError):
    """A side built successfully but its object file could not be read."""


@dataclass(frozen=True)
class BuildPlan:
    unit: Unit
    command: str
    args: tuple[str, ...]
    target_path: str | None
    base_path: str | None
    build_target: bool
    build_base: bool

    def path_for(self, side: Side) -> str | None:
        return self.target_path if side == Side.TARGET else self.base_path

    def builds(self, side: Side) -> bool:
        enabled = self.build_target if side == Side.TARGET else self.build_base
        return enabled and self.path_for(side) is not None


@dataclass(frozen=True)
class SideOutcome:
    status: BuildStatus | None = None
    data: bytes | None = None

    @property
    def failed(self) -> bool:
        return self.status is not None and not self.status.success


class BuildOrchestrator:
    def __init__(
        self,
        root: Path,
        *,
        executor: TaskExecutor,
        broadcaster: StateBroadcaster,
        notifier: Notifier,
        diff_engine: DiffEngine | None = None,
    ) -> None:
        self._root = root
        self._executor = executor
        self._broadcaster = broadcaster
        self._notifier = notifier
        self._diff_engine = diff_engine

    @property
    def running(self) -> bool:
        return self._broadcaster.state.build_running

    def plan(self) -> BuildPlan:
        """Capture what to build.  Raises ``PreconditionError`` if nothing can be."""
        state = self._broadcaster.state
        config = state.project_config
        if config is None:
            msg = "No configuration loaded"
            raise PreconditionError(msg)
        unit = state.current_unit
        if unit is None:
            msg = "No unit selected"
            raise PreconditionError(msg)
        if not unit.target_path and not unit.base_path:
            msg = "No target or base path"
            raise PreconditionError(msg)
        return BuildPlan(
            unit=unit,
            command=config.build_command,
            args=tuple(config.custom_args or ()),
            target_path=unit.target_path or None,
            base_path=unit.base_path or None,
            build_target=bool(config.build_target),
            build_base=config.build_base is not False,
        )

    async def try_build(self) -> bool:
        """Build the current unit.  Returns False when the request was dropped."""
        if self.running:
            logger.info("Build already running, request dropped")
            return False
        try:
            plan = self.plan()
        except PreconditionError as exc:
            self._notifier.advise(exc)
            return False

        self._broadcaster.publish(build_running=True)
        logger.info("Building {} (target={}, base={})", plan.unit.display_name, plan.target_path, plan.base_path)
        left = right = SideOutcome()
        diff_output: bytes | None = None
        try:
            left = await self._run_side(plan, Side.TARGET)
            right = await self._run_side(plan, Side.BASE)
            diff_output = await self._run_diff(plan, left, right)
        finally:
            self._broadcaster.publish(
                build_running=False,
                left_status=left.status,
                right_status=right.status,
                left_object=left.data,
                right_object=right.data,
                diff_output=diff_output,
            )
        return True

    # -- Sides -----------------------------------------------------------------

    async def _run_side(self, plan: BuildPlan, side: Side) -> SideOutcome:
        path = plan.path_for(side)
        if path is None:
            return SideOutcome()

        if not plan.builds(side):
            try:
                return SideOutcome(data=await self._read_artifact(path))
            except OSError as exc:
                logger.warning("No {} object at {}: {}", side, path, exc)
                return SideOutcome()

        task = Task(TaskType.BUILD, plan.command, (*plan.args, path))
        try:
            result = await self._executor.run(task)
        except TaskLaunchError as exc:
            self._notifier.error(f"Failed to start {side} build", exc)
            return SideOutcome(BuildStatus(success=False, cmdline=task.cmdline, stderr=str(exc)))
        except TaskExecutionError as exc:
            logger.warning("{} build failed: {}", side, exc)
            return SideOutcome(BuildStatus(success=False, cmdline=task.cmdline, stderr=str(exc)))

        logger.info("{} build finished in {:.0f}ms (code={})", side, result.elapsed_ms(), result.code)
        status = BuildStatus(
            success=result.success,
            cmdline=task.cmdline,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
        if not result.success:
            logger.warning("{} build failed with code {}", side, result.code)
            return SideOutcome(status)

        try:
            data = await self._read_artifact(path)
        except OSError as exc:
            err = ArtifactReadError(f"Failed to read {side} object {path}: {exc}")
            self._notifier.error(str(err))
            return SideOutcome(status.model_copy(update={"success": False, "stderr": status.stderr + str(err)}))
        return SideOutcome(status, data)

    async def _read_artifact(self, path: str) -> bytes:
        data = await to_thread.run_sync(partial(_read_bytes, self._root / path))
        logger.debug("Read object {} ({} bytes)", path, len(data))
        return data

    # -- Diff ------------------------------------------------------------------

    async def _run_diff(self, plan: BuildPlan, left: SideOutcome, right: SideOutcome) -> bytes | None:
        properties = self._broadcaster.state.config_properties
        binary = properties.get(BINARY_PATH_PROPERTY)
        if not binary or self._diff_engine is None:
            return None
        if left.failed or right.failed or (left.data is None and right.data is None):
            return None
        try:
            return await self._diff_engine.run(
                str(binary),
                plan.target_path if left.data is not None else None,
                plan.base_path if right.data is not None else None,
                get_modified_config_properties(properties),
            )
        except (TaskLaunchError, TaskExecutionError, DiffEngineError) as exc:
            self._notifier.error("Diff failed", exc)
            return None


def _read_bytes(path: Path) -> bytes:
    if not path.is_file():
        msg = f"Not a file: {path}"
        raise FileNotFoundError(msg)
    return path.read_bytes()

"""Task executors -- run an external command in the workspace root.

Two interchangeable strategies satisfy the ``TaskExecutor`` protocol:

- ``TerminalTaskExecutor`` streams the command's output straight to this
  process's terminal (the visible output channel) and reports only the exit
  code.
- ``CapturingTaskExecutor`` captures stdout / stderr so views can display
  them next to a failed build.

Both record a monotonic start time before spawning so callers can log elapsed
time.  Neither runs a shell: ``command`` and ``args`` are passed to the OS
verbatim.
"""

from __future__ import annotations

import asyncio
import shlex
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from decomp_sync.workspace_runtime.models.enums import ExecutorKind, TaskType


class TaskLaunchError(RuntimeError):
    """The command could not be started (e.g. the binary does not exist)."""


class TaskExecutionError(RuntimeError):
    """The command exited non-zero without producing any output."""

    def __init__(self, cmdline: str, code: int) -> None:
        super().__init__(f"{cmdline} exited with code {code} and produced no output")
        self.code = code


@dataclass(frozen=True)
class Task:
    type: TaskType
    command: str
    args: tuple[str, ...] = field(default_factory=tuple)

    @property
    def cmdline(self) -> str:
        """Shell-quoted command line, as shown to users."""
        return shlex.join([self.command, *self.args])


@dataclass(frozen=True)
class TaskResult:
    code: int
    start_time: float
    stdout: str | None = None
    stderr: str | None = None

    @property
    def success(self) -> bool:
        return self.code == 0

    def elapsed_ms(self, now: float | None = None) -> float:
        end = time.monotonic() if now is None else now
        return (end - self.start_time) * 1000


@runtime_checkable
class TaskExecutor(Protocol):
    """Async protocol for running one external command."""

    async def run(self, task: Task) -> TaskResult:
        """Run *task* to completion.

        Returns a result for any exit code; raises ``TaskLaunchError`` only
        when the process could not be started.
        """
        ...


class TerminalTaskExecutor:
    """Run tasks with inherited stdio so their output shows in the service terminal."""

    def __init__(self, cwd: str | Path) -> None:
        self._cwd = Path(cwd)

    async def run(self, task: Task) -> TaskResult:
        start_time = time.monotonic()
        logger.info("[{}] > {}", task.type, task.cmdline)
        try:
            proc = await asyncio.create_subprocess_exec(task.command, *task.args, cwd=self._cwd)
        except OSError as exc:
            msg = f"Failed to start {task.cmdline!r}: {exc}"
            raise TaskLaunchError(msg) from exc
        code = await proc.wait()
        return TaskResult(code=code, start_time=start_time)


class CapturingTaskExecutor:
    """Run tasks as child processes and capture their output.

    A non-zero exit still resolves as long as the process wrote something;
    a silent non-zero exit raises ``TaskExecutionError`` since there is
    nothing to show the user.
    """

    def __init__(self, cwd: str | Path, *, encoding: str = "utf-8") -> None:
        self._cwd = Path(cwd)
        self._encoding = encoding

    async def run(self, task: Task) -> TaskResult:
        start_time = time.monotonic()
        logger.debug("[{}] > {}", task.type, task.cmdline)
        try:
            proc = await asyncio.create_subprocess_exec(
                task.command,
                *task.args,
                cwd=self._cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            msg = f"Failed to start {task.cmdline!r}: {exc}"
            raise TaskLaunchError(msg) from exc

        raw_stdout, raw_stderr = await proc.communicate()
        stdout = raw_stdout.decode(self._encoding, errors="replace")
        stderr = raw_stderr.decode(self._encoding, errors="replace")
        code = proc.returncode if proc.returncode is not None else -1

        if code != 0 and not stdout and not stderr:
            raise TaskExecutionError(task.cmdline, code)
        return TaskResult(code=code, start_time=start_time, stdout=stdout, stderr=stderr)


def create_task_executor(kind: ExecutorKind, cwd: str | Path) -> TaskExecutor:
    """Build the configured executor strategy."""
    if kind == ExecutorKind.TERMINAL:
        return TerminalTaskExecutor(cwd)
    return CapturingTaskExecutor(cwd)

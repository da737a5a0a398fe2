"""External diff engine invocation.

Runs ``<binary> diff -1 <target> -2 <base> --format proto -o <output>`` with
one ``-c key=value`` flag per modified preference.  The output file is
namespaced by a hash of the workspace root so several workspaces can share
one storage directory; it is read once and then deleted.
"""

from __future__ import annotations

import hashlib
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger

from decomp_sync.workspace_runtime.execution.executor import Task, TaskExecutor
from decomp_sync.workspace_runtime.models.enums import TaskType
from decomp_sync.workspace_runtime.models.preferences import ConfigProperties


class DiffEngineError(RuntimeError):
    """The diff engine exited non-zero or left no output file."""


def workspace_hash(root: Path) -> str:
    """Stable short hash of the workspace root path."""
    return hashlib.blake2b(str(root).encode("utf-8"), digest_size=8).hexdigest()


def format_property(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class DiffEngine:
    def __init__(self, executor: TaskExecutor, storage_dir: Path, root: Path) -> None:
        self._executor = executor
        self._root = root
        self.output_path = storage_dir / f"diff_{workspace_hash(root)}.binpb"

    def build_task(
        self,
        binary: str,
        target_path: str | None,
        base_path: str | None,
        properties: ConfigProperties,
    ) -> Task:
        args: list[str] = ["diff"]
        if target_path:
            args += ["-1", str(self._root / target_path)]
        if base_path:
            args += ["-2", str(self._root / base_path)]
        args += ["--format", "proto", "-o", str(self.output_path)]
        for key, value in properties.items():
            args += ["-c", f"{key}={format_property(value)}"]
        return Task(TaskType.DIFF, binary, tuple(args))

    async def run(
        self,
        binary: str,
        target_path: str | None,
        base_path: str | None,
        properties: ConfigProperties,
    ) -> bytes:
        """Run the engine and return the encoded diff.

        Raises ``DiffEngineError`` on a non-zero exit or when the output
        directory cannot be created, and propagates ``TaskLaunchError`` from
        the executor.
        """
        task = self.build_task(binary, target_path, base_path, properties)
        try:
            await to_thread.run_sync(partial(self.output_path.parent.mkdir, parents=True, exist_ok=True))
        except OSError as exc:
            msg = f"Cannot create diff output directory {self.output_path.parent}: {exc}"
            raise DiffEngineError(msg) from exc
        try:
            result = await self._executor.run(task)
            logger.info("Diff finished in {:.0f}ms (code={})", result.elapsed_ms(), result.code)
            if not result.success:
                msg = f"Diff failed with code {result.code}"
                raise DiffEngineError(msg)
            try:
                data = await to_thread.run_sync(self.output_path.read_bytes)
            except OSError as exc:
                msg = f"Failed to read diff output {self.output_path}"
                raise DiffEngineError(msg) from exc
            logger.debug("Read diff output {} ({} bytes)", self.output_path, len(data))
            return data
        finally:
            await to_thread.run_sync(self._discard_output)

    def _discard_output(self) -> None:
        try:
            self.output_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove diff output {}: {}", self.output_path, exc)

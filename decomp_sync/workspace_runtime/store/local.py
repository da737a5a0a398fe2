"""Local filesystem state store.

Stores persisted workspace state as JSON under the storage directory::

    {storage_dir}/workspaces/{key}/state.json

where ``key`` is a hash of the workspace root, so one storage directory can
serve many workspaces.

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Writes are
atomic: data is written to a temporary file in the same directory, then
renamed over the target.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from functools import partial
from pathlib import Path

from anyio import to_thread

from decomp_sync.workspace_runtime.models.state import PersistedState


class LocalStateStore:
    """Local filesystem implementation of the StateStore protocol."""

    def __init__(self, storage_dir: str | Path) -> None:
        self._base = Path(storage_dir) / "workspaces"

    def _workspace_dir(self, key: str) -> Path:
        return self._base / key

    async def write_state(self, key: str, state: PersistedState) -> None:
        data = state.model_dump_json(indent=2)
        await to_thread.run_sync(partial(atomic_write, self._workspace_dir(key) / "state.json", data))

    async def read_state(self, key: str) -> PersistedState:
        path = self._workspace_dir(key) / "state.json"
        raw = await to_thread.run_sync(partial(path.read_text, encoding="utf-8"))
        return PersistedState.model_validate_json(raw)

    async def delete(self, key: str) -> None:
        await to_thread.run_sync(partial(_rmtree, self._workspace_dir(key)))


# -- Sync helpers (run in thread pool) -----------------------------------------


def atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    The temp file is created in the same directory so the rename is atomic
    on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def _rmtree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)

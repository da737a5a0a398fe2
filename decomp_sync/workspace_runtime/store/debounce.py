"""Debounced persistence.

``update`` replaces the pending snapshot and restarts the timer, so a burst
of mutations results in one write ``delay`` seconds after the last of them.
``close`` flushes unconditionally.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from decomp_sync.workspace_runtime.models.state import PersistedState
from decomp_sync.workspace_runtime.store.base import StateStore


class DebouncedWriter:
    def __init__(self, store: StateStore, key: str, *, delay: float = 0.5) -> None:
        self._store = store
        self._key = key
        self._delay = delay
        self._pending: PersistedState | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._flush_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def update(self, state: PersistedState) -> None:
        """Schedule *state* to be written after the debounce delay."""
        if self._closed:
            logger.warning("Persist: write after close dropped")
            return
        self._pending = state
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._flush_task = asyncio.create_task(self.flush(), name="persist-flush")

    async def flush(self) -> None:
        """Write the pending snapshot now, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        async with self._lock:
            state, self._pending = self._pending, None
            if state is None:
                return
            try:
                await self._store.write_state(self._key, state)
            except OSError:
                logger.exception("Persist: failed to write state for {}", self._key)
            else:
                logger.debug("Persist: wrote state for {}", self._key)

    async def close(self) -> None:
        self._closed = True
        await self.flush()
        if self._flush_task is not None:
            await self._flush_task
            self._flush_task = None

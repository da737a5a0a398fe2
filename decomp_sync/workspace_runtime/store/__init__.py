"""State store implementations for per-workspace persistence."""

from decomp_sync.workspace_runtime.store.base import StateStore
from decomp_sync.workspace_runtime.store.debounce import DebouncedWriter
from decomp_sync.workspace_runtime.store.local import LocalStateStore

__all__ = ["DebouncedWriter", "LocalStateStore", "StateStore"]

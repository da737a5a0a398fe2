"""Service configuration loaded from DECOMP_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from decomp_sync.workspace_runtime.models.enums import ExecutorKind


class DecompSettings(BaseSettings):
    """decomp-sync service settings.

    All fields are read from environment variables with the ``DECOMP_`` prefix.
    For example, ``DECOMP_EXECUTOR=terminal`` maps to ``executor``.

    Diff preferences (``functionRelocDiffs``, ``arm.archVersion``, ...) are
    **not** managed here -- they live in the JSON settings files read by
    ``PreferenceStore`` so that views can edit them at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="DECOMP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_file: str | None = None
    """Optional log file; offered as the "Show log" target on error notifications."""

    # -- Workspace -------------------------------------------------------------
    workspace_root: str = "."
    """Project directory containing ``objdiff.json``."""

    storage_dir: str = "~/.cache/decomp-sync"
    """Shared output directory.  Per-workspace files are namespaced by a hash of the root path."""

    user_settings: str = "~/.config/decomp-sync/settings.json"
    """User-level preference file.  Workspace settings override it key by key."""

    executor: ExecutorKind = ExecutorKind.CAPTURE
    """``capture`` collects build output for views; ``terminal`` streams it to this process's console."""

    debounce_delay: float = 0.5
    """Seconds to coalesce persisted-state writes."""

    # -- Server ----------------------------------------------------------------
    host: str = "127.0.0.1"
    port: int = 8765
    graceful_shutdown_timeout: int = 60
    """Seconds to wait for an in-flight build to finish during shutdown."""

    # -- Helpers ---------------------------------------------------------------

    @property
    def root_path(self) -> Path:
        return Path(self.workspace_root).expanduser().resolve()

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_dir).expanduser()

    @property
    def user_settings_path(self) -> Path:
        return Path(self.user_settings).expanduser()


@lru_cache(maxsize=1)
def get_settings() -> DecompSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests to force a re-read after
    overriding env vars.
    """
    return DecompSettings()

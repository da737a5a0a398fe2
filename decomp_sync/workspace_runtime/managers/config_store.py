"""Project config store -- loads and watches ``objdiff.json``.

``load`` distinguishes "no config" from "broken config":

- The file is missing: the config is cleared (``None``).  Not an error.
- The path is not a regular file, cannot be read, is not valid JSON or does
  not match the schema: ``ConfigLoadError`` is raised and the previously
  loaded config is kept.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from pathlib import Path

from anyio import to_thread
from loguru import logger
from pydantic import ValidationError
from watchfiles import Change

from decomp_sync.workspace_runtime.execution.resolver import resolve_project_config
from decomp_sync.workspace_runtime.models.config import CONFIG_FILENAME, ProjectConfig
from decomp_sync.workspace_runtime.watcher import ChangeCallback, Watcher, WatcherFactory


class ConfigLoadError(RuntimeError):
    """The config file exists but could not be loaded."""


class ConfigStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.path = root / CONFIG_FILENAME
        self._config: ProjectConfig | None = None

    @property
    def config(self) -> ProjectConfig | None:
        return self._config

    async def load(self) -> ProjectConfig | None:
        """Read, validate and resolve the config file.

        Returns the new config (``None`` if the file is missing).  Raises
        ``ConfigLoadError`` for any other failure, leaving the current config
        untouched.
        """
        try:
            config = await to_thread.run_sync(partial(_read_config, self.path))
        except FileNotFoundError:
            logger.warning("Config {} not found", self.path)
            self._config = None
            return None

        logger.info("Loaded config {} ({} units)", self.path, len(config.units or []))
        self._config = config
        return config

    def watch(self, factory: WatcherFactory, callback: ChangeCallback) -> Watcher:
        """Create (but do not start) a watcher for the config file."""
        return factory(
            [self.root],
            callback,
            recursive=False,
            watch_filter=_name_filter(CONFIG_FILENAME),
            name="config",
        )


def _name_filter(name: str) -> Callable[[Change, str], bool]:
    def accept(_change: Change, path: str) -> bool:
        return Path(path).name == name

    return accept


def _read_config(path: Path) -> ProjectConfig:
    try:
        st = path.stat()
    except FileNotFoundError:
        raise
    except OSError as exc:
        msg = f"Failed to stat {path}: {exc}"
        raise ConfigLoadError(msg) from exc

    if not path.is_file():
        msg = f"{path} is not a file (mode={st.st_mode:o})"
        raise ConfigLoadError(msg)

    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        raise
    except OSError as exc:
        msg = f"Failed to read {path}: {exc}"
        raise ConfigLoadError(msg) from exc

    try:
        config = ProjectConfig.model_validate_json(raw)
    except ValidationError as exc:
        msg = f"Invalid config {path}: {exc.error_count()} error(s)\n{exc}"
        raise ConfigLoadError(msg) from exc
    return resolve_project_config(config)

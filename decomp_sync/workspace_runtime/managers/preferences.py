"""Preference store -- diff preferences from the host's JSON settings files.

Two files are merged, workspace over user::

    ~/.config/decomp-sync/settings.json      (user)
    <root>/.decomp-sync/settings.json        (workspace)

Only the ``objdiff`` section is read.  Nested groups are flattened one level
into dotted ids, and top-level dotted keys are accepted too, so all of these
set the same property::

    {"objdiff": {"arm": {"archVersion": "v7"}}}
    {"objdiff": {"arm.archVersion": "v7"}}
    {"objdiff.arm.archVersion": "v7"}
"""

from __future__ import annotations

import json
from functools import partial
from pathlib import Path
from typing import Any

from anyio import to_thread
from loguru import logger

from decomp_sync.workspace_runtime.models.preferences import (
    CONFIG_SCHEMA,
    EXTENSION_PROPERTIES,
    SETTINGS_SECTION,
    ConfigProperties,
    ConfigPropertyBoolean,
    ConfigSchema,
    PropertyValue,
    get_modified_config_properties,
)
from decomp_sync.workspace_runtime.store.local import atomic_write
from decomp_sync.workspace_runtime.watcher import ChangeCallback, Watcher, WatcherFactory

WORKSPACE_SETTINGS_DIR = ".decomp-sync"
SETTINGS_FILENAME = "settings.json"


class UnknownPropertyError(LookupError):
    """A property id outside the preference schema."""


class SettingsFileError(ValueError):
    """A settings file exists but cannot be read as a JSON object."""


class PreferenceStore:
    def __init__(self, user_path: Path, workspace_path: Path, schema: ConfigSchema = CONFIG_SCHEMA) -> None:
        self.user_path = user_path
        self.workspace_path = workspace_path
        self._schema = schema
        self._properties: ConfigProperties = {}

    @classmethod
    def for_workspace(cls, root: Path, user_path: Path) -> PreferenceStore:
        return cls(user_path, root / WORKSPACE_SETTINGS_DIR / SETTINGS_FILENAME)

    @property
    def properties(self) -> ConfigProperties:
        return dict(self._properties)

    @property
    def modified(self) -> ConfigProperties:
        """Schema properties whose value differs from the default."""
        return get_modified_config_properties(self._properties, self._schema)

    # -- Load ------------------------------------------------------------------

    async def load(self) -> ConfigProperties:
        merged: ConfigProperties = {}
        for path in (self.user_path, self.workspace_path):
            data = await to_thread.run_sync(partial(_read_settings, path))
            merged.update(flatten_section(data))
        self._properties = merged
        logger.debug("Loaded {} preference(s) ({} modified)", len(merged), len(self.modified))
        return self.properties

    # -- Update ----------------------------------------------------------------

    async def set_property(self, property_id: str, value: PropertyValue | None) -> ConfigProperties:
        """Write *value* to the workspace settings file.  ``None`` restores the default.

        Raises ``UnknownPropertyError`` for ids outside the schema,
        ``ValueError`` for values of the wrong type or unknown choices, and
        ``SettingsFileError`` when the existing workspace file cannot be parsed.
        """
        self.validate(property_id, value)
        await to_thread.run_sync(partial(_update_settings, self.workspace_path, property_id, value))
        logger.info("Preference {} set to {!r}", property_id, value)
        return await self.load()

    def validate(self, property_id: str, value: PropertyValue | None) -> None:
        prop = self._schema.get(property_id)
        if prop is None:
            if property_id in EXTENSION_PROPERTIES:
                if value is not None and not isinstance(value, str):
                    msg = f"{property_id} must be a string"
                    raise ValueError(msg)
                return
            msg = f"Unknown property {property_id!r}"
            raise UnknownPropertyError(msg)
        if value is None:
            return
        if isinstance(prop, ConfigPropertyBoolean):
            if not isinstance(value, bool):
                msg = f"{property_id} must be a boolean"
                raise ValueError(msg)
        elif not prop.allows(value):
            msg = f"{value!r} is not a valid choice for {property_id}"
            raise ValueError(msg)

    # -- Watch -----------------------------------------------------------------

    def watch(self, factory: WatcherFactory, callback: ChangeCallback) -> Watcher | None:
        """Create (but do not start) a watcher over both settings files.

        Missing settings directories are created first so a file written
        later is still seen.  Returns None only when no directory can be made.
        """
        targets = {self.user_path.resolve(), self.workspace_path.resolve()}
        parents = sorted({p.parent for p in targets if _ensure_dir(p.parent)})
        if not parents:
            return None

        def accept(_change: object, path: str) -> bool:
            return Path(path).resolve() in targets

        return factory(parents, callback, recursive=False, watch_filter=accept, name="preferences")


def flatten_section(data: dict[str, Any]) -> ConfigProperties:
    """Extract the ``objdiff`` section and flatten nested groups one level."""
    flat: ConfigProperties = {}
    section = data.get(SETTINGS_SECTION)
    if isinstance(section, dict):
        _flatten_into(flat, section)

    prefix = SETTINGS_SECTION + "."
    for key, value in data.items():
        if key.startswith(prefix):
            _flatten_into(flat, {key[len(prefix) :]: value})
    return flat


def _flatten_into(flat: ConfigProperties, section: dict[str, Any]) -> None:
    for key, value in section.items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                if _is_scalar(sub_value):
                    flat[f"{key}.{sub_key}"] = sub_value
        elif _is_scalar(value):
            flat[key] = value


def _is_scalar(value: object) -> bool:
    return isinstance(value, bool | str | int | float)


# -- Sync helpers (run in thread pool) -----------------------------------------


def _ensure_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning("Cannot watch settings directory {}: {}", path, exc)
        return False
    return True


def _parse_settings(path: Path) -> dict[str, Any]:
    """Strict read: a missing or empty file is ``{}``, anything unusable raises."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        msg = f"Failed to read settings {path}: {exc}"
        raise SettingsFileError(msg) from exc
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Invalid settings file {path}: {exc}"
        raise SettingsFileError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Settings file {path}: top level is not an object"
        raise SettingsFileError(msg)
    return data


def _read_settings(path: Path) -> dict[str, Any]:
    try:
        return _parse_settings(path)
    except SettingsFileError as exc:
        logger.warning("Ignoring settings: {}", exc)
        return {}


def _update_settings(path: Path, property_id: str, value: PropertyValue | None) -> None:
    # Unparseable files are left untouched.
    data = _parse_settings(path)
    section = data.get(SETTINGS_SECTION)
    if not isinstance(section, dict):
        section = {}
        data[SETTINGS_SECTION] = section

    # Drop every spelling of the id so the new value is the only one left.
    data.pop(f"{SETTINGS_SECTION}.{property_id}", None)
    group, _, key = property_id.partition(".")
    if key and isinstance(section.get(group), dict):
        section[group].pop(key, None)
        if not section[group]:
            del section[group]

    if value is None:
        section.pop(property_id, None)
    else:
        section[property_id] = value
    atomic_write(path, json.dumps(data, indent=2) + "\n")


def ensure_settings_file(path: Path) -> Path:
    """Create an empty settings file if none exists.  Returns *path*."""
    if not path.exists():
        atomic_write(path, json.dumps({SETTINGS_SECTION: {}}, indent=2) + "\n")
    return path


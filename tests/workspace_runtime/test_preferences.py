"""Unit tests for PreferenceStore and the modified-preference subset."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from decomp_sync.workspace_runtime.managers.preferences import (
    PreferenceStore,
    SettingsFileError,
    UnknownPropertyError,
    ensure_settings_file,
    flatten_section,
)
from decomp_sync.workspace_runtime.models.preferences import CONFIG_SCHEMA, get_modified_config_properties


@pytest.fixture
def user_path(tmp_path: Path) -> Path:
    return tmp_path / "user" / "settings.json"


@pytest.fixture
def prefs(root: Path, user_path: Path) -> PreferenceStore:
    return PreferenceStore.for_workspace(root, user_path)


def _write(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def test_flatten_nested_and_dotted_forms() -> None:
    data = {
        "objdiff": {"functionRelocDiffs": "none", "arm": {"archVersion": "v5te"}, "ppc.analyzeDataFlow": True},
        "objdiff.mips.abi": "o32",
        "editor.fontSize": 12,
        "other": {"x": 1},
    }

    assert flatten_section(data) == {
        "functionRelocDiffs": "none",
        "arm.archVersion": "v5te",
        "ppc.analyzeDataFlow": True,
        "mips.abi": "o32",
    }


def test_flatten_goes_one_level_deep() -> None:
    data = {"objdiff": {"arm": {"nested": {"too": "deep"}, "archVersion": "v4t"}}}
    assert flatten_section(data) == {"arm.archVersion": "v4t"}


async def test_missing_files_yield_no_properties(prefs: PreferenceStore) -> None:
    assert await prefs.load() == {}
    assert prefs.modified == {}


async def test_workspace_overrides_user(prefs: PreferenceStore, user_path: Path) -> None:
    _write(user_path, {"objdiff": {"spaceBetweenArgs": False, "x86.formatter": "gas"}})
    _write(prefs.workspace_path, {"objdiff": {"x86.formatter": "nasm"}})

    properties = await prefs.load()

    assert properties == {"spaceBetweenArgs": False, "x86.formatter": "nasm"}


async def test_invalid_settings_file_is_ignored(prefs: PreferenceStore, user_path: Path) -> None:
    user_path.parent.mkdir(parents=True)
    user_path.write_text("{oops", encoding="utf-8")
    _write(prefs.workspace_path, {"objdiff": {"mips.abi": "n64"}})

    assert await prefs.load() == {"mips.abi": "n64"}


async def test_modified_excludes_defaults_and_extension_settings(prefs: PreferenceStore, user_path: Path) -> None:
    _write(
        user_path,
        {
            "objdiff": {
                "binaryPath": "/opt/objdiff-cli",
                "spaceBetweenArgs": False,
                "combineDataSections": False,
                "functionRelocDiffs": "name_address",
                "arm.r9Usage": "sb",
                "unknownThing": True,
            }
        },
    )
    await prefs.load()

    assert prefs.modified == {"spaceBetweenArgs": False, "arm.r9Usage": "sb"}


def test_get_modified_config_properties_uses_schema_defaults() -> None:
    defaults = CONFIG_SCHEMA.defaults()
    assert get_modified_config_properties(defaults) == {}

    changed = {**defaults, "ppc.calculatePoolRelocations": False}
    assert get_modified_config_properties(changed) == {"ppc.calculatePoolRelocations": False}


async def test_set_property_writes_workspace_settings(prefs: PreferenceStore) -> None:
    properties = await prefs.set_property("arm.archVersion", "v6k")

    assert properties["arm.archVersion"] == "v6k"
    on_disk = json.loads(prefs.workspace_path.read_text())
    assert on_disk == {"objdiff": {"arm.archVersion": "v6k"}}


async def test_set_property_replaces_other_spellings(prefs: PreferenceStore) -> None:
    _write(
        prefs.workspace_path,
        {"objdiff": {"arm": {"archVersion": "v4t", "unifiedSyntax": True}}, "objdiff.arm.archVersion": "v5te"},
    )

    properties = await prefs.set_property("arm.archVersion", "v6k")

    assert properties == {"arm.archVersion": "v6k", "arm.unifiedSyntax": True}


@pytest.mark.parametrize(
    "content",
    [
        '{"objdiff": {"mips.abi": "o32",}, "editor.fontSize": 14}',
        '["objdiff"]',
    ],
)
async def test_set_property_leaves_unparseable_file_untouched(prefs: PreferenceStore, content: str) -> None:
    prefs.workspace_path.parent.mkdir(parents=True)
    prefs.workspace_path.write_text(content, encoding="utf-8")

    with pytest.raises(SettingsFileError):
        await prefs.set_property("spaceBetweenArgs", False)

    assert prefs.workspace_path.read_text(encoding="utf-8") == content


async def test_set_property_none_restores_default(prefs: PreferenceStore) -> None:
    await prefs.set_property("spaceBetweenArgs", False)
    properties = await prefs.set_property("spaceBetweenArgs", None)

    assert "spaceBetweenArgs" not in properties
    assert prefs.modified == {}


async def test_set_binary_path(prefs: PreferenceStore) -> None:
    properties = await prefs.set_property("binaryPath", "/usr/local/bin/objdiff-cli")
    assert properties["binaryPath"] == "/usr/local/bin/objdiff-cli"


async def test_unknown_property_is_rejected(prefs: PreferenceStore) -> None:
    with pytest.raises(UnknownPropertyError):
        await prefs.set_property("noSuchThing", True)
    assert not prefs.workspace_path.exists()


@pytest.mark.parametrize(
    ("property_id", "value"),
    [
        ("spaceBetweenArgs", "yes"),
        ("functionRelocDiffs", "bogus"),
        ("mips.abi", True),
        ("binaryPath", 3),
    ],
)
async def test_invalid_values_are_rejected(prefs: PreferenceStore, property_id: str, value: object) -> None:
    with pytest.raises(ValueError):
        await prefs.set_property(property_id, value)


def test_watcher_creates_missing_settings_dirs(prefs: PreferenceStore, user_path: Path, root: Path, watchers) -> None:
    assert not user_path.parent.exists()
    assert not prefs.workspace_path.parent.exists()

    watcher = prefs.watch(watchers, lambda change, path: None)

    assert user_path.parent.is_dir()
    assert prefs.workspace_path.parent.is_dir()
    assert sorted(watcher.paths) == sorted([user_path.parent.resolve(), (root / ".decomp-sync").resolve()])
    assert watcher.accepts(user_path)
    assert watcher.accepts(prefs.workspace_path)
    assert not watcher.accepts(user_path.parent / "other.json")


def test_ensure_settings_file(tmp_path: Path) -> None:
    path = ensure_settings_file(tmp_path / ".decomp-sync" / "settings.json")
    assert json.loads(path.read_text()) == {"objdiff": {}}

    path.write_text('{"objdiff": {"mips.abi": "o32"}}')
    ensure_settings_file(path)
    assert json.loads(path.read_text()) == {"objdiff": {"mips.abi": "o32"}}

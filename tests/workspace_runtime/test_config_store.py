"""Unit tests for ConfigStore: load outcomes and the config-file watcher."""

from __future__ import annotations

from pathlib import Path

import pytest

from decomp_sync.workspace_runtime.managers.config_store import ConfigLoadError, ConfigStore


@pytest.fixture
def store(root: Path) -> ConfigStore:
    return ConfigStore(root)


async def test_missing_file_clears_config(store: ConfigStore) -> None:
    assert await store.load() is None
    assert store.config is None


async def test_valid_file_is_resolved(store: ConfigStore, config_writer, sample_config) -> None:
    config_writer(sample_config)

    config = await store.load()

    assert config is store.config
    assert config.build_command == "ninja"
    foo = config.find_unit("main/foo")
    assert foo.target_path == "build/asm/foo.o"
    assert foo.base_path == "build/src/foo.o"
    assert foo.source_path == "src/foo.c"


async def test_invalid_json_keeps_previous_config(store: ConfigStore, config_writer, sample_config) -> None:
    config_writer(sample_config)
    previous = await store.load()

    config_writer("{not json")
    with pytest.raises(ConfigLoadError):
        await store.load()
    assert store.config is previous


async def test_schema_error_is_a_load_error(store: ConfigStore, config_writer) -> None:
    config_writer({"units": "not-a-list"})

    with pytest.raises(ConfigLoadError, match="Invalid config"):
        await store.load()
    assert store.config is None


async def test_directory_in_place_of_file(store: ConfigStore, root: Path) -> None:
    (root / "objdiff.json").mkdir()

    with pytest.raises(ConfigLoadError, match="not a file"):
        await store.load()


async def test_deleted_file_clears_previous_config(store: ConfigStore, config_writer, sample_config) -> None:
    path = config_writer(sample_config)
    await store.load()

    path.unlink()
    assert await store.load() is None
    assert store.config is None


async def test_legacy_objects_key(store: ConfigStore, config_writer) -> None:
    config_writer({"objects": [{"path": "a.o", "complete": True}]})

    config = await store.load()

    assert [u.name for u in config.units] == ["a.o"]
    assert config.units[0].metadata.complete is True


def test_watcher_filters_on_config_filename(store: ConfigStore, root: Path, watchers) -> None:
    watcher = store.watch(watchers, lambda change, path: None)

    assert watcher.paths == [root]
    assert watcher.recursive is False
    assert watcher.accepts(root / "objdiff.json")
    assert not watcher.accepts(root / "other.json")

"""Shared test fixtures: isolated service settings.

Every test gets its own storage directory and user settings file through
``DECOMP_*`` environment variables, and the cached settings instance is
cleared around it so overrides take effect.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from decomp_sync.workspace_runtime.settings import get_settings


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("DECOMP_STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.setenv("DECOMP_USER_SETTINGS", str(tmp_path / "user" / "settings.json"))
    monkeypatch.setenv("DECOMP_DEBOUNCE_DELAY", "0.01")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

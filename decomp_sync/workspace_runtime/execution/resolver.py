"""Config resolver -- normalizes a freshly parsed ``objdiff.json``.

Resolution rules:

1. ``watch_patterns`` defaults to ``DEFAULT_WATCH_PATTERNS``.
2. ``build_target`` defaults to ``False``; ``build_base`` to ``True``.
3. ``units`` falls back to the legacy ``objects`` list, then ``[]``.
4. Each unit gets a display ``name`` (name, else path, else ``<unnamed>``).
5. A unit's shared ``path`` is joined with ``target_dir`` / ``base_dir`` into
   ``target_path`` / ``base_path`` -- only where the explicit path is absent.
6. Legacy unit-level ``complete`` / ``reverse_fn_order`` are folded into
   ``metadata`` -- only where the metadata field is absent.

The function is pure and idempotent: resolving an already-resolved config
returns an equal config.  Downstream code must never re-derive unit paths.
"""

from __future__ import annotations

from decomp_sync.workspace_runtime.models.config import (
    DEFAULT_WATCH_PATTERNS,
    UNNAMED_UNIT,
    ProjectConfig,
    Unit,
    UnitMetadata,
)


def resolve_project_config(config: ProjectConfig) -> ProjectConfig:
    """Return a normalized copy of *config*."""
    units = config.units if config.units is not None else (config.objects or [])
    return config.model_copy(
        update={
            "watch_patterns": list(DEFAULT_WATCH_PATTERNS) if config.watch_patterns is None else config.watch_patterns,
            "build_target": False if config.build_target is None else config.build_target,
            "build_base": True if config.build_base is None else config.build_base,
            "units": [_resolve_unit(config, unit) for unit in units],
        }
    )


def _resolve_unit(config: ProjectConfig, unit: Unit) -> Unit:
    target_path = unit.target_path
    base_path = unit.base_path
    if unit.path:
        if config.target_dir and not target_path:
            target_path = f"{config.target_dir}/{unit.path}"
        if config.base_dir and not base_path:
            base_path = f"{config.base_dir}/{unit.path}"

    return unit.model_copy(
        update={
            "name": unit.name or unit.path or UNNAMED_UNIT,
            "target_path": target_path,
            "base_path": base_path,
            "metadata": _fold_legacy_metadata(unit),
        }
    )


def _fold_legacy_metadata(unit: Unit) -> UnitMetadata:
    metadata = unit.metadata or UnitMetadata()
    changes: dict[str, bool] = {}
    if unit.complete is not None and metadata.complete is None:
        changes["complete"] = unit.complete
    if unit.reverse_fn_order is not None and metadata.reverse_fn_order is None:
        changes["reverse_fn_order"] = unit.reverse_fn_order
    return metadata.model_copy(update=changes) if changes else metadata

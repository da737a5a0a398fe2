"""Project configuration models (``objdiff.json``).

These mirror the on-disk JSON schema.  Every field is optional on input;
``resolve_project_config`` fills defaults and folds legacy fields so that the
rest of the runtime only ever sees the normalized shape.  Unknown keys are
kept (``extra="allow"``) so newer config files round-trip to views intact.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

CONFIG_FILENAME = "objdiff.json"

UNNAMED_UNIT = "<unnamed>"

DEFAULT_WATCH_PATTERNS: tuple[str, ...] = (
    "*.c",
    "*.cp",
    "*.cpp",
    "*.cxx",
    "*.h",
    "*.hp",
    "*.hpp",
    "*.hxx",
    "*.s",
    "*.S",
    "*.asm",
    "*.inc",
    "*.py",
    "*.yml",
    "*.txt",
    "*.json",
)

DEFAULT_BUILD_COMMAND = "make"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class Scratch(_ConfigModel):
    """Settings for creating a scratch on an external decompilation-sharing site."""

    platform: str | None = None
    compiler: str | None = None
    c_flags: str | None = None
    ctx_path: str | None = None
    build_ctx: bool | None = None


class UnitMetadata(_ConfigModel):
    complete: bool | None = None
    reverse_fn_order: bool | None = None
    source_path: str | None = Field(default=None, description="Source file that produces this unit, from the project root")
    progress_categories: list[str] | None = None
    auto_generated: bool | None = Field(default=None, description="Hidden from pickers but still reported")


class Unit(_ConfigModel):
    """One comparable translation unit: a target/base object pair."""

    name: str | None = None
    path: str | None = Field(default=None, description="Shared path, joined with target_dir / base_dir")
    target_path: str | None = None
    base_path: str | None = None
    reverse_fn_order: bool | None = Field(default=None, description="Legacy; use metadata.reverse_fn_order")
    complete: bool | None = Field(default=None, description="Legacy; use metadata.complete")
    scratch: Scratch | None = None
    metadata: UnitMetadata | None = None
    symbol_mappings: dict[str, str] | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.path or UNNAMED_UNIT

    @property
    def source_path(self) -> str | None:
        return self.metadata.source_path if self.metadata else None

    @property
    def auto_generated(self) -> bool:
        return bool(self.metadata and self.metadata.auto_generated)


class ProgressCategory(_ConfigModel):
    id: str | None = None
    name: str | None = None


class ProjectConfig(_ConfigModel):
    """Top-level ``objdiff.json`` document."""

    min_version: str | None = None
    custom_make: str | None = None
    custom_args: list[str] | None = None
    target_dir: str | None = None
    base_dir: str | None = None
    build_target: bool | None = None
    build_base: bool | None = None
    watch_patterns: list[str] | None = None
    objects: list[Unit] | None = Field(default=None, description="Legacy alias of units")
    units: list[Unit] | None = None
    progress_categories: list[ProgressCategory] | None = None

    @property
    def build_command(self) -> str:
        return self.custom_make or DEFAULT_BUILD_COMMAND

    def find_unit(self, name: str) -> Unit | None:
        """Return the unit whose name matches exactly."""
        for unit in self.units or []:
            if unit.name == name:
                return unit
        return None

    def find_unit_by_source(self, source_path: str) -> Unit | None:
        for unit in self.units or []:
            if unit.source_path == source_path:
                return unit
        return None

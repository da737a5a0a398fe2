"""Editor integration state.

The editor plugin reports the focused document through ``POST
/api/editor/active``; views push highlighted line ranges with ``lineRanges``
and the plugin polls them back through ``GET /api/editor/line-ranges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from decomp_sync.workspace_runtime.models.messages import LineRange

FILE_SCHEME = "file"


@dataclass
class EditorState:
    active_file: Path | None = None
    scheme: str = FILE_SCHEME
    line_ranges: list[LineRange] = field(default_factory=list)

    def set_active(self, path: str | Path | None, scheme: str = FILE_SCHEME) -> None:
        self.active_file = Path(path) if path else None
        self.scheme = scheme

    def relative_to(self, root: Path) -> str | None:
        """Workspace-relative POSIX path of the active file, or None if outside *root*."""
        if self.active_file is None:
            return None
        try:
            return self.active_file.resolve().relative_to(root).as_posix()
        except ValueError:
            return None

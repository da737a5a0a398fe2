"""Editor integration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from decomp_sync.workspace_runtime.deps import WorkspaceDep
from decomp_sync.workspace_runtime.models.api import ActiveFileUpdate, LineRangesResponse

router = APIRouter(prefix="/editor", tags=["editor"])


@router.post("/active", status_code=status.HTTP_204_NO_CONTENT)
async def handle_active_file(body: ActiveFileUpdate, workspace: WorkspaceDep) -> None:
    workspace.set_active_file(body.path, body.scheme)


@router.get("/line-ranges", response_model=LineRangesResponse)
async def handle_line_ranges(workspace: WorkspaceDep) -> LineRangesResponse:
    return LineRangesResponse(ranges=workspace.editor.line_ranges)

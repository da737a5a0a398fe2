"""Command endpoints -- the actions an editor exposes as commands."""

from __future__ import annotations

from fastapi import APIRouter, Query

from decomp_sync.workspace_runtime.deps import WorkspaceDep
from decomp_sync.workspace_runtime.models.api import (
    BuildResponse,
    CopySymbolRequest,
    CopySymbolResponse,
    OpenSettingsResponse,
)

router = APIRouter(prefix="/commands", tags=["commands"])


@router.post("/build", response_model=BuildResponse)
async def handle_build(
    workspace: WorkspaceDep,
    wait: bool = Query(False, description="Wait for the build to finish."),
) -> BuildResponse:
    if wait:
        return BuildResponse(accepted=await workspace.build())
    return BuildResponse(accepted=workspace.trigger_build())


@router.post("/copy-symbol", response_model=CopySymbolResponse)
async def handle_copy_symbol(body: CopySymbolRequest, workspace: WorkspaceDep) -> CopySymbolResponse:
    text = workspace.copy_symbol(body.symbol_name, body.symbol_demangled_name, demangled=body.demangled)
    return CopySymbolResponse(text=text)


@router.post("/open-settings", response_model=OpenSettingsResponse)
async def handle_open_settings(workspace: WorkspaceDep) -> OpenSettingsResponse:
    path = await workspace.open_settings()
    return OpenSettingsResponse(path=str(path))

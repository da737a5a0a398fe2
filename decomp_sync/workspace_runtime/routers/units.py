"""Unit endpoints (RPC-style).

Thin HTTP adapter -- delegates to the workspace's unit selector.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from decomp_sync.workspace_runtime.deps import WorkspaceDep
from decomp_sync.workspace_runtime.models.api import ResolveActiveResponse, UnitSelect, UnitSummary

router = APIRouter(prefix="/units", tags=["units"])


@router.get("/list", response_model=list[UnitSummary])
async def handle_list_units(
    workspace: WorkspaceDep,
    include_hidden: bool = Query(False, description="Include auto-generated units."),
) -> list[UnitSummary]:
    config = workspace.broadcaster.state.project_config
    if config is None:
        return []
    units = (config.units or []) if include_hidden else workspace.selector.pickable_units()
    return [UnitSummary.from_unit(unit) for unit in units]


@router.post("/select", response_model=UnitSummary)
async def handle_select_unit(body: UnitSelect, workspace: WorkspaceDep) -> UnitSummary:
    if workspace.broadcaster.state.project_config is None:
        raise HTTPException(status.HTTP_409_CONFLICT, detail="No configuration loaded.")
    unit = workspace.selector.find_by_name(body.name)
    if unit is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"Unit '{body.name}' not found.")
    workspace.selector.set_current_unit(unit)
    return UnitSummary.from_unit(unit)


@router.post("/clear", status_code=status.HTTP_204_NO_CONTENT)
async def handle_clear_unit(workspace: WorkspaceDep) -> None:
    workspace.selector.set_current_unit(None)


@router.post("/resolve-active", response_model=ResolveActiveResponse)
async def handle_resolve_active(workspace: WorkspaceDep) -> ResolveActiveResponse:
    resolved = workspace.selector.resolve_from_active_file()
    current = workspace.selector.current
    return ResolveActiveResponse(resolved=resolved, unit=current.display_name if resolved and current else None)

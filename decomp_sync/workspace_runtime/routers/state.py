from __future__ import annotations

from fastapi import APIRouter

from decomp_sync.workspace_runtime.deps import WorkspaceDep
from decomp_sync.workspace_runtime.models.api import StateSummary

router = APIRouter(tags=["state"])


@router.get("/state", response_model=StateSummary)
async def handle_get_state(workspace: WorkspaceDep) -> StateSummary:
    return workspace.summary()

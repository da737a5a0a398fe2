"""FastAPI dependency injection for the workspace.

Usage in route handlers::

    @router.get("/things")
    async def list_things(workspace: WorkspaceDep) -> list[Thing]:
        ...

The dependency raises HTTP 503 while the workspace is not open (before
startup completes or after shutdown began).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from decomp_sync.workspace_runtime.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    workspace: Workspace | None = getattr(request.app.state, "workspace", None)
    if workspace is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workspace not open.",
        )
    return workspace


# -- Annotated type aliases for concise route signatures ---------------------

WorkspaceDep = Annotated[Workspace, Depends(get_workspace)]
"""Annotated dependency: the open workspace."""

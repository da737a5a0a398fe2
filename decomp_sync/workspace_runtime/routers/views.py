"""View endpoints.

A view opens an SSE stream (``GET /views/{view_id}/events``), announces
itself with a ``ready`` message (``POST /views/{view_id}/messages``), then
receives a full snapshot followed by partial ``state`` updates.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Body, HTTPException, status
from sse_starlette.sse import EventSourceResponse

from decomp_sync.workspace_runtime.deps import WorkspaceDep
from decomp_sync.workspace_runtime.models.api import DispatchResponse

router = APIRouter(prefix="/views", tags=["views"])

_PING_SECONDS = 15


@router.get("/{view_id}/events")
async def handle_view_events(view_id: str, workspace: WorkspaceDep) -> EventSourceResponse:
    broadcaster = workspace.broadcaster
    connection = broadcaster.connect(view_id)

    async def events() -> AsyncIterator[dict[str, str]]:
        try:
            async for data in connection.messages():
                yield {"event": "message", "data": data}
        finally:
            broadcaster.disconnect(view_id, connection)

    return EventSourceResponse(events(), ping=_PING_SECONDS)


@router.post("/{view_id}/messages", response_model=DispatchResponse)
async def handle_view_message(
    view_id: str,
    workspace: WorkspaceDep,
    payload: dict[str, Any] = Body(..., description="Tagged view message."),
) -> DispatchResponse:
    if not workspace.broadcaster.is_connected(view_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=f"View '{view_id}' is not connected.")
    accepted = await workspace.broadcaster.dispatch(view_id, payload)
    return DispatchResponse(accepted=accepted)

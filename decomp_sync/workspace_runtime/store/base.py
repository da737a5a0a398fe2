"""State store interface for persisted workspace state.

The store holds the small amount of state that should survive a restart:
the selected unit's name and the views' opaque view state.  The interface is
async so that slow backends never block the event loop.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from decomp_sync.workspace_runtime.models.state import PersistedState


@runtime_checkable
class StateStore(Protocol):
    """Async protocol for reading and writing persisted workspace state.

    Storage layout (keyed by workspace key)::

        {root}/workspaces/{key}/state.json
    """

    async def write_state(self, key: str, state: PersistedState) -> None:
        """Write the persisted state for a workspace."""
        ...

    async def read_state(self, key: str) -> PersistedState:
        """Read persisted state.  Raises ``FileNotFoundError`` if not found."""
        ...

    async def delete(self, key: str) -> None:
        """Delete stored state for a workspace.  No-op if not found."""
        ...

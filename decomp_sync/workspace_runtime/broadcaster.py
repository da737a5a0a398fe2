"""State broadcaster -- owns the canonical ``WorkspaceState`` and the view registry.

Views connect explicitly and start *uninitialized*: they receive nothing until
they send ``ready``, at which point they get one full snapshot.  From then on
every ``publish`` delivers a partial ``state`` message to each ready view.

Inbound view messages go through ``dispatch``, which parses the tagged
envelope and routes it to a ``ViewCommandHandler`` (the workspace).  Protocol
errors and handler failures are logged, never raised to the transport.

Ephemeral -- views reconnect after a restart and receive a fresh snapshot.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from decomp_sync.workspace_runtime.models.config import Unit
from decomp_sync.workspace_runtime.models.messages import (
    LineRange,
    LineRangesMessage,
    OpenSettingsMessage,
    ProtocolError,
    QuickPickUnitMessage,
    ReadyMessage,
    RunTaskMessage,
    SaveViewStateMessage,
    ServiceMessage,
    SetConfigPropertyMessage,
    SetCurrentUnitMessage,
    StateMessage,
    parse_view_message,
)
from decomp_sync.workspace_runtime.models.preferences import PropertyValue
from decomp_sync.workspace_runtime.models.state import STATE_FIELDS, WorkspaceState


class ViewCommandHandler(Protocol):
    """Receiver of view commands.  Implemented by ``Workspace``."""

    async def run_task(self, task_type: str) -> None: ...

    async def set_current_unit(self, unit: Unit | str | None) -> None: ...

    async def quick_pick_unit(self, view_id: str) -> None: ...

    async def set_config_property(self, property_id: str, value: PropertyValue | None) -> None: ...

    async def open_settings(self) -> Path: ...

    async def line_ranges(self, ranges: list[LineRange]) -> None: ...

    async def save_view_state(self, data: dict[str, Any]) -> None: ...


VIEW_QUEUE_SIZE = 256


@dataclass
class ViewConnection:
    """One connected view and its bounded outbound queue of encoded messages."""

    view_id: str
    maxsize: int = VIEW_QUEUE_SIZE
    ready: bool = False
    queue: asyncio.Queue[str | None] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.queue = asyncio.Queue(self.maxsize)

    async def messages(self) -> AsyncIterator[str]:
        """Yield encoded messages until the connection is closed."""
        while True:
            item = await self.queue.get()
            if item is None:
                return
            yield item

    def offer(self, encoded: str) -> bool:
        """Queue *encoded*.  Returns False when the view has fallen too far behind."""
        try:
            self.queue.put_nowait(encoded)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        # A full queue is discarded so the end-of-stream marker always fits.
        if self.queue.full():
            while not self.queue.empty():
                self.queue.get_nowait()
        self.queue.put_nowait(None)


class StateBroadcaster:
    def __init__(self, state: WorkspaceState | None = None, *, queue_size: int = VIEW_QUEUE_SIZE) -> None:
        self.state = state or WorkspaceState()
        self._queue_size = queue_size
        self._views: dict[str, ViewConnection] = {}
        self._handler: ViewCommandHandler | None = None

    # -- Registration ----------------------------------------------------------

    def bind(self, handler: ViewCommandHandler) -> None:
        self._handler = handler

    def connect(self, view_id: str) -> ViewConnection:
        """Register a view.  A reconnect with the same id replaces the old connection."""
        previous = self._views.pop(view_id, None)
        if previous is not None:
            previous.close()
        connection = ViewConnection(view_id, maxsize=self._queue_size)
        self._views[view_id] = connection
        logger.debug("Broadcaster: view {} connected", view_id)
        return connection

    def disconnect(self, view_id: str, connection: ViewConnection | None = None) -> None:
        """Deregister a view.  With *connection*, only if it is still the registered one."""
        current = self._views.get(view_id)
        if current is None or (connection is not None and current is not connection):
            return
        del self._views[view_id]
        current.close()
        logger.debug("Broadcaster: view {} disconnected", view_id)

    def is_connected(self, view_id: str) -> bool:
        return view_id in self._views

    def is_ready(self, view_id: str) -> bool:
        connection = self._views.get(view_id)
        return connection is not None and connection.ready

    @property
    def view_count(self) -> int:
        return len(self._views)

    def close(self) -> None:
        """Close every view stream."""
        for connection in self._views.values():
            connection.close()
        self._views.clear()

    # -- Outbound --------------------------------------------------------------

    def publish(self, **changes: Any) -> None:
        """Apply *changes* to the canonical state and send the delta to ready views."""
        unknown = set(changes) - STATE_FIELDS
        if unknown:
            msg = f"Unknown state fields: {sorted(unknown)}"
            raise ValueError(msg)
        for name, value in changes.items():
            setattr(self.state, name, value)
        self.broadcast(StateMessage(**changes))

    def snapshot(self) -> StateMessage:
        return StateMessage(**{name: getattr(self.state, name) for name in STATE_FIELDS})

    def broadcast(self, message: ServiceMessage) -> int:
        """Send *message* to every ready view.  Returns the number of recipients.

        A view whose queue is full is disconnected; it gets a fresh snapshot
        when it reconnects.
        """
        encoded = message.encode()
        recipients = 0
        lagging: list[ViewConnection] = []
        for connection in self._views.values():
            if not connection.ready:
                continue
            if connection.offer(encoded):
                recipients += 1
            else:
                lagging.append(connection)
        for connection in lagging:
            self._drop_lagging(connection)
        return recipients

    def send(self, view_id: str, message: ServiceMessage) -> bool:
        connection = self._views.get(view_id)
        if connection is None or not connection.ready:
            return False
        if not connection.offer(message.encode()):
            self._drop_lagging(connection)
            return False
        return True

    def _drop_lagging(self, connection: ViewConnection) -> None:
        logger.warning(
            "Broadcaster: view {} fell behind ({} queued), disconnecting", connection.view_id, connection.queue.qsize()
        )
        self.disconnect(connection.view_id, connection)

    # -- Inbound ---------------------------------------------------------------

    async def dispatch(self, view_id: str, raw: Any) -> bool:
        """Route one inbound view message.  Returns False if it was rejected."""
        try:
            message = parse_view_message(raw)
        except ProtocolError as exc:
            logger.warning("Broadcaster: dropping message from view {}: {}", view_id, exc)
            return False

        if isinstance(message, ReadyMessage):
            return self._mark_ready(view_id)

        if self._handler is None:
            logger.warning("Broadcaster: no handler bound, dropping {} from view {}", message.type, view_id)
            return False

        handler = self._handler
        try:
            match message:
                case RunTaskMessage(task_type=task_type):
                    await handler.run_task(task_type)
                case SetCurrentUnitMessage(unit=unit):
                    await handler.set_current_unit(unit)
                case QuickPickUnitMessage():
                    await handler.quick_pick_unit(view_id)
                case SetConfigPropertyMessage(id=property_id, value=value):
                    await handler.set_config_property(property_id, value)
                case OpenSettingsMessage():
                    await handler.open_settings()
                case LineRangesMessage(data=ranges):
                    await handler.line_ranges(ranges)
                case SaveViewStateMessage(data=data):
                    await handler.save_view_state(data)
                case _:
                    logger.warning("Broadcaster: unhandled message type {!r} from view {}", message.type, view_id)
                    return False
        except Exception:
            logger.exception("Broadcaster: handling {} from view {} failed", message.type, view_id)
            return False
        return True

    def _mark_ready(self, view_id: str) -> bool:
        connection = self._views.get(view_id)
        if connection is None:
            logger.warning("Broadcaster: ready from unknown view {}", view_id)
            return False
        connection.ready = True
        if not connection.offer(self.snapshot().encode()):
            self._drop_lagging(connection)
            return False
        logger.debug("Broadcaster: view {} ready", view_id)
        return True


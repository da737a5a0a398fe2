"""View protocol messages.

Views and the service exchange JSON envelopes tagged by ``type``.  Keys are
camelCase on the wire and snake_case in Python.

- **View -> service** messages are parsed through a discriminated union
  (``parse_view_message``); anything that does not match a known tag is a
  ``ProtocolError``.
- **Service -> view** messages are encoded with ``encode``.  ``state`` is a
  *partial* update: only fields explicitly set on the model are written, so a
  receiver can tell "unchanged" (absent) from "cleared" (``null``).
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from decomp_sync.workspace_runtime.models.config import ProjectConfig, Unit
from decomp_sync.workspace_runtime.models.enums import NotificationLevel
from decomp_sync.workspace_runtime.models.preferences import ConfigProperties, PropertyValue
from decomp_sync.workspace_runtime.models.state import BuildStatus

SOURCE_UNIT = "source"
"""``setCurrentUnit`` sentinel: resolve the unit from the editor's active file."""


class ProtocolError(ValueError):
    """Raised when a view sends a message with an unknown or malformed ``type``."""


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineRange(_Message):
    start: int
    end: int


# ---------------------------------------------------------------------------
# View -> service
# ---------------------------------------------------------------------------


class ReadyMessage(_Message):
    type: Literal["ready"] = "ready"


class RunTaskMessage(_Message):
    type: Literal["runTask"] = "runTask"
    task_type: str


class SetCurrentUnitMessage(_Message):
    type: Literal["setCurrentUnit"] = "setCurrentUnit"
    unit: Unit | Literal["source"] | None = None


class QuickPickUnitMessage(_Message):
    type: Literal["quickPickUnit"] = "quickPickUnit"


class SetConfigPropertyMessage(_Message):
    type: Literal["setConfigProperty"] = "setConfigProperty"
    id: str
    value: PropertyValue | None = None


class OpenSettingsMessage(_Message):
    type: Literal["openSettings"] = "openSettings"


class LineRangesMessage(_Message):
    type: Literal["lineRanges"] = "lineRanges"
    data: list[LineRange] = Field(default_factory=list)


class SaveViewStateMessage(_Message):
    type: Literal["saveViewState"] = "saveViewState"
    data: dict[str, Any] = Field(default_factory=dict)


ViewMessage = Annotated[
    ReadyMessage
    | RunTaskMessage
    | SetCurrentUnitMessage
    | QuickPickUnitMessage
    | SetConfigPropertyMessage
    | OpenSettingsMessage
    | LineRangesMessage
    | SaveViewStateMessage,
    Field(discriminator="type"),
]

_VIEW_MESSAGE_ADAPTER: TypeAdapter[ViewMessage] = TypeAdapter(ViewMessage)


def parse_view_message(raw: Any) -> ViewMessage:
    """Validate a decoded JSON object into a typed view message.

    Raises ``ProtocolError`` for unknown tags or invalid payloads.
    """
    try:
        if isinstance(raw, str | bytes):
            return _VIEW_MESSAGE_ADAPTER.validate_json(raw)
        return _VIEW_MESSAGE_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        kind = raw.get("type") if isinstance(raw, dict) else None
        msg = f"Unrecognised view message (type={kind!r}): {exc.error_count()} validation error(s)"
        raise ProtocolError(msg) from exc


# ---------------------------------------------------------------------------
# Service -> view
# ---------------------------------------------------------------------------


class _ServiceMessage(_Message):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, ser_json_bytes="base64")

    def encode(self) -> str:
        """Serialize to the wire format, omitting fields that were never set."""
        return self.model_dump_json(by_alias=True, include={"type"} | self.model_fields_set)


class StateMessage(_ServiceMessage):
    type: Literal["state"] = "state"
    build_running: bool | None = None
    config_properties: ConfigProperties | None = None
    current_unit: Unit | None = None
    left_status: BuildStatus | None = None
    right_status: BuildStatus | None = None
    left_object: bytes | None = None
    right_object: bytes | None = None
    diff_output: bytes | None = None
    project_config: ProjectConfig | None = None
    view_state: dict[str, Any] | None = None


class NotificationMessage(_ServiceMessage):
    type: Literal["notification"] = "notification"
    level: NotificationLevel
    message: str
    actions: list[str] = Field(default_factory=list)


class PickUnitMessage(_ServiceMessage):
    type: Literal["pickUnit"] = "pickUnit"
    units: list[str]


ServiceMessage = StateMessage | NotificationMessage | PickUnitMessage

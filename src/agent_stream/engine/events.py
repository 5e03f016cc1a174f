"""Wire protocol: event models and Server-Sent Events framing."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

HEARTBEAT_FRAME = ": heartbeat\n\n"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class TextDeltaEvent(WireModel):
    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCallEvent(WireModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(WireModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any = None


class ToolErrorEvent(WireModel):
    type: Literal["tool-error"] = "tool-error"
    tool_call_id: str
    tool_name: str
    error: str


class StepFinishEvent(WireModel):
    type: Literal["step-finish"] = "step-finish"
    step_index: int = Field(ge=0)


class FinishEvent(WireModel):
    type: Literal["finish"] = "finish"
    finish_reason: str
    total_steps: int = Field(ge=0)
    refined_text: str | None = None


class ErrorEvent(WireModel):
    type: Literal["error"] = "error"
    error: str


class SlideContent(WireModel):
    title: str
    subtitle: str = ""
    bullet: str = ""


class SlidesStateEvent(WireModel):
    type: Literal["slides-state"] = "slides-state"
    status: Literal["starting", "generating", "done", "failed"]
    error: str | None = None


class SlideEvent(WireModel):
    type: Literal["slide"] = "slide"
    index: int = Field(ge=0)
    total: int
    content: SlideContent


class Heartbeat(WireModel):
    """Keep-alive marker; carries no run state."""

    type: Literal["heartbeat"] = "heartbeat"


WireEvent = Annotated[
    Union[
        TextDeltaEvent,
        ToolCallEvent,
        ToolResultEvent,
        ToolErrorEvent,
        StepFinishEvent,
        FinishEvent,
        ErrorEvent,
        SlidesStateEvent,
        SlideEvent,
    ],
    Field(discriminator="type"),
]
StreamItem = Union[WireEvent, Heartbeat]

HEARTBEAT = Heartbeat()

_WIRE_EVENT_ADAPTER: TypeAdapter[WireEvent] = TypeAdapter(WireEvent)


def encode_frame(event: StreamItem) -> str:
    if isinstance(event, Heartbeat):
        return HEARTBEAT_FRAME
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


def parse_event(payload: dict[str, Any] | str) -> WireEvent:
    if isinstance(payload, str):
        return _WIRE_EVENT_ADAPTER.validate_json(payload)
    return _WIRE_EVENT_ADAPTER.validate_python(payload)


def parse_sse_line(line: str) -> StreamItem | None:
    """Decode one line of an event stream.

    Comment lines are keep-alives; malformed or unknown frames are dropped so a
    newer server cannot break an older client.
    """
    if line.startswith(":"):
        return HEARTBEAT
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if not data:
        return None
    try:
        return parse_event(data)
    except (ValidationError, json.JSONDecodeError) as exc:
        logger.warning("wire_event event=unparseable_frame reason=%s", exc.__class__.__name__)
        return None

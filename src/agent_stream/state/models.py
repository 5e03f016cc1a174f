"""Run record models shared by the reducer, the client and transcript export."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RunStatus = Literal["idle", "running", "completed", "error"]
ToolCallStatus = Literal["executing", "done", "error"]
SlidesStatus = Literal["idle", "starting", "generating", "done", "failed"]


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_record(self) -> dict[str, Any]:
        """JSON-ready snapshot in the camelCase shape accepted by ``LoadRun``."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolCallState(RecordModel):
    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = "executing"
    result: Any = None
    error: str | None = None


class StepState(RecordModel):
    index: int = Field(ge=0)
    text: str = ""
    tool_calls: tuple[ToolCallState, ...] = ()
    started_at: int | None = None
    completed_at: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.tool_calls


class SlideState(RecordModel):
    index: int
    title: str
    subtitle: str = ""
    bullet: str = ""


class RunState(RecordModel):
    """One run as observed through its event stream.

    ``current_text`` only accumulates the open step's text and is reset at
    every step boundary; ``refined_text`` is set when the quality gate replaced
    the final answer.
    """

    id: str = ""
    task: str = ""
    mode: str = "normal"
    status: RunStatus = "idle"
    steps: tuple[StepState, ...] = ()
    current_text: str = ""
    finish_reason: str | None = None
    error: str | None = None
    refined_text: str | None = None
    slides: tuple[SlideState, ...] = ()
    slides_status: SlidesStatus = "idle"

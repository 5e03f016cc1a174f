"""Run records and the reducer that rebuilds them from wire events."""

from agent_stream.state.models import RunState, SlideState, StepState, ToolCallState
from agent_stream.state.reducer import (
    LoadRun,
    ResetRun,
    StartRun,
    initial_state,
    reduce,
    replay,
)
from agent_stream.state.transcript import final_answer, is_incomplete, to_transcript

__all__ = [
    "LoadRun",
    "ResetRun",
    "RunState",
    "SlideState",
    "StartRun",
    "StepState",
    "ToolCallState",
    "final_answer",
    "initial_state",
    "is_incomplete",
    "reduce",
    "replay",
    "to_transcript",
]

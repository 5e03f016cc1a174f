"""Pure run-state reducer: fold wire events into a structured run record."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Union

from pydantic import ValidationError

from agent_stream.engine.events import (
    ErrorEvent,
    FinishEvent,
    Heartbeat,
    SlideEvent,
    SlidesStateEvent,
    StepFinishEvent,
    StreamItem,
    TextDeltaEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
)
from agent_stream.state.models import RunState, SlideState, StepState, ToolCallState

Clock = Callable[[], int]

TERMINAL_STATUSES = frozenset({"completed", "error"})


@dataclass(frozen=True)
class StartRun:
    task: str
    mode: str = "normal"
    run_id: str = ""


@dataclass(frozen=True)
class LoadRun:
    run: RunState | dict[str, Any]


@dataclass(frozen=True)
class ResetRun:
    pass


RunAction = Union[StartRun, LoadRun, ResetRun, StreamItem]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def initial_state() -> RunState:
    return RunState()


def reduce(state: RunState, action: RunAction, *, now: Clock = epoch_ms) -> RunState:
    """Return the state after ``action``; never raises on unexpected events.

    ``now`` is the only source of time, so replaying the same actions with the
    same clock yields equal records.
    """
    if isinstance(action, StartRun):
        return RunState(
            id=action.run_id,
            task=action.task,
            mode=action.mode,
            status="running",
            steps=(StepState(index=0, started_at=now()),),
        )
    if isinstance(action, LoadRun):
        if isinstance(action.run, RunState):
            return action.run
        try:
            return RunState.model_validate(action.run)
        except ValidationError:
            return state
    if isinstance(action, ResetRun):
        return initial_state()
    if isinstance(action, Heartbeat) or state.status in TERMINAL_STATUSES:
        return state

    if isinstance(action, TextDeltaEvent):
        return _with_open_step(
            state,
            lambda step: step.model_copy(update={"text": step.text + action.text}),
            current_text=state.current_text + action.text,
        )
    if isinstance(action, ToolCallEvent):
        call = ToolCallState(id=action.tool_call_id, name=action.tool_name, args=action.args)
        return _with_open_step(
            state,
            lambda step: step.model_copy(update={"tool_calls": (*step.tool_calls, call)}),
        )
    if isinstance(action, ToolResultEvent):
        return _resolve_tool_call(
            state, action.tool_call_id, {"status": "done", "result": action.result}
        )
    if isinstance(action, ToolErrorEvent):
        return _resolve_tool_call(
            state, action.tool_call_id, {"status": "error", "error": action.error}
        )
    if isinstance(action, StepFinishEvent):
        return _finish_step(state, now)
    if isinstance(action, FinishEvent):
        return _finish_run(state, action, now)
    if isinstance(action, ErrorEvent):
        return state.model_copy(update={"status": "error", "error": action.error})
    if isinstance(action, SlidesStateEvent):
        update: dict[str, Any] = {"slides_status": action.status}
        if action.status == "starting":
            update["slides"] = ()
        return state.model_copy(update=update)
    if isinstance(action, SlideEvent):
        slide = SlideState(
            index=action.index,
            title=action.content.title,
            subtitle=action.content.subtitle,
            bullet=action.content.bullet,
        )
        kept = tuple(item for item in state.slides if item.index != slide.index)
        slides = tuple(sorted((*kept, slide), key=lambda item: item.index))
        return state.model_copy(update={"slides": slides})
    return state


def replay(
    events: Iterable[RunAction],
    state: RunState | None = None,
    *,
    now: Clock = epoch_ms,
) -> RunState:
    current = state if state is not None else initial_state()
    for event in events:
        current = reduce(current, event, now=now)
    return current


def _ensure_open_step(state: RunState) -> RunState:
    if state.steps:
        return state
    return state.model_copy(update={"steps": (StepState(index=0),)})


def _with_open_step(
    state: RunState,
    change: Callable[[StepState], StepState],
    **update: Any,
) -> RunState:
    current = _ensure_open_step(state)
    steps = (*current.steps[:-1], change(current.steps[-1]))
    return current.model_copy(update={"steps": steps, **update})


def _resolve_tool_call(state: RunState, call_id: str, update: dict[str, Any]) -> RunState:
    for step_pos, step in enumerate(state.steps):
        for call_pos, call in enumerate(step.tool_calls):
            if call.id != call_id:
                continue
            if call.status != "executing":
                return state
            calls = list(step.tool_calls)
            calls[call_pos] = call.model_copy(update=update)
            steps = list(state.steps)
            steps[step_pos] = step.model_copy(update={"tool_calls": tuple(calls)})
            return state.model_copy(update={"steps": tuple(steps)})
    return state


def _finish_step(state: RunState, now: Clock) -> RunState:
    current = _ensure_open_step(state)
    last = current.steps[-1]
    closed = last if last.completed_at is not None else last.model_copy(update={"completed_at": now()})
    opened = StepState(index=last.index + 1, started_at=now())
    return current.model_copy(
        update={"steps": (*current.steps[:-1], closed, opened), "current_text": ""}
    )


def _finish_run(state: RunState, action: FinishEvent, now: Clock) -> RunState:
    steps = list(state.steps)
    if steps and steps[-1].is_empty:
        steps.pop()
    if steps and steps[-1].completed_at is None:
        steps[-1] = steps[-1].model_copy(update={"completed_at": now()})
    return state.model_copy(
        update={
            "status": "completed",
            "steps": tuple(steps),
            "finish_reason": action.finish_reason,
            "refined_text": action.refined_text,
        }
    )

"""Typed state contract for the quality gate graph."""

from typing import Any, TypedDict


class GateState(TypedDict, total=False):
    original_task: str
    draft: str
    critique: dict[str, Any]
    final_output: str
    refined: bool
    threshold: int


def initial_state(draft: str, original_task: str, threshold: int = 90) -> GateState:
    return {
        "original_task": original_task,
        "draft": draft,
        "critique": {},
        "final_output": draft,
        "refined": False,
        "threshold": threshold,
    }

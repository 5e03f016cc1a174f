"""Flatten a run record into a readable, role-tagged transcript."""

from __future__ import annotations

from agent_stream.state.models import RunState

TURN_SEPARATOR = "\n\n---\n\n"


def final_answer(run: RunState) -> str:
    """Text the user should see as the answer: the refinement if any, else the last step's text."""
    if run.refined_text:
        return run.refined_text
    for step in reversed(run.steps):
        if step.text.strip():
            return step.text
    return ""


def is_incomplete(run: RunState) -> bool:
    """A stream that closed without ``finish`` or ``error`` leaves the run running."""
    return run.status == "running"


def to_transcript(run: RunState, *, title: str | None = None) -> str:
    task = run.task.strip()
    turns = [f"**You**\n\n{task}"]

    answer = final_answer(run).strip()
    if answer:
        turns.append(f"**Assistant**\n\n{answer}")
    elif run.status == "error" and run.error:
        turns.append(f"**Assistant**\n\nError: {run.error}")

    body = TURN_SEPARATOR.join(turns)
    heading = title or (task.splitlines()[0] if task else "Agent run")
    return f"# {heading}\n\n{body}\n"

"""Strict evaluator pass: score a draft answer on grounding, safety and completeness."""

from __future__ import annotations

import json
import logging
from typing import Any

from agent_stream.generation.types import GenerationAdapter, GenerationError
from agent_stream.graph.state import GateState

logger = logging.getLogger(__name__)

CRITIC_SYSTEM_PROMPT = """You are a Strict Logic Critic, a hostile peer reviewer acting as a separate reward model.

Evaluate an AI assistant's draft response against the user's original prompt.

## Evaluation Criteria

Score on three axes:

1. **Grounding (0-33)**: Is the response factually accurate? Does it avoid hallucination? Are claims verifiable or properly hedged?
2. **Safety (0-33)**: Is the response free of harmful, biased, or inappropriate content?
3. **Completeness (0-34)**: Does the response fully address the user's request? Are there missing aspects or incomplete reasoning?

## Output Format

Respond with ONLY a valid JSON object. No markdown fences, no explanation, no preamble:

{"grounding": <0-33>, "safety": <0-33>, "completeness": <0-34>, "score": <0-100>, "instructions": "<specific fix instructions if score < 90, otherwise PASS>"}

## Rules
- The "score" field MUST equal grounding + safety + completeness
- Only give high scores for genuinely excellent responses
- If the response is a simple greeting or acknowledgment, score it high on all axes
- The "instructions" field must contain actionable, specific feedback when score < 90"""

FAIL_OPEN: dict[str, Any] = {
    "grounding": 33,
    "safety": 33,
    "completeness": 29,
    "score": 95,
    "instructions": "PASS",
    "parsed": False,
}

_AXES = ("grounding", "safety", "completeness")


def build_critique_prompt(draft: str, original_task: str) -> str:
    return "\n".join(
        [
            "## Original User Prompt",
            original_task,
            "",
            "## Draft Response to Evaluate",
            draft,
        ]
    )


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            char = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        start = text.find("{", start + 1)
    return None


def parse_critique(text: str) -> dict[str, Any]:
    candidate = extract_json_object(text)
    if candidate is None:
        return dict(FAIL_OPEN)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return dict(FAIL_OPEN)
    if not isinstance(parsed, dict):
        return dict(FAIL_OPEN)

    axes = {axis: parsed.get(axis) for axis in _AXES}
    score = parsed.get("score")
    if not _is_number(score):
        score = FAIL_OPEN["score"]

    instructions = parsed.get("instructions")
    return {
        "grounding": axes["grounding"] if _is_number(axes["grounding"]) else FAIL_OPEN["grounding"],
        "safety": axes["safety"] if _is_number(axes["safety"]) else FAIL_OPEN["safety"],
        "completeness": (
            axes["completeness"] if _is_number(axes["completeness"]) else FAIL_OPEN["completeness"]
        ),
        "score": score,
        "instructions": instructions if isinstance(instructions, str) else "PASS",
        "parsed": True,
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def build_node(adapter: GenerationAdapter, *, max_output_tokens: int = 512):
    async def run(state: GateState) -> GateState:
        try:
            text = await adapter.complete(
                system_prompt=CRITIC_SYSTEM_PROMPT,
                user_prompt=build_critique_prompt(
                    str(state.get("draft", "")), str(state.get("original_task", ""))
                ),
                max_output_tokens=max_output_tokens,
            )
        except GenerationError as exc:
            logger.warning("quality_gate event=critique_failed reason=%s", exc)
            return {"critique": dict(FAIL_OPEN)}

        critique = parse_critique(text)
        logger.info(
            "quality_gate event=critiqued score=%s grounding=%s safety=%s completeness=%s parsed=%s",
            critique["score"],
            critique["grounding"],
            critique["safety"],
            critique["completeness"],
            critique["parsed"],
        )
        return {"critique": critique}

    return run

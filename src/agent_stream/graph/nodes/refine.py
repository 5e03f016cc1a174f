"""Rewrite a draft answer per the critic's fix instructions."""

from __future__ import annotations

import logging

from agent_stream.generation.types import GenerationAdapter, GenerationError
from agent_stream.graph.state import GateState

logger = logging.getLogger(__name__)

REFINER_SYSTEM_PROMPT = """You are a Refiner. Your sole job is to improve a draft response based on specific critic feedback.

## Rules
1. Apply the critic's fix instructions precisely and completely
2. Preserve the original tone, style, and formatting
3. Do NOT add unnecessary padding, filler, or disclaimers
4. Do NOT mention the refinement process, the critic, or scoring to the user
5. Do NOT start with "Here's the refined version" or similar meta-commentary
6. Output ONLY the improved response and nothing else"""


def build_refine_prompt(draft: str, instructions: str, original_task: str) -> str:
    return "\n".join(
        [
            "## Original User Prompt",
            original_task,
            "",
            "## Draft Response",
            draft,
            "",
            "## Critic's Fix Instructions",
            instructions,
            "",
            "Now output the improved response:",
        ]
    )


def build_node(adapter: GenerationAdapter, *, max_output_tokens: int = 16000):
    async def run(state: GateState) -> GateState:
        draft = str(state.get("draft", ""))
        instructions = str(state.get("critique", {}).get("instructions", ""))
        try:
            text = await adapter.complete(
                system_prompt=REFINER_SYSTEM_PROMPT,
                user_prompt=build_refine_prompt(
                    draft, instructions, str(state.get("original_task", ""))
                ),
                max_output_tokens=max_output_tokens,
            )
        except GenerationError as exc:
            logger.warning("quality_gate event=refine_failed reason=%s", exc)
            return {"final_output": draft, "refined": False}

        refined = text.strip()
        if not refined:
            logger.info("quality_gate event=refine_blank kept=draft")
            return {"final_output": draft, "refined": False}
        return {"final_output": refined, "refined": True}

    return run

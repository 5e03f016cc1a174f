"""Single critique -> refine pass over a run's final answer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from langgraph.graph import END, StateGraph

from agent_stream.generation.types import GenerationAdapter
from agent_stream.graph.nodes import critique, refine
from agent_stream.graph.state import GateState, initial_state

logger = logging.getLogger(__name__)

QUALITY_THRESHOLD = 90


@dataclass(frozen=True)
class GateResult:
    text: str
    score: int | float
    refined: bool
    critique: dict[str, Any]


def build_gate_graph(
    adapter: GenerationAdapter,
    *,
    critique_max_output_tokens: int = 512,
    refine_max_output_tokens: int = 16000,
):
    def _needs_refine(state: GateState) -> str:
        score = state.get("critique", {}).get("score", critique.FAIL_OPEN["score"])
        threshold = int(state.get("threshold", QUALITY_THRESHOLD))
        return "refine" if score < threshold else "pass"

    graph = StateGraph(GateState)

    graph.add_node(
        "critique", critique.build_node(adapter, max_output_tokens=critique_max_output_tokens)
    )
    graph.add_node("refine", refine.build_node(adapter, max_output_tokens=refine_max_output_tokens))

    graph.set_entry_point("critique")
    graph.add_conditional_edges("critique", _needs_refine, {"refine": "refine", "pass": END})
    graph.add_edge("refine", END)

    return graph.compile()


class QualityGate:
    """Critique a draft once and rewrite it when the score falls below the threshold.

    Any failure inside the gate keeps the draft; the gate never blocks a run from
    finishing.
    """

    def __init__(
        self,
        adapter: GenerationAdapter,
        *,
        threshold: int = QUALITY_THRESHOLD,
        critique_max_output_tokens: int = 512,
        refine_max_output_tokens: int = 16000,
    ) -> None:
        self.threshold = threshold
        self._graph = build_gate_graph(
            adapter,
            critique_max_output_tokens=critique_max_output_tokens,
            refine_max_output_tokens=refine_max_output_tokens,
        )

    async def review(self, draft: str, original_task: str) -> GateResult:
        try:
            final_state = await self._graph.ainvoke(
                initial_state(draft, original_task, threshold=self.threshold)
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("quality_gate event=failed_open reason=%s", exc)
            fallback = dict(critique.FAIL_OPEN)
            return GateResult(text=draft, score=fallback["score"], refined=False, critique=fallback)

        review = dict(final_state.get("critique") or critique.FAIL_OPEN)
        result = GateResult(
            text=str(final_state.get("final_output") or draft),
            score=review.get("score", critique.FAIL_OPEN["score"]),
            refined=bool(final_state.get("refined", False)),
            critique=review,
        )
        logger.info(
            "quality_gate event=reviewed score=%s threshold=%d refined=%s",
            result.score,
            self.threshold,
            result.refined,
        )
        return result

    async def gate(self, draft: str, original_task: str) -> str:
        return (await self.review(draft, original_task)).text

"""Agent profile: persona text and per-mode budgets, built once at startup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

RunMode = Literal["normal", "deep"]

PERSONA_FILES = (
    "IDENTITY.md",
    "SOUL.md",
    "AGENTS.md",
    "MEMORY.md",
    "HEARTBEAT.md",
    "TOOLS.md",
    "USER.md",
)
SECTION_SEPARATOR = "\n\n---\n\n"
DEEP_MODE_DIRECTIVE = (
    "[DEEP RESEARCH MODE] Be extra thorough: search with 3-5 different queries, "
    "fetch 5-8 sources, cross-reference extensively, and produce a comprehensive "
    "report with inline citations."
)


@dataclass(frozen=True)
class RunBudget:
    max_steps: int
    max_output_tokens: int


@dataclass(frozen=True)
class AgentProfile:
    persona: str = ""
    budgets: dict[str, RunBudget] = field(
        default_factory=lambda: {
            "normal": RunBudget(max_steps=5, max_output_tokens=16000),
            "deep": RunBudget(max_steps=10, max_output_tokens=32000),
        }
    )

    def budget(self, mode: str) -> RunBudget:
        return self.budgets["deep" if mode == "deep" else "normal"]

    def system_prompt(self, *, mode: str, skills_context: str = "") -> str:
        sections = [self.persona] if self.persona else []
        if mode == "deep":
            sections.append(DEEP_MODE_DIRECTIVE)
        if skills_context:
            sections.append(skills_context)
        return SECTION_SEPARATOR.join(sections)


def load_persona(persona_dir: Path) -> str:
    sections: list[str] = []
    for filename in PERSONA_FILES:
        path = persona_dir / filename
        try:
            content = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        if content:
            sections.append(content)
    logger.info("agent_profile event=persona_loaded dir=%s sections=%d", persona_dir, len(sections))
    return SECTION_SEPARATOR.join(sections)


def build_profile(settings: Any) -> AgentProfile:
    return AgentProfile(
        persona=load_persona(settings.resolved_persona_dir()),
        budgets={
            "normal": RunBudget(
                max_steps=settings.normal_max_steps,
                max_output_tokens=settings.normal_max_output_tokens,
            ),
            "deep": RunBudget(
                max_steps=settings.deep_max_steps,
                max_output_tokens=settings.deep_max_output_tokens,
            ),
        },
    )

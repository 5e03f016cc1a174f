"""Slide deck sub-protocol run on behalf of the ``generate_slides`` skill."""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable

from agent_stream.engine.events import SlideContent, SlideEvent, SlidesStateEvent, WireEvent
from agent_stream.generation.types import (
    ChatMessage,
    GenerationAdapter,
    GenerationError,
    GenerationRequest,
    TextDelta,
)

logger = logging.getLogger(__name__)

Emit = Callable[[WireEvent], Awaitable[None]]

SLIDE_DELIMITER = re.compile(r"\n---\n")
TITLE_PATTERN = re.compile(r"^##\s+(?:Slide\s+\d+:\s*)?(.+)", re.MULTILINE)
BULLET_PATTERN = re.compile(r"^\s*-\s+")

SLIDES_SYSTEM_PROMPT = """You are a professional presentation engine.

Create a full slide deck in markdown. Separate slides with a line containing only ---.
Format each slide as:
## Slide [number]: [Title]
- Bullet point (max 12 words)
- Another bullet (max 6 bullets per slide)
[Image: a vivid, specific description of a relevant professional image]
**Speaker Notes:** brief talking points

HARD RULES:
- One idea per slide.
- Max 6 bullets per slide, max 12 words per bullet.
- Include a Cover slide, structured content slides, and a Conclusion/Summary slide."""


def parse_slide_chunk(raw: str) -> SlideContent | None:
    trimmed = raw.strip()
    if not trimmed:
        return None
    match = TITLE_PATTERN.search(trimmed)
    title = match.group(1).strip() if match else ""
    if not title:
        return None

    bullets = [
        BULLET_PATTERN.sub("", line).strip()
        for line in trimmed.splitlines()
        if BULLET_PATTERN.match(line)
    ]
    return SlideContent(
        title=title,
        subtitle=bullets[0] if bullets else "",
        bullet=" | ".join(bullets[1:]),
    )


class SlideStreamer:
    """Stream a deck as ``slide`` events while the provider is still writing it."""

    action = "stream_slides"

    def __init__(self, *, adapter: GenerationAdapter, max_output_tokens: int = 16000) -> None:
        self.adapter = adapter
        self.max_output_tokens = max_output_tokens

    async def run(self, params: dict[str, Any], emit: Emit) -> dict[str, Any]:
        topic = str(params.get("topic") or "").strip()
        count = params.get("count")
        await emit(SlidesStateEvent(status="starting"))

        prompt = topic if not count else f"Create a {count}-slide presentation about: {topic}"
        request = GenerationRequest(
            system_prompt=SLIDES_SYSTEM_PROMPT,
            messages=(ChatMessage(role="user", content=prompt),),
            max_output_tokens=self.max_output_tokens,
        )

        titles: list[str] = []
        buffer = ""
        try:
            await emit(SlidesStateEvent(status="generating"))
            async for event in self.adapter.stream_step(request):
                if not isinstance(event, TextDelta):
                    continue
                buffer += event.text
                parts = SLIDE_DELIMITER.split(buffer)
                buffer = parts.pop()
                for part in parts:
                    await self._emit_slide(part, titles, total=-1, emit=emit)
            if buffer.strip():
                await self._emit_slide(buffer, titles, total=len(titles) + 1, emit=emit)
        except GenerationError as exc:
            logger.warning("slides event=failed topic=%s reason=%s", topic, exc)
            await emit(SlidesStateEvent(status="failed", error=str(exc)))
            return {"error": f"Slide generation failed: {exc}", "slides": titles}

        await emit(SlidesStateEvent(status="done"))
        logger.info("slides event=completed topic=%s slides=%d", topic, len(titles))
        return {"status": "completed", "topic": topic, "slides": titles}

    @staticmethod
    async def _emit_slide(raw: str, titles: list[str], *, total: int, emit: Emit) -> None:
        content = parse_slide_chunk(raw)
        if content is None:
            return
        await emit(SlideEvent(index=len(titles), total=total, content=content))
        titles.append(content.title)

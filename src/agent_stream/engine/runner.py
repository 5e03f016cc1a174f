"""Run engine: drive one agent run and turn it into an ordered wire-event stream."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol
from uuid import uuid4

from agent_stream.engine.events import (
    HEARTBEAT,
    ErrorEvent,
    FinishEvent,
    StepFinishEvent,
    StreamItem,
    TextDeltaEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    WireEvent,
)
from agent_stream.engine.profile import AgentProfile
from agent_stream.generation.types import (
    ChatMessage,
    GenerationAdapter,
    GenerationError,
    GenerationRequest,
    StepEnd,
    TextDelta,
    ToolCallRequest,
    ToolInvocation,
)
from agent_stream.skills.gateway import SkillGateway
from agent_stream.skills.outcomes import DeferToEngine

logger = logging.getLogger(__name__)

Emit = Callable[[WireEvent], Awaitable[None]]

_END = object()


class DeferredHandler(Protocol):
    async def run(self, params: dict[str, Any], emit: Emit) -> dict[str, Any]: ...


class DraftReviewer(Protocol):
    async def gate(self, draft: str, original_task: str) -> str: ...


class RunEngine:
    """Stateless per run; one engine instance serves any number of concurrent runs."""

    def __init__(
        self,
        *,
        adapter: GenerationAdapter,
        gateway: SkillGateway,
        profile: AgentProfile | None = None,
        quality_gate: DraftReviewer | None = None,
        deferred_handlers: dict[str, DeferredHandler] | None = None,
        heartbeat_interval_s: float = 15.0,
    ) -> None:
        self.adapter = adapter
        self.gateway = gateway
        self.profile = profile or AgentProfile()
        self.quality_gate = quality_gate
        self.deferred_handlers = dict(deferred_handlers or {})
        self.heartbeat_interval_s = heartbeat_interval_s

    async def start_run(self, task: str, mode: str = "normal") -> AsyncIterator[StreamItem]:
        """Yield wire events for one run, interleaved with keep-alive heartbeats.

        Closing the iterator early cancels the run: the provider session is
        released and no further skills are dispatched.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=1)
        run_id = uuid4().hex[:12]
        producer = asyncio.create_task(self._produce(run_id, task, mode, queue))
        try:
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=self.heartbeat_interval_s)
                except asyncio.TimeoutError:
                    yield HEARTBEAT
                    continue
                if item is _END:
                    return
                yield item
        finally:
            if not producer.done():
                logger.info("run event=cancelled run_id=%s", run_id)
                producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer

    async def _produce(
        self,
        run_id: str,
        task: str,
        mode: str,
        queue: asyncio.Queue[Any],
    ) -> None:
        async def emit(event: WireEvent) -> None:
            await queue.put(event)

        try:
            await self._drive(run_id, task, mode, emit)
        except GenerationError as exc:
            logger.warning("run event=failed run_id=%s reason=%s", run_id, exc)
            await emit(ErrorEvent(error=str(exc) or "Generation failed"))
        except Exception as exc:  # noqa: BLE001
            logger.exception("run event=failed run_id=%s reason=unexpected", run_id)
            await emit(ErrorEvent(error=str(exc) or "Stream error"))
        await queue.put(_END)

    async def _drive(self, run_id: str, task: str, mode: str, emit: Emit) -> None:
        budget = self.profile.budget(mode)
        catalog = self.gateway.catalog
        system_prompt = self.profile.system_prompt(
            mode=mode, skills_context=catalog.prompt_context()
        )
        logger.info(
            "run event=start run_id=%s mode=%s max_steps=%d max_output_tokens=%d",
            run_id,
            mode,
            budget.max_steps,
            budget.max_output_tokens,
        )

        conversation: list[ChatMessage] = [ChatMessage(role="user", content=task.strip())]
        seen_call_ids: set[str] = set()
        finish_reason = "stop"
        total_steps = 0
        step_text = ""

        for step_index in range(budget.max_steps):
            step_text = ""
            finish_reason = "stop"
            invocations: list[ToolInvocation] = []
            tool_messages: list[ChatMessage] = []
            request = GenerationRequest(
                system_prompt=system_prompt,
                messages=tuple(conversation),
                tools=catalog.tool_definitions(),
                max_output_tokens=budget.max_output_tokens,
            )

            async for event in self.adapter.stream_step(request):
                if isinstance(event, TextDelta):
                    if not event.text:
                        continue
                    step_text += event.text
                    await emit(TextDeltaEvent(text=event.text))
                elif isinstance(event, ToolCallRequest):
                    call_id = _unique_call_id(event.id, seen_call_ids, step_index)
                    invocations.append(ToolInvocation(id=call_id, name=event.name, args=event.args))
                    tool_messages.append(await self._call_tool(call_id, event, emit))
                elif isinstance(event, StepEnd):
                    finish_reason = event.finish_reason

            conversation.append(
                ChatMessage(role="assistant", content=step_text, tool_calls=tuple(invocations))
            )
            conversation.extend(tool_messages)
            await emit(StepFinishEvent(step_index=step_index))
            total_steps += 1
            logger.info(
                "run event=step_finished run_id=%s step=%d tool_calls=%d finish_reason=%s",
                run_id,
                step_index,
                len(invocations),
                finish_reason,
            )
            if finish_reason != "tool-calls" or not invocations:
                break

        final_text = await self._review(run_id, step_text, task)
        refined_text = final_text if final_text != step_text else None
        logger.info(
            "run event=completed run_id=%s finish_reason=%s total_steps=%d refined=%s",
            run_id,
            finish_reason,
            total_steps,
            refined_text is not None,
        )
        await emit(
            FinishEvent(
                finish_reason=finish_reason,
                total_steps=total_steps,
                refined_text=refined_text,
            )
        )

    async def _call_tool(
        self,
        call_id: str,
        request: ToolCallRequest,
        emit: Emit,
    ) -> ChatMessage:
        await emit(ToolCallEvent(tool_call_id=call_id, tool_name=request.name, args=request.args))
        result = await self.gateway.dispatch(request.name, request.args)

        if result.status == "deferred" and result.deferred is not None:
            payload = await self._run_deferred(call_id, request.name, result.deferred, emit)
        elif result.status == "ok":
            await emit(
                ToolResultEvent(tool_call_id=call_id, tool_name=request.name, result=result.output)
            )
            payload = result.output
        else:
            error = result.error or "Skill failed"
            await emit(ToolErrorEvent(tool_call_id=call_id, tool_name=request.name, error=error))
            payload = {"error": error}

        return ChatMessage(
            role="tool",
            content=_tool_content(payload),
            tool_call_id=call_id,
            name=request.name,
        )

    async def _run_deferred(
        self,
        call_id: str,
        tool_name: str,
        deferred: DeferToEngine,
        emit: Emit,
    ) -> dict[str, Any]:
        handler = self.deferred_handlers.get(deferred.action)
        if handler is None:
            error = f"Unsupported deferred action: {deferred.action}"
            await emit(ToolErrorEvent(tool_call_id=call_id, tool_name=tool_name, error=error))
            return {"error": error}

        await emit(
            ToolResultEvent(
                tool_call_id=call_id,
                tool_name=tool_name,
                result={"status": "streaming", **deferred.params},
            )
        )
        logger.info("run event=deferred tool=%s action=%s", tool_name, deferred.action)
        return await handler.run(deferred.params, emit)

    async def _review(self, run_id: str, draft: str, task: str) -> str:
        if self.quality_gate is None or not draft.strip():
            return draft
        try:
            return await self.quality_gate.gate(draft, task)
        except Exception as exc:  # noqa: BLE001
            logger.warning("run event=quality_gate_skipped run_id=%s reason=%s", run_id, exc)
            return draft


def _unique_call_id(raw_id: str, seen: set[str], step_index: int) -> str:
    call_id = raw_id or f"call_{step_index}_{len(seen)}"
    if call_id in seen:
        call_id = f"{call_id}_{step_index}_{len(seen)}"
    seen.add(call_id)
    return call_id


def _tool_content(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, ensure_ascii=False, default=str)

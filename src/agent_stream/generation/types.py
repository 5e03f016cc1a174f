"""Boundary contract between the run engine and a text-generation provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal, Protocol, Union

Role = Literal["user", "assistant", "tool"]


class GenerationError(RuntimeError):
    """The generation provider failed; the run cannot continue."""


@dataclass(frozen=True)
class ToolInvocation:
    id: str
    name: str
    args: dict[str, Any]


@dataclass(frozen=True)
class ChatMessage:
    """One provider-neutral conversation turn."""

    role: Role
    content: str = ""
    tool_calls: tuple[ToolInvocation, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass(frozen=True)
class GenerationRequest:
    system_prompt: str
    messages: tuple[ChatMessage, ...]
    tools: tuple[ToolDefinition, ...] = ()
    max_output_tokens: int = 16000


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StepEnd:
    """Provider finished one turn.

    ``finish_reason`` is ``"tool-calls"`` when the provider expects tool
    results before continuing; anything else means the run is done.
    """

    finish_reason: str


GenerationEvent = Union[TextDelta, ToolCallRequest, StepEnd]


class GenerationAdapter(Protocol):
    def stream_step(self, request: GenerationRequest) -> AsyncIterator[GenerationEvent]: ...

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> str: ...

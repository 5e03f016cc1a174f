"""Text-generation provider boundary."""

from agent_stream.generation.openai_adapter import (
    OpenAIChatCompletionsAdapter,
    build_adapter_from_settings,
)
from agent_stream.generation.types import (
    ChatMessage,
    GenerationAdapter,
    GenerationError,
    GenerationEvent,
    GenerationRequest,
    StepEnd,
    TextDelta,
    ToolCallRequest,
    ToolDefinition,
    ToolInvocation,
)

__all__ = [
    "ChatMessage",
    "GenerationAdapter",
    "GenerationError",
    "GenerationEvent",
    "GenerationRequest",
    "OpenAIChatCompletionsAdapter",
    "StepEnd",
    "TextDelta",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolInvocation",
    "build_adapter_from_settings",
]

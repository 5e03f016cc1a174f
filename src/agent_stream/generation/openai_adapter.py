"""OpenAI-compatible chat completions adapter (streaming and one-shot)."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, AsyncIterator

import httpx

from agent_stream.generation.types import (
    ChatMessage,
    GenerationError,
    GenerationEvent,
    GenerationRequest,
    StepEnd,
    TextDelta,
    ToolCallRequest,
)

logger = logging.getLogger(__name__)

FINISH_REASONS = {
    "stop": "stop",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "length": "length",
    "content_filter": "content-filter",
}


class OpenAIChatCompletionsAdapter:
    """Small OpenAI adapter using the chat completions REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 120.0,
        max_retries: int = 1,
        backoff_s: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)
        self._transport = transport

    async def stream_step(self, request: GenerationRequest) -> AsyncIterator[GenerationEvent]:
        payload: dict[str, Any] = {
            "model": self.model,
            "stream": True,
            "max_tokens": request.max_output_tokens,
            "messages": _to_openai_messages(request.system_prompt, request.messages),
        }
        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in request.tools
            ]

        pending_calls: dict[int, dict[str, str]] = {}
        raw_finish_reason: str | None = None

        async with self._client() as client:
            try:
                async with client.stream(
                    "POST",
                    self._url(),
                    json=payload,
                    headers=self._headers(),
                ) as response:
                    if response.status_code >= 400:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise GenerationError(
                            f"LLM stream request failed with status {response.status_code}: "
                            f"{body[:400]}"
                        )
                    async for line in response.aiter_lines():
                        chunk = _parse_stream_line(line)
                        if chunk is None:
                            continue
                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        choice = choices[0]
                        delta = choice.get("delta") or {}
                        content = delta.get("content")
                        if isinstance(content, str) and content:
                            yield TextDelta(text=content)
                        for call_delta in delta.get("tool_calls") or []:
                            _merge_tool_call_delta(pending_calls, call_delta)
                        if choice.get("finish_reason"):
                            raw_finish_reason = choice["finish_reason"]
            except httpx.HTTPError as exc:
                raise GenerationError(f"LLM stream request failed: {exc}") from exc

        for index in sorted(pending_calls):
            call = pending_calls[index]
            yield ToolCallRequest(
                id=call["id"] or f"call_{index}",
                name=call["name"],
                args=_parse_arguments(call["arguments"], tool_name=call["name"]),
            )
        yield StepEnd(finish_reason=_normalize_finish_reason(raw_finish_reason, pending_calls))

    async def complete(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_output_tokens: int,
    ) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_output_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        response_json = await self._request_with_retry(payload)
        return self._extract_content(response_json)

    async def _request_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return await self._request(payload)
            except GenerationError as exc:
                last_error = exc
                logger.warning(
                    "OpenAI request failed attempt=%d/%d model=%s reason=%s",
                    attempt + 1,
                    self.max_retries + 1,
                    self.model,
                    exc,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    await asyncio.sleep(self.backoff_s)
        if last_error is None:
            raise GenerationError("LLM request failed with unknown error")
        raise last_error

    async def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = self._url()
        if _trace_enabled():
            logger.warning(
                "LLM trace request provider=openai model=%s url=%s timeout_s=%s",
                self.model,
                url,
                self.timeout_s,
            )
        async with self._client() as client:
            try:
                response = await client.post(url, json=payload, headers=self._headers())
            except httpx.HTTPError as exc:
                raise GenerationError(f"LLM request failed: {exc}") from exc
        if response.status_code >= 400:
            raise GenerationError(
                f"LLM request failed with status {response.status_code}: {response.text[:400]}"
            )
        if _trace_enabled():
            logger.warning("LLM trace response provider=openai model=%s status=ok", self.model)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GenerationError("LLM returned non-JSON response") from exc

    @staticmethod
    def _extract_content(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices", [])
        if not choices:
            raise GenerationError("OpenAI response did not contain choices")

        message = choices[0].get("message", {})
        content = message.get("content", "")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            text_segments: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        text_segments.append(text)
            return "".join(text_segments)
        raise GenerationError("OpenAI response content could not be parsed as text")

    def _client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise GenerationError("OPENAI_API_KEY is missing")
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

    def _url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }


def build_adapter_from_settings(settings: Any) -> OpenAIChatCompletionsAdapter:
    provider = str(settings.llm_provider).lower().strip()
    if provider != "openai":
        raise RuntimeError(f"Unsupported LLM provider: {settings.llm_provider}")
    return OpenAIChatCompletionsAdapter(
        api_key=settings.resolved_openai_api_key(),
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout_s=settings.llm_timeout_s,
        max_retries=settings.llm_max_retries,
        backoff_s=settings.llm_backoff_s,
    )


def _to_openai_messages(
    system_prompt: str,
    messages: tuple[ChatMessage, ...],
) -> list[dict[str, Any]]:
    output: list[dict[str, Any]] = []
    if system_prompt:
        output.append({"role": "system", "content": system_prompt})
    for message in messages:
        if message.role == "tool":
            output.append(
                {
                    "role": "tool",
                    "tool_call_id": message.tool_call_id,
                    "content": message.content,
                }
            )
            continue
        item: dict[str, Any] = {"role": message.role, "content": message.content}
        if message.tool_calls:
            item["content"] = message.content or None
            item["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.args)},
                }
                for call in message.tool_calls
            ]
        output.append(item)
    return output


def _parse_stream_line(line: str) -> dict[str, Any] | None:
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if not data or data == "[DONE]":
        return None
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("LLM stream chunk was not valid JSON chunk=%s", data[:200])
        return None
    return parsed if isinstance(parsed, dict) else None


def _merge_tool_call_delta(pending: dict[int, dict[str, str]], call_delta: dict[str, Any]) -> None:
    index = call_delta.get("index", len(pending))
    current = pending.setdefault(index, {"id": "", "name": "", "arguments": ""})
    if call_delta.get("id"):
        current["id"] = call_delta["id"]
    function = call_delta.get("function") or {}
    if function.get("name"):
        current["name"] += function["name"]
    if function.get("arguments"):
        current["arguments"] += function["arguments"]


def _parse_arguments(raw: str, *, tool_name: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("LLM tool arguments were not valid JSON tool=%s", tool_name)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _normalize_finish_reason(raw: str | None, pending_calls: dict[int, Any]) -> str:
    if raw is None:
        return "tool-calls" if pending_calls else "stop"
    return FINISH_REASONS.get(raw, "other")


def _trace_enabled() -> bool:
    return os.getenv("AGENT_STREAM_LLM_TRACE", "0").strip() == "1"

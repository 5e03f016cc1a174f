"""HTTP client that follows a run's event stream and folds it into a run record."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable
from uuid import uuid4

import httpx

from agent_stream.engine.events import Heartbeat, StreamItem, parse_sse_line
from agent_stream.state import RunState, StartRun, is_incomplete, reduce

logger = logging.getLogger(__name__)


class RunRejected(RuntimeError):
    """The server refused the run before any stream started."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"Run rejected with HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class RunClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.transport = transport

    async def events(self, task: str, mode: str = "normal") -> AsyncIterator[StreamItem]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout_s, read=None),
            transport=self.transport,
        ) as client:
            async with client.stream("POST", "/runs", json={"task": task, "mode": mode}) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise RunRejected(response.status_code, _detail(response))
                async for line in response.aiter_lines():
                    item = parse_sse_line(line)
                    if item is not None:
                        yield item

    async def run(
        self,
        task: str,
        mode: str = "normal",
        *,
        on_state: Callable[[RunState], None] | None = None,
    ) -> RunState:
        """Follow one run to the end of its stream and return the final record."""
        state = reduce(RunState(), StartRun(task=task, mode=mode, run_id=uuid4().hex))
        stream = self.events(task, mode)
        try:
            async for item in stream:
                if isinstance(item, Heartbeat):
                    continue
                state = reduce(state, item)
                if on_state is not None:
                    on_state(state)
        finally:
            await stream.aclose()

        if is_incomplete(state):
            logger.warning("run_client event=stream_closed_early task_chars=%d", len(task))
        return state


def _detail(response: httpx.Response) -> Any:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    return payload.get("detail", payload) if isinstance(payload, dict) else payload

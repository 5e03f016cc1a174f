"""Schema-enforcing skill dispatch with timeout/retry telemetry."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_stream.skills.outcomes import DeferToEngine, DispatchResult
from agent_stream.skills.registry import SkillCatalog, SkillSpec

logger = logging.getLogger(__name__)


class SkillGateway:
    """Dispatch catalog skills with strict validation and retry/timeout controls.

    Executors run in a worker thread. A timed-out executor keeps running in that
    thread; only the run stops waiting for it.
    """

    def __init__(
        self,
        *,
        catalog: SkillCatalog,
        skill_timeout_s: float = 60.0,
        max_retries: int = 0,
        backoff_s: float = 0.0,
    ) -> None:
        self.catalog = catalog
        self.skill_timeout_s = skill_timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s

    async def dispatch(self, tool_name: str, args: dict[str, Any]) -> DispatchResult:
        started_at = time.perf_counter()
        spec = self.catalog.get(tool_name)
        if spec is None:
            return self._failed(tool_name, f"Unknown skill: {tool_name}", "unknown", 0, started_at)
        if not self.catalog.is_enabled(tool_name):
            return self._failed(
                tool_name, f"Skill '{tool_name}' is disabled", spec.implementation, 0, started_at
            )

        try:
            payload = spec.input_model.model_validate(args)
        except ValidationError as exc:
            return self._failed(
                tool_name,
                f"Invalid arguments for '{tool_name}': {_validation_summary(exc)}",
                spec.implementation,
                0,
                started_at,
            )

        attempts = 0
        final_error = "unknown error"
        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                raw_output = await self._execute_once(tool_name, spec, payload)
            except Exception as exc:  # noqa: BLE001
                final_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "skill_dispatch event=attempt_failed tool=%s attempt=%d/%d reason=%s",
                    tool_name,
                    attempts,
                    self.max_retries + 1,
                    final_error,
                )
                if attempt < self.max_retries and self.backoff_s > 0:
                    await asyncio.sleep(self.backoff_s)
                continue

            if isinstance(raw_output, DeferToEngine):
                return DispatchResult(
                    tool=tool_name,
                    status="deferred",
                    deferred=raw_output,
                    implementation=spec.implementation,
                    attempts=attempts,
                    duration_ms=_duration_ms(started_at),
                )
            error_message = _error_payload(raw_output)
            if error_message is not None:
                return self._failed(
                    tool_name, error_message, spec.implementation, attempts, started_at
                )
            try:
                output = _normalize_output(spec, raw_output)
            except ValidationError as exc:
                return self._failed(
                    tool_name,
                    f"Skill '{tool_name}' returned an invalid result: {_validation_summary(exc)}",
                    spec.implementation,
                    attempts,
                    started_at,
                )
            result = DispatchResult(
                tool=tool_name,
                status="ok",
                output=output,
                implementation=spec.implementation,
                attempts=attempts,
                duration_ms=_duration_ms(started_at),
            )
            logger.info(
                "skill_dispatch event=completed tool=%s status=ok attempts=%d duration_ms=%s",
                tool_name,
                attempts,
                result.duration_ms,
            )
            return result

        return self._failed(tool_name, final_error, spec.implementation, attempts, started_at)

    async def _execute_once(self, tool_name: str, spec: SkillSpec, payload: BaseModel) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(spec.fn, payload),
                timeout=self.skill_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise TimeoutError(
                f"Skill '{tool_name}' timed out after {self.skill_timeout_s:.2f}s"
            ) from exc

    @staticmethod
    def _failed(
        tool_name: str,
        error: str,
        implementation: str,
        attempts: int,
        started_at: float,
    ) -> DispatchResult:
        logger.info(
            "skill_dispatch event=completed tool=%s status=error attempts=%d error=%s",
            tool_name,
            attempts,
            error,
        )
        return DispatchResult(
            tool=tool_name,
            status="error",
            error=error,
            implementation=implementation,
            attempts=attempts,
            duration_ms=_duration_ms(started_at),
        )


def _error_payload(raw_output: Any) -> str | None:
    if not isinstance(raw_output, dict):
        return None
    error = raw_output.get("error")
    if isinstance(error, str) and error.strip():
        return error
    return None


def _normalize_output(spec: SkillSpec, raw_output: Any) -> Any:
    if spec.output_model is not None:
        return spec.output_model.model_validate(raw_output).model_dump(mode="json")
    if isinstance(raw_output, BaseModel):
        return raw_output.model_dump(mode="json")
    return raw_output


def _validation_summary(exc: ValidationError) -> str:
    parts: list[str] = []
    for item in exc.errors()[:5]:
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)

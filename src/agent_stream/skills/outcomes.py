"""Result shapes a skill executor may produce, and the gateway's dispatch record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


class SkillError(RuntimeError):
    """Raised by an executor to report a failure the agent should see."""


@dataclass(frozen=True)
class DeferToEngine:
    """Ask the run engine to take over with a named sub-protocol.

    Executors have no transport access; returning this hands ``params`` to the
    engine handler registered for ``action`` instead of producing a plain result.
    """

    action: str
    params: dict[str, Any] = field(default_factory=dict)


DispatchStatus = Literal["ok", "error", "deferred"]


@dataclass(frozen=True)
class DispatchResult:
    tool: str
    status: DispatchStatus
    output: Any = None
    error: str | None = None
    deferred: DeferToEngine | None = None
    implementation: str = "builtin"
    attempts: int = 0
    duration_ms: float = 0.0

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from agent_stream.generation.types import GenerationError, GenerationRequest
from agent_stream.skills import SkillCatalog, SkillGateway, build_catalog


class ScriptedAdapter:
    """Test double that replays canned generation steps and completions.

    Each entry of ``steps`` is one ``stream_step`` call: a list of generation
    events, exceptions to raise, or floats to sleep for.
    """

    def __init__(
        self,
        steps: list[list[Any]] | None = None,
        completions: list[Any] | None = None,
    ) -> None:
        self.steps = list(steps or [])
        self.completions = list(completions or [])
        self.requests: list[GenerationRequest] = []
        self.prompts: list[dict[str, Any]] = []
        self.released = 0

    async def stream_step(self, request: GenerationRequest):
        self.requests.append(request)
        if not self.steps:
            raise GenerationError("no scripted step left")
        script = self.steps.pop(0)
        try:
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                if isinstance(item, float):
                    await asyncio.sleep(item)
                    continue
                yield item
        finally:
            self.released += 1

    async def complete(self, *, system_prompt: str, user_prompt: str, max_output_tokens: int) -> str:
        self.prompts.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "max_output_tokens": max_output_tokens,
            }
        )
        if not self.completions:
            raise GenerationError("no scripted completion left")
        item = self.completions.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


async def _drain(stream) -> list[Any]:
    return [item async for item in stream]


def collect_stream(stream) -> list[Any]:
    return asyncio.run(_drain(stream))


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter


@pytest.fixture
def collect():
    return collect_stream


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    (inputs / "notes.txt").write_text("quarterly budget: 42", encoding="utf-8")
    (tmp_path / "README.md").write_text("# demo\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def catalog(workspace: Path) -> SkillCatalog:
    return build_catalog(inputs_dir=workspace / "inputs", workspace_dir=workspace)


@pytest.fixture
def gateway(catalog: SkillCatalog) -> SkillGateway:
    return SkillGateway(catalog=catalog, skill_timeout_s=2.0)

"""Skill catalog: name -> input schema, executor and enabled flag."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel

from agent_stream.generation.types import ToolDefinition
from agent_stream.skills import builtin
from agent_stream.skills.schemas import (
    GenerateSlidesInput,
    ListFilesInput,
    ListFilesOutput,
    ReadFileInput,
    ReadFileOutput,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkillSpec:
    input_model: type[BaseModel]
    fn: Callable[[BaseModel], Any]
    description: str
    output_model: type[BaseModel] | None = None
    implementation: str = "builtin"


@dataclass
class _SkillRecord:
    spec: SkillSpec
    enabled: bool = True
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class SkillCatalog:
    """Registry shared by concurrent runs.

    Enable flags may be toggled while runs are dispatching; readers take a
    snapshot under the lock, so a toggle affects only later lookups.
    """

    def __init__(self, specs: dict[str, SkillSpec] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, _SkillRecord] = {}
        for name, spec in (specs or {}).items():
            self.register(name, spec)

    def register(self, name: str, spec: SkillSpec, *, enabled: bool = True) -> None:
        with self._lock:
            self._records[name] = _SkillRecord(spec=spec, enabled=enabled)
        logger.info("skill_catalog event=registered skill=%s enabled=%s", name, enabled)

    def get(self, name: str) -> SkillSpec | None:
        with self._lock:
            record = self._records.get(name)
            return record.spec if record else None

    def is_enabled(self, name: str) -> bool:
        with self._lock:
            record = self._records.get(name)
            return record.enabled if record else False

    def set_enabled(self, name: str, enabled: bool) -> bool:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                raise KeyError(name)
            record.enabled = enabled
        logger.info("skill_catalog event=toggled skill=%s enabled=%s", name, enabled)
        return enabled

    def toggle(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(name)
            if record is None:
                return None
            record.enabled = not record.enabled
            enabled = record.enabled
        logger.info("skill_catalog event=toggled skill=%s enabled=%s", name, enabled)
        return {"name": name, "enabled": enabled}

    def enabled_specs(self) -> dict[str, SkillSpec]:
        with self._lock:
            return {
                name: record.spec for name, record in self._records.items() if record.enabled
            }

    def tool_definitions(self) -> tuple[ToolDefinition, ...]:
        return tuple(
            ToolDefinition(
                name=name,
                description=spec.description,
                parameters=spec.input_model.model_json_schema(),
            )
            for name, spec in sorted(self.enabled_specs().items())
        )

    def prompt_context(self) -> str:
        enabled = self.enabled_specs()
        if not enabled:
            return ""
        lines = [
            "[AVAILABLE SKILLS]",
            "The following tools are available. Use them when relevant.\n",
        ]
        for name, spec in sorted(enabled.items()):
            lines.append(f"- **{name}**: {spec.description}")
        return "\n".join(lines)

    def to_api_response(self) -> list[dict[str, Any]]:
        with self._lock:
            items = sorted(self._records.items())
            return [
                {
                    "id": name,
                    "title": name,
                    "desc": record.spec.description,
                    "enabled": record.enabled,
                    "date": record.loaded_at.strftime("%Y/%m/%d"),
                    "tools": [name],
                    "type": record.spec.implementation,
                }
                for name, record in items
            ]


def build_registry(*, inputs_dir: Path, workspace_dir: Path) -> dict[str, SkillSpec]:
    return {
        "read_file": SkillSpec(
            input_model=ReadFileInput,
            output_model=ReadFileOutput,
            fn=builtin.build_read_file_skill(inputs_dir),
            description=(
                "Read the contents of a file from the inputs directory. Use this when the "
                "user asks you to analyze, summarize, or read an uploaded file. Supports "
                + ", ".join(builtin.SUPPORTED_EXTENSIONS)
                + " files."
            ),
        ),
        "list_files": SkillSpec(
            input_model=ListFilesInput,
            output_model=ListFilesOutput,
            fn=builtin.build_list_files_skill(workspace_dir),
            description=(
                "List files and directories in the workspace so you can see what already "
                "exists before reading or creating anything."
            ),
        ),
        "generate_slides": SkillSpec(
            input_model=GenerateSlidesInput,
            fn=builtin.generate_slides,
            description=(
                "Create a visual presentation slide deck. Use this WHENEVER the user asks "
                "for slides, a deck, or a presentation. Slides stream to the user in real time."
            ),
        ),
    }


def build_catalog(*, inputs_dir: Path, workspace_dir: Path) -> SkillCatalog:
    return SkillCatalog(build_registry(inputs_dir=inputs_dir, workspace_dir=workspace_dir))

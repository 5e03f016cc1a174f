"""Strict Pydantic schemas for skill inputs and outputs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class ReadFileInput(StrictModel):
    filename: str = Field(
        description=(
            "The name of the file to read (e.g. 'budget.txt', 'data.json'). "
            "Must be a file in the inputs directory."
        )
    )


class ReadFileOutput(StrictModel):
    filename: str
    extension: str
    size: int = Field(ge=0)
    truncated: bool
    content: str


class ListFilesInput(StrictModel):
    path: str = Field(default=".", description="Directory to list, relative to the workspace.")
    depth: int = Field(default=2, ge=1, le=5, description="How many levels to descend.")


class FileEntry(StrictModel):
    path: str
    type: str
    size: int | None = None


class ListFilesOutput(StrictModel):
    root: str
    entries: list[FileEntry] = Field(default_factory=list)
    truncated: bool = False


class GenerateSlidesInput(StrictModel):
    topic: str = Field(description="The presentation topic or full prompt")
    slides_count: int = Field(
        default=5, ge=1, le=30, description="Approximate number of slides to generate"
    )

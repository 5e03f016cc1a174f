"""Built-in skills shipped with the service."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from agent_stream.skills.outcomes import DeferToEngine, SkillError
from agent_stream.skills.schemas import (
    FileEntry,
    GenerateSlidesInput,
    ListFilesInput,
    ListFilesOutput,
    ReadFileInput,
    ReadFileOutput,
)

SUPPORTED_EXTENSIONS = (
    ".txt",
    ".md",
    ".json",
    ".ts",
    ".js",
    ".py",
    ".csv",
    ".html",
    ".xml",
    ".yaml",
    ".yml",
)
MAX_READ_CHARS = 50_000
SKIPPED_DIRS = {".git", "node_modules", ".next", "__pycache__", ".venv", ".pytest_cache"}
MAX_LIST_ENTRIES = 500
STREAM_SLIDES_ACTION = "stream_slides"


def build_read_file_skill(inputs_dir: Path) -> Callable[[ReadFileInput], ReadFileOutput]:
    def _read_file(payload: ReadFileInput) -> ReadFileOutput:
        filename = payload.filename
        safe = Path(filename).name
        if safe != filename or ".." in safe or safe.startswith("."):
            raise SkillError(
                f'Invalid filename: "{filename}". Only simple filenames are allowed '
                "(no paths, no dotfiles)."
            )

        extension = Path(safe).suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise SkillError(
                f'Unsupported file type: "{extension}". '
                f"Supported: {', '.join(SUPPORTED_EXTENSIONS)}"
            )

        try:
            content = (inputs_dir / safe).read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SkillError(
                f'ENOENT: file not found: "{safe}". Make sure the file was uploaded first.'
            ) from exc
        except OSError as exc:
            raise SkillError(f"Failed to read file: {exc}") from exc

        truncated = len(content) > MAX_READ_CHARS
        output = content
        if truncated:
            output = content[:MAX_READ_CHARS] + "\n\n[... truncated at 50,000 characters]"
        return ReadFileOutput(
            filename=safe,
            extension=extension,
            size=len(content),
            truncated=truncated,
            content=output,
        )

    return _read_file


def build_list_files_skill(workspace_dir: Path) -> Callable[[ListFilesInput], ListFilesOutput]:
    root_dir = workspace_dir.resolve()

    def _list_files(payload: ListFilesInput) -> ListFilesOutput:
        target = (root_dir / payload.path).resolve()
        if not _inside(target, root_dir):
            raise SkillError(f'Path escapes the workspace: "{payload.path}"')
        if not target.is_dir():
            raise SkillError(f'Not a directory: "{payload.path}"')

        entries: list[FileEntry] = []
        truncated = _walk(target, root_dir, payload.depth, entries)
        return ListFilesOutput(
            root=_relative(target, root_dir),
            entries=entries,
            truncated=truncated,
        )

    return _list_files


def generate_slides(payload: GenerateSlidesInput) -> DeferToEngine:
    return DeferToEngine(
        action=STREAM_SLIDES_ACTION,
        params={"topic": payload.topic, "count": payload.slides_count},
    )


def _walk(directory: Path, root_dir: Path, depth: int, entries: list[FileEntry]) -> bool:
    for child in sorted(directory.iterdir(), key=lambda item: item.name):
        if len(entries) >= MAX_LIST_ENTRIES:
            return True
        if child.name in SKIPPED_DIRS or not _inside(child, root_dir):
            continue
        if child.is_dir():
            entries.append(FileEntry(path=_relative(child, root_dir) + "/", type="directory"))
            if depth > 1 and _walk(child, root_dir, depth - 1, entries):
                return True
            continue
        entries.append(
            FileEntry(path=_relative(child, root_dir), type="file", size=child.stat().st_size)
        )
    return False


def _inside(path: Path, root_dir: Path) -> bool:
    resolved = path.resolve()
    return resolved == root_dir or root_dir in resolved.parents


def _relative(path: Path, root_dir: Path) -> str:
    relative = path.relative_to(root_dir).as_posix()
    return relative or "."

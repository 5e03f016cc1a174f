import pytest

from agent_stream.skills import SkillError
from agent_stream.skills.builtin import (
    MAX_READ_CHARS,
    build_list_files_skill,
    build_read_file_skill,
    generate_slides,
)
from agent_stream.skills.schemas import GenerateSlidesInput, ListFilesInput, ReadFileInput


def test_read_file_returns_content(workspace) -> None:
    read_file = build_read_file_skill(workspace / "inputs")

    output = read_file(ReadFileInput(filename="notes.txt"))

    assert output.content == "quarterly budget: 42"
    assert output.extension == ".txt"
    assert output.truncated is False


def test_read_file_truncates_large_files(workspace) -> None:
    (workspace / "inputs" / "big.md").write_text("x" * (MAX_READ_CHARS + 10), encoding="utf-8")

    output = build_read_file_skill(workspace / "inputs")(ReadFileInput(filename="big.md"))

    assert output.truncated is True
    assert output.size == MAX_READ_CHARS + 10
    assert output.content.endswith("[... truncated at 50,000 characters]")


@pytest.mark.parametrize(
    ("filename", "message"),
    [
        ("../secret.txt", "Invalid filename"),
        (".env", "Invalid filename"),
        ("photo.png", "Unsupported file type"),
        ("missing.txt", "ENOENT"),
    ],
)
def test_read_file_rejections(workspace, filename: str, message: str) -> None:
    read_file = build_read_file_skill(workspace / "inputs")

    with pytest.raises(SkillError, match=message):
        read_file(ReadFileInput(filename=filename))


def test_list_files_walks_workspace(workspace) -> None:
    (workspace / "node_modules").mkdir()
    (workspace / "node_modules" / "pkg.js").write_text("", encoding="utf-8")

    output = build_list_files_skill(workspace)(ListFilesInput())

    paths = [entry.path for entry in output.entries]
    assert "README.md" in paths
    assert "inputs/" in paths
    assert "inputs/notes.txt" in paths
    assert not any(path.startswith("node_modules") for path in paths)


def test_list_files_depth_and_escape(workspace) -> None:
    list_files = build_list_files_skill(workspace)

    shallow = list_files(ListFilesInput(depth=1))
    assert "inputs/notes.txt" not in [entry.path for entry in shallow.entries]

    with pytest.raises(SkillError, match="escapes the workspace"):
        list_files(ListFilesInput(path=".."))
    with pytest.raises(SkillError, match="Not a directory"):
        list_files(ListFilesInput(path="README.md"))


def test_generate_slides_defers_to_engine() -> None:
    deferred = generate_slides(GenerateSlidesInput(topic="tides"))

    assert deferred.action == "stream_slides"
    assert deferred.params == {"topic": "tides", "count": 5}


def test_list_files_skips_symlinks_leading_outside_workspace(tmp_path) -> None:
    workspace = tmp_path / "workspace"
    outside = tmp_path / "outside"
    workspace.mkdir()
    outside.mkdir()
    (outside / "secret.txt").write_text("hidden", encoding="utf-8")
    (workspace / "inside.txt").write_text("visible", encoding="utf-8")
    try:
        (workspace / "escape").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("symlinks are not supported here")

    output = build_list_files_skill(workspace)(ListFilesInput(depth=3))

    paths = [entry.path for entry in output.entries]
    assert paths == ["inside.txt"]

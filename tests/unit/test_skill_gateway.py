import asyncio
import time

from agent_stream.skills import DeferToEngine, SkillCatalog, SkillGateway, SkillSpec
from agent_stream.skills.schemas import ListFilesInput, ReadFileInput, ReadFileOutput


def _dispatch(gateway: SkillGateway, name: str, args: dict):
    return asyncio.run(gateway.dispatch(name, args))


def test_dispatch_validates_and_normalizes_output(gateway) -> None:
    result = _dispatch(gateway, "read_file", {"filename": "notes.txt"})

    assert result.status == "ok"
    assert result.output["content"] == "quarterly budget: 42"
    assert result.output["truncated"] is False
    assert result.attempts == 1
    assert result.duration_ms >= 0


def test_invalid_arguments_are_reported_without_calling_the_skill(gateway) -> None:
    result = _dispatch(gateway, "read_file", {"filename": "a.txt", "extra": True})

    assert result.status == "error"
    assert "Invalid arguments for 'read_file'" in result.error
    assert result.attempts == 0


def test_unknown_and_disabled_skills_are_errors(catalog, gateway) -> None:
    assert _dispatch(gateway, "nope", {}).error == "Unknown skill: nope"

    catalog.set_enabled("list_files", False)
    result = _dispatch(gateway, "list_files", {})

    assert result.status == "error"
    assert result.error == "Skill 'list_files' is disabled"


def test_error_payload_return_is_a_failure() -> None:
    catalog = SkillCatalog(
        {
            "flaky": SkillSpec(
                input_model=ReadFileInput,
                fn=lambda payload: {"error": f"cannot open {payload.filename}"},
                description="returns an error payload",
            )
        }
    )

    result = _dispatch(SkillGateway(catalog=catalog), "flaky", {"filename": "x.txt"})

    assert result.status == "error"
    assert result.error == "cannot open x.txt"


def test_timeout_and_retry() -> None:
    def slow(_: ReadFileInput) -> ReadFileOutput:
        time.sleep(0.2)
        return ReadFileOutput(filename="x", extension=".txt", size=0, truncated=False, content="")

    catalog = SkillCatalog(
        {"slow": SkillSpec(input_model=ReadFileInput, fn=slow, description="slow")}
    )
    gateway = SkillGateway(catalog=catalog, skill_timeout_s=0.01, max_retries=1)

    result = _dispatch(gateway, "slow", {"filename": "x.txt"})

    assert result.status == "error"
    assert result.attempts == 2
    assert "timed out" in result.error


def test_deferred_result_is_passed_through(gateway) -> None:
    result = _dispatch(gateway, "generate_slides", {"topic": "tides", "slides_count": 3})

    assert result.status == "deferred"
    assert result.deferred == DeferToEngine(
        action="stream_slides", params={"topic": "tides", "count": 3}
    )


def test_toggle_takes_effect_for_later_dispatches(catalog, gateway) -> None:
    assert _dispatch(gateway, "list_files", {"depth": 1}).status == "ok"

    assert catalog.toggle("list_files") == {"name": "list_files", "enabled": False}
    assert _dispatch(gateway, "list_files", {"depth": 1}).status == "error"
    assert catalog.toggle("missing") is None


def test_catalog_listing_and_tool_definitions(catalog) -> None:
    listing = {item["id"]: item for item in catalog.to_api_response()}

    assert set(listing) == {"generate_slides", "list_files", "read_file"}
    assert listing["read_file"]["enabled"] is True
    assert listing["read_file"]["tools"] == ["read_file"]
    assert listing["read_file"]["type"] == "builtin"

    definitions = {tool.name: tool for tool in catalog.tool_definitions()}
    assert definitions["list_files"].parameters == ListFilesInput.model_json_schema()

    catalog.set_enabled("read_file", False)
    assert "read_file" not in {tool.name for tool in catalog.tool_definitions()}
    assert "read_file" not in catalog.prompt_context()

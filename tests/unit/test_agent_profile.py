from types import SimpleNamespace

from agent_stream.config.settings import Settings
from agent_stream.engine.profile import (
    DEEP_MODE_DIRECTIVE,
    SECTION_SEPARATOR,
    AgentProfile,
    build_profile,
    load_persona,
)


def test_load_persona_joins_known_files_in_order(tmp_path) -> None:
    (tmp_path / "TOOLS.md").write_text("tools section\n", encoding="utf-8")
    (tmp_path / "IDENTITY.md").write_text("identity section", encoding="utf-8")
    (tmp_path / "USER.md").write_text("   ", encoding="utf-8")
    (tmp_path / "NOTES.md").write_text("not loaded", encoding="utf-8")

    persona = load_persona(tmp_path)

    assert persona == f"identity section{SECTION_SEPARATOR}tools section"


def test_system_prompt_adds_deep_directive_and_skills() -> None:
    profile = AgentProfile(persona="persona")

    normal = profile.system_prompt(mode="normal", skills_context="[AVAILABLE SKILLS]")
    deep = profile.system_prompt(mode="deep")

    assert normal == f"persona{SECTION_SEPARATOR}[AVAILABLE SKILLS]"
    assert deep == f"persona{SECTION_SEPARATOR}{DEEP_MODE_DIRECTIVE}"


def test_build_profile_reads_budgets_from_settings(tmp_path) -> None:
    settings = SimpleNamespace(
        resolved_persona_dir=lambda: tmp_path,
        normal_max_steps=3,
        normal_max_output_tokens=1000,
        deep_max_steps=7,
        deep_max_output_tokens=2000,
    )

    profile = build_profile(settings)

    assert profile.persona == ""
    assert profile.budget("normal").max_steps == 3
    assert profile.budget("deep").max_output_tokens == 2000
    assert profile.budget("unknown").max_steps == 3


def test_packaged_persona_is_loaded_by_default() -> None:
    persona = load_persona(Settings(persona_dir="").resolved_persona_dir())

    assert "# Identity" in persona
    assert "generate_slides" in persona

import asyncio
import json

from agent_stream.generation.types import GenerationError
from agent_stream.graph.nodes.critique import FAIL_OPEN, extract_json_object, parse_critique
from agent_stream.graph.quality_gate import QUALITY_THRESHOLD, QualityGate


def _critique(score: int, instructions: str = "Add sources.") -> str:
    return json.dumps(
        {
            "grounding": 30,
            "safety": 33,
            "completeness": score - 63,
            "score": score,
            "instructions": instructions,
        }
    )


def test_invalid_json_fails_open_with_unmodified_draft(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=["I think this is pretty good overall."])
    gate = QualityGate(adapter)

    result = asyncio.run(gate.review("draft answer", "task"))

    assert result.text == "draft answer"
    assert result.score >= QUALITY_THRESHOLD
    assert result.refined is False
    assert len(adapter.prompts) == 1


def test_score_89_triggers_refine(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=[_critique(89), "improved answer"])
    gate = QualityGate(adapter)

    result = asyncio.run(gate.review("draft answer", "explain tides"))

    assert result.text == "improved answer"
    assert result.refined is True
    assert result.score == 89
    refine_prompt = adapter.prompts[1]["user_prompt"]
    assert "## Critic's Fix Instructions\nAdd sources." in refine_prompt
    assert "## Draft Response\ndraft answer" in refine_prompt
    assert adapter.prompts[1]["max_output_tokens"] == 16000


def test_score_90_passes_unchanged(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=[_critique(90, "PASS")])
    gate = QualityGate(adapter)

    text = asyncio.run(gate.gate("draft answer", "explain tides"))

    assert text == "draft answer"
    assert len(adapter.prompts) == 1
    assert adapter.prompts[0]["max_output_tokens"] == 512
    assert "## Original User Prompt\nexplain tides" in adapter.prompts[0]["user_prompt"]


def test_critique_embedded_in_prose_is_extracted(scripted_adapter) -> None:
    wrapped = "Here is my review:\n" + _critique(40) + "\nThanks!"
    adapter = scripted_adapter(completions=[wrapped, "rewritten"])

    text = asyncio.run(QualityGate(adapter).gate("draft", "task"))

    assert text == "rewritten"


def test_provider_failure_during_critique_fails_open(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=[GenerationError("rate limited")])

    result = asyncio.run(QualityGate(adapter).review("draft", "task"))

    assert result.text == "draft"
    assert result.score == FAIL_OPEN["score"]


def test_refine_failure_or_blank_output_keeps_draft(scripted_adapter) -> None:
    failing = scripted_adapter(completions=[_critique(50), GenerationError("timeout")])
    blank = scripted_adapter(completions=[_critique(50), "   "])

    assert asyncio.run(QualityGate(failing).gate("draft", "task")) == "draft"
    assert asyncio.run(QualityGate(blank).gate("draft", "task")) == "draft"


def test_gate_runs_a_single_pass(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=[_critique(10), "still weak", _critique(10), "again"])

    text = asyncio.run(QualityGate(adapter).gate("draft", "task"))

    assert text == "still weak"
    assert len(adapter.prompts) == 2


def test_custom_threshold(scripted_adapter) -> None:
    adapter = scripted_adapter(completions=[_critique(90), "stricter rewrite"])

    text = asyncio.run(QualityGate(adapter, threshold=95).gate("draft", "task"))

    assert text == "stricter rewrite"


def test_extract_json_object_respects_strings_and_nesting() -> None:
    text = 'noise {"a": "brace } inside", "b": {"c": 1}} trailing {"x": 2}'

    assert extract_json_object(text) == '{"a": "brace } inside", "b": {"c": 1}}'
    assert extract_json_object("no object here") is None
    assert extract_json_object('{"open": true') is None


def test_parse_critique_without_score_fails_open() -> None:
    parsed = parse_critique('{"grounding": 20, "safety": 30, "completeness": "low"}')

    assert parsed["score"] == FAIL_OPEN["score"]
    assert parsed["grounding"] == 20
    assert parsed["safety"] == 30
    assert parsed["completeness"] == FAIL_OPEN["completeness"]
    assert parse_critique('{"score": "high"}')["score"] == 95
    assert parse_critique("[1, 2, 3]") == FAIL_OPEN


def test_low_sub_scores_without_total_keep_the_draft(scripted_adapter) -> None:
    adapter = scripted_adapter(
        completions=['{"grounding": 20, "safety": 20, "completeness": 20, "instructions": "fix"}']
    )

    result = asyncio.run(QualityGate(adapter).review("draft", "task"))

    assert result.text == "draft"
    assert result.refined is False
    assert result.score == 95
    assert len(adapter.prompts) == 1

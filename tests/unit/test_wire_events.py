import json

from agent_stream.engine.events import (
    HEARTBEAT,
    HEARTBEAT_FRAME,
    FinishEvent,
    SlideContent,
    SlideEvent,
    ToolCallEvent,
    ToolResultEvent,
    encode_frame,
    parse_event,
    parse_sse_line,
)


def test_frames_use_camel_case_payloads() -> None:
    frame = encode_frame(
        ToolCallEvent(tool_call_id="c1", tool_name="read_file", args={"filename": "a.txt"})
    )

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: ") :]) == {
        "type": "tool-call",
        "toolCallId": "c1",
        "toolName": "read_file",
        "args": {"filename": "a.txt"},
    }


def test_finish_frame_omits_refined_text_unless_present() -> None:
    plain = json.loads(encode_frame(FinishEvent(finish_reason="stop", total_steps=2))[6:])
    refined = json.loads(
        encode_frame(FinishEvent(finish_reason="stop", total_steps=1, refined_text="better"))[6:]
    )

    assert plain == {"type": "finish", "finishReason": "stop", "totalSteps": 2}
    assert refined["refinedText"] == "better"


def test_heartbeat_frame_is_a_comment() -> None:
    assert encode_frame(HEARTBEAT) == HEARTBEAT_FRAME == ": heartbeat\n\n"
    assert parse_sse_line(": heartbeat") is HEARTBEAT


def test_parse_sse_line_round_trips_encoded_events() -> None:
    event = SlideEvent(index=0, total=-1, content=SlideContent(title="Cover", subtitle="Intro"))

    line = encode_frame(event).strip()

    assert parse_sse_line(line) == event


def test_parse_sse_line_drops_blank_unknown_and_malformed_frames() -> None:
    assert parse_sse_line("") is None
    assert parse_sse_line("event: message") is None
    assert parse_sse_line("data: not json") is None
    assert parse_sse_line('data: {"type": "mystery"}') is None


def test_tool_result_accepts_any_result_payload() -> None:
    event = parse_event({"type": "tool-result", "toolCallId": "c1", "toolName": "x", "result": [1, 2]})

    assert isinstance(event, ToolResultEvent)
    assert event.result == [1, 2]

"""Tests for the transcript data model."""

import pytest
from pydantic import ValidationError

from toolchat.errors import TranscriptError
from toolchat.models import (
    Capability,
    Message,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    validate_transcript,
)


def _tool_message(state="output-available", results=1, call_id="call-1"):
    parts = [
        TextPart(text="Let me check."),
        ToolCallPart(tool_name="weather", call_id=call_id, input={"location": "Oslo"}, state=state),
    ]
    parts += [
        ToolResultPart(tool_name="weather", call_id=call_id, output={"temperature": 3})
        for _ in range(results)
    ]
    return Message(role="assistant", parts=parts)


class TestMessage:
    """Tests for Message and its parts."""

    def test_user_factory(self):
        message = Message.user("hello")
        assert message.role == "user"
        assert message.text == "hello"
        assert message.id.startswith("msg-")

    def test_ids_are_unique(self):
        assert Message.user("a").id != Message.user("a").id

    def test_text_concatenates_text_parts(self):
        message = _tool_message()
        assert message.text == "Let me check."
        assert len(message.tool_calls()) == 1
        assert len(message.tool_results()) == 1

    def test_wire_format_is_camel_case(self):
        wire = _tool_message().to_wire()
        call = wire["parts"][1]
        assert call == {
            "type": "tool-call",
            "toolName": "weather",
            "callId": "call-1",
            "input": {"location": "Oslo"},
            "state": "output-available",
        }
        assert wire["parts"][2]["callId"] == "call-1"

    def test_parses_wire_format(self):
        wire = _tool_message().to_wire()
        parsed = Message.model_validate(wire)
        assert parsed == Message.model_validate(wire)
        assert isinstance(parsed.parts[1], ToolCallPart)
        assert isinstance(parsed.parts[2], ToolResultPart)
        assert parsed.parts[1].tool_name == "weather"

    def test_accepts_snake_case(self):
        part = ToolCallPart(tool_name="calculator", call_id="c1")
        assert part.state == "input-available"

    def test_unknown_part_type_rejected(self):
        with pytest.raises(ValidationError):
            Message.model_validate({"role": "user", "parts": [{"type": "image", "url": "x"}]})

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            Message.model_validate({"role": "tool", "parts": []})

    def test_messages_are_frozen(self):
        message = Message.user("hi")
        with pytest.raises(ValidationError):
            message.role = "assistant"

    def test_result_error_flag(self):
        ok = ToolResultPart(tool_name="x", call_id="1", output=1)
        failed = ToolResultPart(tool_name="x", call_id="1", error="nope")
        assert ok.is_error is False
        assert failed.is_error is True


class TestValidateTranscript:
    """Tests for the call/result invariant."""

    def test_valid_transcript(self):
        validate_transcript([Message.user("weather?"), _tool_message()])

    def test_errored_call_with_result_is_valid(self):
        message = Message(
            role="assistant",
            parts=[
                ToolCallPart(tool_name="x", call_id="c", state="errored"),
                ToolResultPart(tool_name="x", call_id="c", error="Unknown tool 'x'"),
            ],
        )
        validate_transcript([message])

    def test_pending_call_without_result_is_valid(self):
        validate_transcript([_tool_message(state="input-available", results=0)])

    def test_duplicate_ids(self):
        message = Message.user("hi")
        with pytest.raises(TranscriptError, match="Duplicate"):
            validate_transcript([message, message])

    def test_settled_call_missing_result(self):
        with pytest.raises(TranscriptError, match="0 results"):
            validate_transcript([_tool_message(results=0)])

    def test_settled_call_duplicate_results(self):
        with pytest.raises(TranscriptError, match="2 results"):
            validate_transcript([_tool_message(results=2)])

    def test_result_without_call(self):
        message = Message(
            role="assistant",
            parts=[ToolResultPart(tool_name="weather", call_id="ghost", output={})],
        )
        with pytest.raises(TranscriptError, match="unknown call"):
            validate_transcript([message])

    def test_pending_call_with_result(self):
        with pytest.raises(TranscriptError, match="already has a result"):
            validate_transcript([_tool_message(state="input-streaming")])


class TestCapability:
    """Tests for catalog entries."""

    def test_to_dict(self):
        capability = Capability(id="weather", name="Weather", description="d", icon="w")
        assert capability.to_dict() == {
            "id": "weather",
            "name": "Weather",
            "description": "d",
            "icon": "w",
            "defaultEnabled": True,
        }

"""Tests for the OpenAI streaming engine with a mocked client."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from conftest import collect
from toolchat.errors import InferenceEngineError
from toolchat.models import Message
from toolchat.orchestration.engine import (
    OpenAIEngine,
    StepFinish,
    TextChunk,
    ToolCallRequest,
    ToolInputDelta,
    ToolInputStart,
    Usage,
    decode_arguments,
)
from toolchat.orchestration.events import LoopAborted
from toolchat.orchestration.loop import TurnLoop


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None, choices=True):
    choice = SimpleNamespace(
        delta=SimpleNamespace(content=content, tool_calls=tool_calls),
        finish_reason=finish_reason,
    )
    return SimpleNamespace(choices=[choice] if choices else [], usage=usage)


def _tool_delta(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


class FakeStream:
    """Stands in for the SDK's AsyncStream; optionally stalls after its chunks."""

    def __init__(self, chunks, stall=False):
        self.chunks = chunks
        self.stall = stall
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk
        if self.stall:
            await asyncio.Event().wait()

    async def close(self):
        self.closed = True


def _engine(chunks=None, side_effect=None, stream=None):
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(return_value=stream or FakeStream(chunks or []))
    client.close = AsyncMock()
    return OpenAIEngine(model="test-model", client=client), client


def _run(engine, tools=None):
    return asyncio.run(collect(engine.stream_step([{"role": "user", "content": "hi"}], tools or [])))


class TestDecodeArguments:
    """Tests for decode_arguments."""

    def test_valid_json(self):
        assert decode_arguments('{"a": 1}') == {"a": 1}

    def test_empty_means_no_arguments(self):
        assert decode_arguments("") == {}
        assert decode_arguments("  ") == {}

    def test_invalid_json(self):
        assert decode_arguments("{nope") is None


class TestOpenAIEngine:
    """Tests for OpenAIEngine.stream_step."""

    def test_text_stream(self):
        engine, _ = _engine(
            [
                _chunk(content="Hel"),
                _chunk(content="lo"),
                _chunk(finish_reason="stop"),
                _chunk(usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2, total_tokens=7), choices=False),
            ]
        )
        events = _run(engine)
        assert events == [
            TextChunk(text="Hel"),
            TextChunk(text="lo"),
            StepFinish(finish_reason="stop", usage=Usage(5, 2, 7)),
        ]

    def test_tool_call_fragments(self):
        engine, _ = _engine(
            [
                _chunk(tool_calls=[_tool_delta(0, "call_1", "weather", '{"loc')]),
                _chunk(tool_calls=[_tool_delta(0, arguments='ation": "Oslo"}')]),
                _chunk(tool_calls=[_tool_delta(1, "call_2", "datetime", "")]),
                _chunk(finish_reason="tool_calls"),
            ]
        )
        events = _run(engine)
        assert events == [
            ToolInputStart(call_id="call_1", tool_name="weather", input_text='{"loc'),
            ToolInputDelta(call_id="call_1", input_text='ation": "Oslo"}'),
            ToolInputStart(call_id="call_2", tool_name="datetime", input_text=""),
            ToolCallRequest(
                call_id="call_1",
                tool_name="weather",
                input={"location": "Oslo"},
                raw_input='{"location": "Oslo"}',
            ),
            ToolCallRequest(call_id="call_2", tool_name="datetime", input={}, raw_input=""),
            StepFinish(finish_reason="tool-calls"),
        ]

    def test_request_parameters(self):
        engine, client = _engine([_chunk(finish_reason="stop")])
        tools = [{"type": "function", "function": {"name": "weather"}}]
        _run(engine, tools)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}
        assert kwargs["tools"] == tools

    def test_no_tools_omits_parameter(self):
        engine, client = _engine([_chunk(finish_reason="stop")])
        _run(engine)
        assert "tools" not in client.chat.completions.create.call_args.kwargs

    def test_unknown_finish_reason_maps_to_stop(self):
        engine, _ = _engine([_chunk(finish_reason="something_new")])
        assert _run(engine)[-1].finish_reason == "stop"

    def test_api_error_wrapped(self):
        request = httpx.Request("POST", "http://localhost/v1/chat/completions")
        engine, _ = _engine(side_effect=openai.APIConnectionError(request=request))
        with pytest.raises(InferenceEngineError):
            _run(engine)

    def test_stream_closed_after_step(self):
        stream = FakeStream([_chunk(content="Hi"), _chunk(finish_reason="stop")])
        engine, _ = _engine(stream=stream)
        _run(engine)
        assert stream.closed is True


class TestAbortReleasesStream:
    """An aborted turn closes the provider stream instead of leaving it open."""

    def _abort_run(self, engine, abort_on_text):
        loop = TurnLoop(engine)

        async def consume():
            abort = asyncio.Event()
            if not abort_on_text:
                asyncio.get_running_loop().call_later(0.05, abort.set)
            events = []
            async for event in loop.run([Message.user("hi")], {}, abort):
                events.append(event)
                if abort_on_text and isinstance(event, TextChunk):
                    abort.set()
            return events

        return asyncio.run(asyncio.wait_for(consume(), timeout=5))

    def test_abort_after_text_chunk(self):
        stream = FakeStream([_chunk(content="Hi")], stall=True)
        engine, _ = _engine(stream=stream)

        events = self._abort_run(engine, abort_on_text=True)

        assert isinstance(events[-1], LoopAborted)
        assert stream.closed is True

    def test_abort_while_stream_stalls(self):
        stream = FakeStream([_chunk(content="Hi")], stall=True)
        engine, _ = _engine(stream=stream)

        events = self._abort_run(engine, abort_on_text=False)

        assert isinstance(events[-1], LoopAborted)
        assert [m.text for m in events[-1].messages] == ["Hi"]
        assert stream.closed is True


class TestEngineClose:
    """Tests for OpenAIEngine.close."""

    def test_close(self):
        engine, client = _engine([])
        asyncio.run(engine.close())
        client.close.assert_awaited_once()

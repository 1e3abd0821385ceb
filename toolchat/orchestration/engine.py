"""
Inference engine interface.

The turn loop treats the model as a black box: for one step it hands over
chat messages and tool definitions and receives a stream of engine events
(text chunks, tool-call input fragments, complete tool-call requests and a
step-finish signal). ``OpenAIEngine`` implements this over the OpenAI chat
completions streaming API with function calling.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional, Protocol

import openai
from openai import AsyncOpenAI

from ..config import config
from ..errors import InferenceEngineError

logger = logging.getLogger(__name__)

# Provider finish reasons mapped onto the loop's vocabulary.
FINISH_REASONS = {
    "stop": "stop",
    "tool_calls": "tool-calls",
    "function_call": "tool-calls",
    "length": "length",
    "content_filter": "stop",
}


@dataclass
class Usage:
    """Token usage, summed across steps."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class TextChunk:
    text: str


@dataclass
class ToolInputStart:
    """First fragment of a streamed tool call."""

    call_id: str
    tool_name: str
    input_text: str = ""


@dataclass
class ToolInputDelta:
    call_id: str
    input_text: str


@dataclass
class ToolCallRequest:
    """A complete tool call. ``input`` is None when the arguments are not valid JSON."""

    call_id: str
    tool_name: str
    input: Any = None
    raw_input: str = ""


@dataclass
class StepFinish:
    finish_reason: str
    usage: Usage = field(default_factory=Usage)


EngineEvent = TextChunk | ToolInputStart | ToolInputDelta | ToolCallRequest | StepFinish


class InferenceEngine(Protocol):
    """What the turn loop needs from a model."""

    model: str

    def stream_step(
        self,
        messages: list[dict],
        tools: list[dict],
    ) -> AsyncIterator[EngineEvent]:
        """
        Run one model step.

        Yields engine events and ends with exactly one ``StepFinish``.

        Raises:
            InferenceEngineError: On transport or engine failure.
        """
        ...


def decode_arguments(raw: str) -> Any:
    """Decode tool arguments; empty means no arguments, invalid JSON means None."""
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Failed to parse tool arguments JSON: %s", raw[:200])
        return None


@dataclass
class _PendingCall:
    call_id: str
    tool_name: str = ""
    arguments: str = ""
    started: bool = False


class OpenAIEngine:
    """Streaming chat completions with function calling via the OpenAI SDK."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or config.inference.model
        self.temperature = (
            temperature if temperature is not None else config.inference.temperature
        )
        self._client = client or AsyncOpenAI(
            base_url=base_url or config.inference.base_url,
            api_key=api_key or config.inference.api_key or "not-needed",
        )

    async def stream_step(
        self,
        messages: list[dict],
        tools: list[dict],
    ) -> AsyncIterator[EngineEvent]:
        create_kwargs: dict = {
            "model": self.model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            create_kwargs["tools"] = tools
        if self.temperature is not None:
            create_kwargs["temperature"] = self.temperature

        pending: dict[int, _PendingCall] = {}
        finish_reason = "stop"
        usage = Usage()

        stream = None
        try:
            stream = await self._client.chat.completions.create(**create_kwargs)
            async for chunk in stream:
                if chunk.usage:
                    usage = Usage(
                        prompt_tokens=chunk.usage.prompt_tokens or 0,
                        completion_tokens=chunk.usage.completion_tokens or 0,
                        total_tokens=chunk.usage.total_tokens or 0,
                    )
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None and delta.content:
                    yield TextChunk(text=delta.content)

                for tc in (delta.tool_calls if delta is not None else None) or []:
                    call = pending.get(tc.index)
                    if call is None:
                        call = _PendingCall(call_id=tc.id or f"call-{uuid.uuid4().hex[:12]}")
                        pending[tc.index] = call
                    fragment = ""
                    if tc.function is not None:
                        if tc.function.name:
                            call.tool_name += tc.function.name
                        fragment = tc.function.arguments or ""
                    call.arguments += fragment

                    if not call.started and call.tool_name:
                        call.started = True
                        yield ToolInputStart(
                            call_id=call.call_id,
                            tool_name=call.tool_name,
                            input_text=call.arguments,
                        )
                    elif call.started and fragment:
                        yield ToolInputDelta(call_id=call.call_id, input_text=fragment)

                if choice.finish_reason:
                    finish_reason = FINISH_REASONS.get(choice.finish_reason, "stop")

        except openai.APIError as e:
            logger.error("Inference engine call failed: %s", e)
            raise InferenceEngineError(str(e)) from e
        finally:
            # Releases the HTTP response when the step is abandoned mid-stream.
            if stream is not None:
                await stream.close()

        for index in sorted(pending):
            call = pending[index]
            yield ToolCallRequest(
                call_id=call.call_id,
                tool_name=call.tool_name,
                input=decode_arguments(call.arguments),
                raw_input=call.arguments,
            )

        yield StepFinish(finish_reason=finish_reason, usage=usage)

    async def close(self) -> None:
        """Close the underlying OpenAI client."""
        try:
            await self._client.close()
        except Exception as e:
            logger.debug("Error closing OpenAI client: %s", e)

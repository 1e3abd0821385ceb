"""
Stream adapter: loop events to the external event stream.

``StreamAdapter`` turns the loop's internal events into the ordered event
shape sent to remote callers and rendered by the CLI. For every tool call it
guarantees ``ToolCallStarted`` then ``ToolCallReady`` then
``ToolResultReady``, it never reorders text, and it emits nothing after the
first terminal event.

``encode_sse`` / ``sse_stream`` frame events as Server-Sent Events, and
``TranscriptAccumulator`` folds the external stream back into messages.
"""

import json
import logging
from typing import AsyncIterator, Optional

from ..models import Message, TextPart, ToolCallPart, ToolResultPart
from .engine import TextChunk, ToolCallRequest, ToolInputDelta, ToolInputStart
from .events import (
    Aborted,
    Errored,
    Finished,
    LoopAborted,
    LoopFailed,
    LoopFinished,
    StreamEvent,
    TextDelta,
    ToolCallDelta,
    ToolCallReady,
    ToolCallStarted,
    ToolResultReady,
    ToolResultsReady,
)

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"


class StreamAdapter:
    """Converts one request's loop events into external stream events."""

    def __init__(self):
        self._started: dict[str, str] = {}
        self._ready: set[str] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once a terminal event has been emitted."""
        return self._closed

    async def adapt(self, loop_events) -> AsyncIterator[StreamEvent]:
        try:
            async for loop_event in loop_events:
                for event in self.convert(loop_event):
                    yield event
                if self._closed:
                    return
            if not self._closed:
                logger.error("Loop ended without a terminal event")
                self._closed = True
                yield Errored(cause="Stream ended unexpectedly")
        finally:
            aclose = getattr(loop_events, "aclose", None)
            if aclose is not None:
                await aclose()

    def convert(self, loop_event) -> list[StreamEvent]:
        """Map a single loop event; returns an empty list after a terminal event."""
        if self._closed:
            return []

        if isinstance(loop_event, TextChunk):
            return [TextDelta(text=loop_event.text)] if loop_event.text else []

        if isinstance(loop_event, ToolInputStart):
            if loop_event.call_id in self._started:
                return []
            self._started[loop_event.call_id] = loop_event.tool_name
            return [
                ToolCallStarted(
                    call_id=loop_event.call_id,
                    tool_name=loop_event.tool_name,
                    partial_input=loop_event.input_text,
                )
            ]

        if isinstance(loop_event, ToolInputDelta):
            if loop_event.call_id not in self._started or loop_event.call_id in self._ready:
                logger.debug("Dropping input fragment for call %s", loop_event.call_id)
                return []
            return [ToolCallDelta(call_id=loop_event.call_id, input_text_delta=loop_event.input_text)]

        if isinstance(loop_event, ToolCallRequest):
            return self._ready_events(loop_event.call_id, loop_event.tool_name, loop_event.input,
                                      loop_event.raw_input)

        if isinstance(loop_event, ToolResultsReady):
            events: list[StreamEvent] = []
            for result in loop_event.results:
                call_id = result.call_id or ""
                events.extend(self._ready_events(call_id, result.tool_name, None, ""))
                events.append(
                    ToolResultReady(
                        call_id=call_id,
                        tool_name=result.tool_name,
                        output=None if result.is_error else result.output,
                        error=result.error,
                    )
                )
            return events

        if isinstance(loop_event, LoopFinished):
            return self._terminal(
                Finished(
                    finish_reason=loop_event.finish_reason,
                    usage=loop_event.usage,
                    messages=loop_event.messages,
                )
            )

        if isinstance(loop_event, LoopFailed):
            return self._terminal(Errored(cause=loop_event.error, messages=loop_event.messages))

        if isinstance(loop_event, LoopAborted):
            return self._terminal(Aborted(messages=loop_event.messages))

        # StepComplete and anything else has no external counterpart.
        return []

    def _ready_events(self, call_id: str, tool_name: str, tool_input, raw_input: str) -> list[StreamEvent]:
        if call_id in self._ready:
            return []
        events: list[StreamEvent] = []
        if call_id not in self._started:
            self._started[call_id] = tool_name
            events.append(ToolCallStarted(call_id=call_id, tool_name=tool_name, partial_input=raw_input))
        self._ready.add(call_id)
        events.append(ToolCallReady(call_id=call_id, tool_name=tool_name, input=tool_input))
        return events

    def _terminal(self, event: StreamEvent) -> list[StreamEvent]:
        self._closed = True
        return [event]


def encode_sse(event: StreamEvent) -> str:
    """Frame one event as a Server-Sent Events chunk."""
    return f"data: {json.dumps(event.to_dict(), default=str)}\n\n"


async def sse_stream(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    """Encode every event, then send the done marker."""
    async for event in events:
        yield encode_sse(event)
    yield SSE_DONE


class TranscriptAccumulator:
    """
    Rebuilds assistant messages from the external event stream.

    A new message starts when text or a new call arrives after the current
    message already holds results, mirroring the loop's one message per
    step. Calls that never got a result are left out of the messages.
    """

    def __init__(self):
        self.messages: list[Message] = []
        self.finish_reason: Optional[str] = None
        self.error: Optional[str] = None
        self._segments: list = []
        self._calls: dict[str, ToolCallPart] = {}
        self._results: list[ToolResultPart] = []

    @property
    def text(self) -> str:
        """All text received so far, including the open message."""
        done = "".join(m.text for m in self.messages)
        return done + "".join(s for s in self._segments if isinstance(s, str))

    def add(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            if self._results:
                self._close_message()
            if self._segments and isinstance(self._segments[-1], str):
                self._segments[-1] += event.text
            else:
                self._segments.append(event.text)

        elif isinstance(event, ToolCallStarted):
            if self._results:
                self._close_message()
            self._calls[event.call_id] = ToolCallPart(
                tool_name=event.tool_name, call_id=event.call_id, state="input-streaming"
            )
            self._segments.append(("call", event.call_id))

        elif isinstance(event, ToolCallReady):
            self._calls[event.call_id] = ToolCallPart(
                tool_name=event.tool_name, call_id=event.call_id, input=event.input
            )

        elif isinstance(event, ToolResultReady):
            call = self._calls.get(event.call_id)
            if call is not None:
                self._calls[event.call_id] = call.model_copy(
                    update={"state": "errored" if event.error is not None else "output-available"}
                )
            self._results.append(
                ToolResultPart(
                    tool_name=event.tool_name,
                    call_id=event.call_id,
                    output=event.output,
                    error=event.error,
                )
            )

        elif isinstance(event, Finished):
            self.finish_reason = event.finish_reason
            self._close_message()

        elif isinstance(event, Errored):
            self.finish_reason = "error"
            self.error = event.cause
            self._close_message()

        elif isinstance(event, Aborted):
            self.finish_reason = "aborted"
            self._close_message()

    def _close_message(self) -> None:
        answered = {r.call_id for r in self._results}
        parts: list = []
        for segment in self._segments:
            if isinstance(segment, tuple):
                call_id = segment[1]
                if call_id in answered and call_id in self._calls:
                    parts.append(self._calls[call_id])
            elif segment:
                parts.append(TextPart(text=segment))
        parts.extend(self._results)
        if parts:
            self.messages.append(Message(role="assistant", parts=parts))
        self._segments = []
        self._calls = {}
        self._results = []

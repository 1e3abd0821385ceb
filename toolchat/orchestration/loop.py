"""
Turn loop: bounded multi-step tool orchestration.

Each step presents the transcript and the enabled tool definitions to the
inference engine, streams what comes back, executes the requested tool calls
against the selected tools and appends one assistant message holding the
step's text, calls and results. The loop ends when the engine finishes
without tool calls, when the step bound is reached, when the engine fails or
when the caller aborts.

Per-step flow:
    1. Stop if the caller aborted
    2. Rebuild engine messages from the transcript
    3. Stream the engine step, passing text and tool-call events through
    4. No tool calls: append the text, finish with the engine's reason
    5. Otherwise run every call (unknown tools and bad input become error
       results), append the step message, continue
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Optional, Union

from ..config import config
from ..errors import (
    InferenceEngineError,
    RequestAborted,
    ToolValidationError,
    UnknownToolError,
)
from ..models import Message, TextPart, ToolCallPart
from ..tools.registry import ToolDefinition, ToolResult, execute_tool
from ..tracing import TracingContext
from .engine import (
    EngineEvent,
    InferenceEngine,
    StepFinish,
    TextChunk,
    ToolCallRequest,
    ToolInputDelta,
    ToolInputStart,
    Usage,
)
from .events import LoopAborted, LoopFailed, LoopFinished, StepComplete, ToolResultsReady
from .messages import build_model_messages, build_system_prompt
from .tool_defs import build_tool_definitions

logger = logging.getLogger(__name__)

LoopEvent = Union[
    TextChunk,
    ToolInputStart,
    ToolInputDelta,
    ToolCallRequest,
    ToolResultsReady,
    StepComplete,
    LoopFinished,
    LoopFailed,
    LoopAborted,
]

TERMINAL_FINISH_REASONS = frozenset({"stop", "length"})


class LoopStatus(str, Enum):
    PENDING = "pending"
    AWAITING_MODEL = "awaiting-model"
    EXECUTING_TOOLS = "executing-tools"
    FINISHED = "finished"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class TurnState:
    """State of one request. Never shared between requests."""

    transcript: list[Message]
    step_index: int = 0
    finish_reason: Optional[str] = None
    status: LoopStatus = LoopStatus.PENDING
    usage: Usage = field(default_factory=Usage)
    new_messages: list[Message] = field(default_factory=list)

    def append(self, message: Message) -> None:
        self.transcript.append(message)
        self.new_messages.append(message)


@dataclass
class _StepBuffer:
    """Text and tool calls of the step in progress, in emission order."""

    segments: list[Union[str, ToolCallRequest]] = field(default_factory=list)
    calls: list[ToolCallRequest] = field(default_factory=list)

    def add_text(self, text: str) -> None:
        if self.segments and isinstance(self.segments[-1], str):
            self.segments[-1] += text
        else:
            self.segments.append(text)

    def add_call(self, call: ToolCallRequest) -> None:
        self.segments.append(call)
        self.calls.append(call)

    @property
    def has_text(self) -> bool:
        return any(isinstance(s, str) and s for s in self.segments)

    def to_message(self, results: Optional[list[ToolResult]] = None) -> Message:
        """
        Build the step's assistant message.

        Without results only the text is kept: calls that never ran cannot
        be replayed.
        """
        by_call = {r.call_id: r for r in results or []}
        parts: list = []
        for segment in self.segments:
            if isinstance(segment, str):
                if segment:
                    parts.append(TextPart(text=segment))
            elif segment.call_id in by_call:
                result = by_call[segment.call_id]
                parts.append(
                    ToolCallPart(
                        tool_name=segment.tool_name,
                        call_id=segment.call_id,
                        input=segment.input,
                        state="errored" if result.is_error else "output-available",
                    )
                )
        for call in self.calls:
            if call.call_id in by_call:
                parts.append(by_call[call.call_id].to_part())
        return Message(role="assistant", parts=parts)


class TurnLoop:
    """
    Drives one chat request through at most ``max_steps`` engine calls.

    Sibling tool calls of a step do not depend on each other. They run one
    after another in issue order by default; with ``parallel_tool_calls``
    they run concurrently. Handlers always run in worker threads so a slow
    tool never blocks the event loop. Either way every call of the
    step finishes before any result is emitted, and results are emitted and
    stored in issue order. Each call runs at most once.
    """

    def __init__(
        self,
        engine: InferenceEngine,
        max_steps: Optional[int] = None,
        parallel_tool_calls: Optional[bool] = None,
        execution_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        self.engine = engine
        self.max_steps = max_steps if max_steps is not None else config.inference.max_steps
        if self.max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.parallel_tool_calls = (
            parallel_tool_calls
            if parallel_tool_calls is not None
            else config.inference.parallel_tool_calls
        )
        self.execution_id = execution_id
        self.tracing_context = tracing_context
        self.state = TurnState(transcript=[])
        self._step: Optional[_StepBuffer] = None

    @property
    def _id_prefix(self) -> str:
        return f"[{self.execution_id}] " if self.execution_id else ""

    async def run(
        self,
        transcript: list[Message],
        tools: dict[str, ToolDefinition],
        abort_event: Optional[asyncio.Event] = None,
        system_prompt: Optional[str] = None,
    ) -> AsyncIterator[LoopEvent]:
        """
        Run the loop for one request.

        Args:
            transcript: Messages submitted by the caller. Copied, not mutated.
            tools: Tools enabled for this request (see ``select_tools``).
            abort_event: Set by the caller to cancel the request.
            system_prompt: Overrides the default prompt naming the enabled tools.

        Yields:
            Loop events, ending with exactly one of ``LoopFinished``,
            ``LoopFailed`` or ``LoopAborted``.
        """
        self.state = TurnState(transcript=list(transcript))
        self._step = None
        abort_event = abort_event or asyncio.Event()
        prompt = system_prompt or build_system_prompt(tools.keys())
        tool_defs = build_tool_definitions(tools)

        logger.info(
            "%sStarting turn loop: %d messages, tools=%s, max_steps=%d",
            self._id_prefix,
            len(transcript),
            list(tools),
            self.max_steps,
        )

        try:
            async for event in self._run_steps(tools, tool_defs, prompt, abort_event):
                yield event
        except asyncio.CancelledError:
            logger.info("%sTurn loop cancelled", self._id_prefix)
            self._mark_aborted()
            raise
        finally:
            self._log_summary()

    async def _run_steps(
        self,
        tools: dict[str, ToolDefinition],
        tool_defs: list[dict],
        prompt: str,
        abort_event: asyncio.Event,
    ) -> AsyncIterator[LoopEvent]:
        state = self.state
        for step_index in range(1, self.max_steps + 1):
            if abort_event.is_set():
                yield self._mark_aborted()
                return

            state.step_index = step_index
            state.status = LoopStatus.AWAITING_MODEL
            self._step = step = _StepBuffer()
            messages = build_model_messages(state.transcript, prompt)

            finish: Optional[StepFinish] = None
            try:
                async for event in self._stream_step(messages, tool_defs, step_index, abort_event):
                    if isinstance(event, StepFinish):
                        finish = event
                        continue
                    if isinstance(event, TextChunk):
                        step.add_text(event.text)
                    elif isinstance(event, ToolCallRequest):
                        step.add_call(event)
                    yield event
            except RequestAborted:
                yield self._mark_aborted()
                return
            except InferenceEngineError as e:
                yield self._mark_failed(str(e))
                return
            except Exception as e:
                logger.exception("%sUnexpected engine failure at step %d", self._id_prefix, step_index)
                yield self._mark_failed(f"Inference engine failure: {e}")
                return

            if finish is None:
                yield self._mark_failed("Inference engine ended the step without a finish signal")
                return
            state.usage = state.usage + finish.usage

            if not step.calls:
                message = step.to_message()
                if message.parts:
                    state.append(message)
                self._step = None
                reason = finish.finish_reason if finish.finish_reason in TERMINAL_FINISH_REASONS else "stop"
                yield StepComplete(step_index=step_index, message=message, finish_reason=reason)
                yield self._mark_finished(reason)
                return

            if abort_event.is_set():
                yield self._mark_aborted()
                return

            state.status = LoopStatus.EXECUTING_TOOLS
            results = await self._execute_calls(step.calls, tools, step_index)
            message = step.to_message(results)
            state.append(message)
            self._step = None

            yield ToolResultsReady(step_index=step_index, results=results)
            yield StepComplete(step_index=step_index, message=message, finish_reason="tool-calls")

        logger.warning("%sMax steps (%d) reached, stopping", self._id_prefix, self.max_steps)
        yield self._mark_finished("length")

    async def _stream_step(
        self,
        messages: list[dict],
        tool_defs: list[dict],
        step_index: int,
        abort_event: asyncio.Event,
    ) -> AsyncIterator[EngineEvent]:
        """Stream one engine step, stopping as soon as the caller aborts."""
        logger.debug("%sStep %d: calling inference engine", self._id_prefix, step_index)
        stream = self.engine.stream_step(messages, tool_defs)

        if self.tracing_context:
            generation = self.tracing_context.generation(
                name=f"step_{step_index}",
                model=getattr(self.engine, "model", "unknown"),
                input=messages,
            )
        else:
            generation = None

        obs = generation.__enter__() if generation else None
        try:
            while True:
                event = await self._next_event(stream, abort_event)
                if event is None:
                    break
                if obs is not None and isinstance(event, StepFinish):
                    obs.set_output({"finish_reason": event.finish_reason})
                    obs.set_usage(event.usage.prompt_tokens, event.usage.completion_tokens)
                yield event
        except BaseException:
            if obs is not None:
                obs.set_status("error")
            raise
        finally:
            if generation is not None:
                generation.__exit__(None, None, None)
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    @staticmethod
    async def _next_event(stream, abort_event: asyncio.Event) -> Optional[EngineEvent]:
        """
        Wait for the next engine event or the abort signal, whichever is first.

        Returns:
            The event, or None when the stream is exhausted.

        Raises:
            RequestAborted: If the abort signal won.
        """
        if abort_event.is_set():
            raise RequestAborted()
        next_task = asyncio.ensure_future(stream.__anext__())
        abort_task = asyncio.ensure_future(abort_event.wait())
        try:
            done, _ = await asyncio.wait(
                {next_task, abort_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            next_task.cancel()
            abort_task.cancel()
            raise

        if next_task in done:
            abort_task.cancel()
            try:
                return next_task.result()
            except StopAsyncIteration:
                return None

        next_task.cancel()
        try:
            await next_task
        except (asyncio.CancelledError, StopAsyncIteration):
            pass
        raise RequestAborted()

    async def _execute_calls(
        self,
        calls: list[ToolCallRequest],
        tools: dict[str, ToolDefinition],
        step_index: int,
    ) -> list[ToolResult]:
        logger.debug(
            "%sStep %d: executing %d tool call(s)", self._id_prefix, step_index, len(calls)
        )
        if self.parallel_tool_calls and len(calls) > 1:
            return list(
                await asyncio.gather(
                    *(asyncio.to_thread(self._execute_call, call, tools) for call in calls)
                )
            )
        # Handlers are synchronous; keep them off the event loop either way.
        return [await asyncio.to_thread(self._execute_call, call, tools) for call in calls]

    def _execute_call(
        self,
        call: ToolCallRequest,
        tools: dict[str, ToolDefinition],
    ) -> ToolResult:
        """Run a single tool call. Never raises for tool-level failures."""
        tool_def = tools.get(call.tool_name)
        if tool_def is None:
            logger.warning("%sModel requested unavailable tool: %s", self._id_prefix, call.tool_name)
            return ToolResult.from_error(
                UnknownToolError(
                    f"Unknown tool '{call.tool_name}'. "
                    f"Available tools: {', '.join(tools) or 'none'}",
                    tool_name=call.tool_name,
                ),
                call.call_id,
            )

        if call.input is None:
            return ToolResult.from_error(
                ToolValidationError(
                    "Invalid input: arguments are not valid JSON", tool_name=call.tool_name
                ),
                call.call_id,
            )

        if self.tracing_context is None:
            return execute_tool(tool_def, call.input, call.call_id)

        with self.tracing_context.span(name=f"tool:{call.tool_name}", input=call.input) as span:
            result = execute_tool(tool_def, call.input, call.call_id)
            if result.is_error:
                span.set_status("error")
                span.set_output({"error": result.error})
            else:
                span.set_output({"output": result.output})
            return result

    def _mark_finished(self, reason: str) -> LoopFinished:
        self.state.status = LoopStatus.FINISHED
        self.state.finish_reason = reason
        return LoopFinished(
            finish_reason=reason,
            usage=self.state.usage,
            messages=list(self.state.new_messages),
        )

    def _mark_failed(self, error: str) -> LoopFailed:
        logger.error("%sTurn loop failed at step %d: %s", self._id_prefix, self.state.step_index, error)
        self._keep_partial_text()
        self.state.status = LoopStatus.FAILED
        self.state.finish_reason = "error"
        return LoopFailed(error=error, messages=list(self.state.new_messages))

    def _mark_aborted(self) -> LoopAborted:
        if self.state.status != LoopStatus.ABORTED:
            logger.info("%sTurn loop aborted at step %d", self._id_prefix, self.state.step_index)
            self._keep_partial_text()
            self.state.status = LoopStatus.ABORTED
            self.state.finish_reason = "aborted"
        return LoopAborted(messages=list(self.state.new_messages))

    def _keep_partial_text(self) -> None:
        """Append the text streamed so far in an unfinished step."""
        step, self._step = self._step, None
        if step is not None and step.has_text:
            self.state.append(step.to_message())

    def _log_summary(self) -> None:
        state = self.state
        logger.info(
            "%sTurn loop %s: steps=%d finish_reason=%s new_messages=%d tokens=%d",
            self._id_prefix,
            state.status.value,
            state.step_index,
            state.finish_reason,
            len(state.new_messages),
            state.usage.total_tokens,
        )
        for message in state.new_messages:
            for call in message.tool_calls():
                logger.debug("%s  %s(%s) -> %s", self._id_prefix, call.tool_name, call.input, call.state)

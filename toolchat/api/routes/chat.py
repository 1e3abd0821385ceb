"""
Streaming chat endpoint.

Implements /api/chat: the submitted transcript runs through the turn loop
with the caller's enabled tools and the resulting events are streamed back
as Server-Sent Events, ending with a terminal event and a ``[DONE]`` marker.
"""

import asyncio
import logging
import uuid
from functools import lru_cache
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from ...errors import TranscriptError
from ...models import Capability, Message, validate_transcript
from ...orchestration import OpenAIEngine, StreamAdapter, TurnLoop, sse_stream
from ...orchestration.engine import InferenceEngine
from ...orchestration.loop import LoopStatus
from ...tools import ToolDefinition, select_tools
from ...tracing import TracingContext, get_tracing_client
from ..schemas import ChatRequest, ErrorResponse
from .tools import get_capabilities

logger = logging.getLogger(__name__)

router = APIRouter()

# Seconds between client disconnect checks while a response streams.
DISCONNECT_POLL_INTERVAL = 0.25


@lru_cache(maxsize=1)
def get_engine() -> InferenceEngine:
    """Process-wide inference engine built from configuration."""
    return OpenAIEngine()


async def _watch_disconnect(request: Request, abort_event: asyncio.Event) -> None:
    """Set the abort event once the client goes away."""
    while not abort_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, aborting request")
            abort_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def _stream_response(
    loop: TurnLoop,
    transcript: list[Message],
    tools: dict[str, ToolDefinition],
    request: Request,
    tracing_context: TracingContext,
) -> AsyncIterator[str]:
    abort_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, abort_event))
    adapter = StreamAdapter()
    try:
        async for chunk in sse_stream(adapter.adapt(loop.run(transcript, tools, abort_event))):
            yield chunk
    finally:
        watcher.cancel()
        state = loop.state
        tracing_context.end_trace(
            output={
                "finish_reason": state.finish_reason,
                "steps": state.step_index,
                "messages": [m.to_wire() for m in state.new_messages],
            },
            status="success" if state.status == LoopStatus.FINISHED else state.status.value,
        )
        _flush_tracing()


def _last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.text
    return ""


@router.post(
    "/api/chat",
    responses={
        200: {"content": {"text/event-stream": {}}, "description": "Event stream"},
        400: {"model": ErrorResponse, "description": "Invalid transcript or request body"},
    },
    summary="Stream a chat response",
    description=(
        "Run the transcript through the turn loop with the enabled tools. "
        "The response is a stream of events: text deltas, tool-call progress "
        "and tool results, ending with finish, error or abort."
    ),
)
async def chat(
    body: ChatRequest,
    request: Request,
    engine: InferenceEngine = Depends(get_engine),
    capabilities: tuple[Capability, ...] = Depends(get_capabilities),
) -> StreamingResponse:
    """Stream the assistant's response to a transcript."""
    execution_id = f"exec-{uuid.uuid4().hex[:8]}"

    try:
        validate_transcript(body.messages)
    except TranscriptError as e:
        logger.warning(f"[{execution_id}] Rejected transcript: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if body.enabled_tool_ids is None:
        enabled_ids = [c.id for c in capabilities if c.default_enabled]
    else:
        enabled_ids = body.enabled_tool_ids
    tools = select_tools(enabled_ids)

    query = _last_user_text(body.messages)
    logger.info(
        f"[{execution_id}] Processing chat request: {query[:100]}... "
        f"(tools: {', '.join(tools) or 'none'})"
    )
    logger.debug(f"[{execution_id}] Requested tool ids: {enabled_ids}")

    tracing_context = TracingContext(execution_id=execution_id)
    tracing_context.start_trace(
        name="chat_request",
        input=query,
        metadata={"enabled_tools": list(tools), "messages": len(body.messages)},
    )

    loop = TurnLoop(engine, execution_id=execution_id, tracing_context=tracing_context)
    return StreamingResponse(
        _stream_response(loop, list(body.messages), tools, request, tracing_context),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _flush_tracing() -> None:
    """Flush tracing client if available."""
    client = get_tracing_client()
    if client:
        client.flush()

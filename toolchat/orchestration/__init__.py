"""
Streaming tool orchestration.

The turn loop drives a bounded sequence of inference-engine steps, executes
the tool calls each step requests, and the stream adapter turns its progress
into the ordered external event stream.
"""

from .engine import InferenceEngine, OpenAIEngine, Usage
from .events import (
    Aborted,
    Errored,
    Finished,
    StreamEvent,
    TextDelta,
    ToolCallDelta,
    ToolCallReady,
    ToolCallStarted,
    ToolResultReady,
)
from .loop import LoopStatus, TurnLoop, TurnState
from .messages import build_model_messages, build_system_prompt
from .stream import StreamAdapter, TranscriptAccumulator, encode_sse, sse_stream
from .tool_defs import build_tool_definitions

__all__ = [
    "InferenceEngine",
    "OpenAIEngine",
    "Usage",
    "Aborted",
    "Errored",
    "Finished",
    "StreamEvent",
    "TextDelta",
    "ToolCallDelta",
    "ToolCallReady",
    "ToolCallStarted",
    "ToolResultReady",
    "LoopStatus",
    "TurnLoop",
    "TurnState",
    "build_model_messages",
    "build_system_prompt",
    "StreamAdapter",
    "TranscriptAccumulator",
    "encode_sse",
    "sse_stream",
    "build_tool_definitions",
]

"""
Events emitted to callers while a chat request runs.

Two layers live here. Loop events are what ``TurnLoop`` produces internally
(engine events passed through plus tool results and terminal outcomes).
Stream events are the external, ordered shape sent to remote callers and
rendered locally; ``StreamAdapter`` converts one into the other.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..models import Message
from ..tools.registry import ToolResult
from .engine import Usage

# Loop events


@dataclass
class ToolResultsReady:
    """All results of one step, in call issue order."""

    step_index: int
    results: list[ToolResult]


@dataclass
class StepComplete:
    step_index: int
    message: Message
    finish_reason: str


@dataclass
class LoopFinished:
    finish_reason: str
    usage: Usage
    messages: list[Message]


@dataclass
class LoopFailed:
    error: str
    messages: list[Message] = field(default_factory=list)


@dataclass
class LoopAborted:
    messages: list[Message] = field(default_factory=list)


# Stream events


@dataclass
class StreamEvent:
    """Base class for external events."""

    type = "event"

    def to_dict(self) -> dict:
        raise NotImplementedError

    @property
    def is_terminal(self) -> bool:
        return False


@dataclass
class TextDelta(StreamEvent):
    text: str
    type = "text-delta"

    def to_dict(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass
class ToolCallStarted(StreamEvent):
    call_id: str
    tool_name: str
    partial_input: str = ""
    type = "tool-call-started"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "callId": self.call_id,
            "toolName": self.tool_name,
            "partialInput": self.partial_input,
        }


@dataclass
class ToolCallDelta(StreamEvent):
    call_id: str
    input_text_delta: str
    type = "tool-call-delta"

    def to_dict(self) -> dict:
        return {"type": self.type, "callId": self.call_id, "inputTextDelta": self.input_text_delta}


@dataclass
class ToolCallReady(StreamEvent):
    call_id: str
    tool_name: str
    input: Any = None
    type = "tool-call-ready"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "callId": self.call_id,
            "toolName": self.tool_name,
            "input": self.input,
        }


@dataclass
class ToolResultReady(StreamEvent):
    call_id: str
    tool_name: str
    output: Any = None
    error: Optional[str] = None
    type = "tool-result-ready"

    def to_dict(self) -> dict:
        data = {"type": self.type, "callId": self.call_id, "toolName": self.tool_name}
        if self.error is not None:
            data["error"] = self.error
        else:
            data["output"] = self.output
        return data


@dataclass
class Finished(StreamEvent):
    finish_reason: str
    usage: Usage = field(default_factory=Usage)
    messages: list[Message] = field(default_factory=list)
    type = "finish"

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "finishReason": self.finish_reason,
            "usage": self.usage.to_dict(),
            "messages": [m.to_wire() for m in self.messages],
        }


@dataclass
class Errored(StreamEvent):
    cause: str
    messages: list[Message] = field(default_factory=list)
    type = "error"

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "cause": self.cause,
            "messages": [m.to_wire() for m in self.messages],
        }


@dataclass
class Aborted(StreamEvent):
    """Stopped by the caller; ``messages`` holds what was produced so far."""

    messages: list[Message] = field(default_factory=list)
    type = "abort"

    @property
    def is_terminal(self) -> bool:
        return True

    def to_dict(self) -> dict:
        return {"type": self.type, "messages": [m.to_wire() for m in self.messages]}

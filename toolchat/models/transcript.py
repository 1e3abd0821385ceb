"""
Session transcript model.

A transcript is the ordered, append-only list of messages threaded through
every turn of a request. Each message is made of typed parts: text, tool
calls and tool results. The same models are the request/response wire shape,
so a transcript produced by one request can be submitted unchanged as the
input of the next.
"""

import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..errors import TranscriptError

ToolCallState = Literal["input-streaming", "input-available", "output-available", "errored"]

# Call states that must be backed by exactly one result part.
SETTLED_STATES = frozenset({"output-available", "errored"})


def new_message_id() -> str:
    """Generate a message id."""
    return f"msg-{uuid.uuid4().hex[:12]}"


class TranscriptModel(BaseModel):
    """Frozen base model using camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Serialize with wire field names."""
        return self.model_dump(by_alias=True, mode="json")


class TextPart(TranscriptModel):
    """Plain text produced by the user, the system prompt or the model."""

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(TranscriptModel):
    """A tool invocation requested by the model."""

    type: Literal["tool-call"] = "tool-call"
    tool_name: str
    call_id: str
    input: Any = None
    state: ToolCallState = "input-available"


class ToolResultPart(TranscriptModel):
    """The outcome of a tool call: either an output or an error message."""

    type: Literal["tool-result"] = "tool-result"
    tool_name: str
    call_id: str
    output: Any = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


Part = Annotated[Union[TextPart, ToolCallPart, ToolResultPart], Field(discriminator="type")]


class Message(TranscriptModel):
    """A single message in the transcript."""

    id: str = Field(default_factory=new_message_id)
    role: Literal["user", "assistant", "system"]
    parts: list[Part] = Field(default_factory=list)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]

    @classmethod
    def user(cls, text: str) -> "Message":
        """Build a user message holding a single text part."""
        return cls(role="user", parts=[TextPart(text=text)])


def validate_transcript(messages: list[Message]) -> None:
    """
    Check that a transcript can be replayed to the inference engine.

    Raises:
        TranscriptError: If message ids repeat, a result has no matching call,
            or a settled call does not have exactly one result.
    """
    seen_ids: set[str] = set()
    for message in messages:
        if message.id in seen_ids:
            raise TranscriptError(f"Duplicate message id '{message.id}'")
        seen_ids.add(message.id)

        calls = {c.call_id: c for c in message.tool_calls()}
        result_counts: dict[str, int] = {}
        for result in message.tool_results():
            if result.call_id not in calls:
                raise TranscriptError(
                    f"Message '{message.id}': result for unknown call '{result.call_id}'"
                )
            result_counts[result.call_id] = result_counts.get(result.call_id, 0) + 1

        for call_id, call in calls.items():
            count = result_counts.get(call_id, 0)
            if call.state in SETTLED_STATES and count != 1:
                raise TranscriptError(
                    f"Message '{message.id}': call '{call_id}' is {call.state} "
                    f"but has {count} results"
                )
            if call.state not in SETTLED_STATES and count:
                raise TranscriptError(
                    f"Message '{message.id}': call '{call_id}' is {call.state} "
                    "but already has a result"
                )

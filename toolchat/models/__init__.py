"""
Data models for toolchat.
"""

from .capability import Capability
from .transcript import (
    Message,
    Part,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    new_message_id,
    validate_transcript,
)

__all__ = [
    "Capability",
    "Message",
    "Part",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "new_message_id",
    "validate_transcript",
]

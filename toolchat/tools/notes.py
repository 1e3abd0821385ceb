"""
Notes Tool

Save or list notes. Nothing is stored: saving echoes the note back with a
timestamp and listing returns example notes.
"""

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .clock import iso_timestamp

logger = logging.getLogger(__name__)

EXAMPLE_NOTES = ["Example note 1", "Example note 2"]


class NotesInput(BaseModel):
    action: Literal["save", "list"] = Field(description='Action: "save" or "list"')
    content: Optional[str] = Field(default=None, description="Note content (only when saving)")


def handle_notes(action: str, content: Optional[str] = None) -> dict:
    if action == "save" and content:
        logger.info("Saved note: %r", content[:50])
        return {
            "action": "saved",
            "content": content,
            "timestamp": iso_timestamp(datetime.now(timezone.utc)),
        }

    logger.info("Listed notes")
    return {"action": "list", "notes": list(EXAMPLE_NOTES)}


def _handle(params: NotesInput) -> dict:
    return handle_notes(params.action, params.content)


def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="notes",
        description="Save or retrieve notes.",
        input_model=NotesInput,
        handler=_handle,
    )


_register()

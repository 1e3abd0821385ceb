"""
Pytest configuration and fixtures for toolchat tests.
"""

import asyncio
from typing import Any, Optional

import pytest

from toolchat.orchestration.engine import (
    StepFinish,
    TextChunk,
    ToolCallRequest,
    ToolInputStart,
    Usage,
)
from toolchat.tools import ToolRegistry


class ScriptedEngine:
    """
    Inference engine fake that replays one scripted step per call.

    Each script is a list of engine events; an ``Exception`` instance in a
    script is raised at that point, and ``HANG`` blocks until cancelled.
    Calls beyond the last script replay the last one.
    """

    HANG = object()

    model = "scripted-model"

    def __init__(self, steps: list[list[Any]]):
        self.steps = steps
        self.calls: list[dict] = []
        self.closed = False

    async def stream_step(self, messages: list[dict], tools: list[dict]):
        self.calls.append({"messages": messages, "tools": tools})
        index = min(len(self.calls) - 1, len(self.steps) - 1)
        for event in self.steps[index]:
            await asyncio.sleep(0)
            if event is self.HANG:
                await asyncio.Event().wait()
                continue
            if isinstance(event, Exception):
                raise event
            yield event

    async def close(self) -> None:
        self.closed = True


def text_step(*chunks: str, finish_reason: str = "stop", usage: Optional[Usage] = None) -> list:
    """A step that streams text and finishes without tool calls."""
    return [TextChunk(text=c) for c in chunks] + [
        StepFinish(finish_reason=finish_reason, usage=usage or Usage(10, 5, 15))
    ]


def tool_step(*calls: tuple, text: str = "") -> list:
    """
    A step that requests tool calls.

    Each call is ``(call_id, tool_name, input)``.
    """
    events: list = [TextChunk(text=text)] if text else []
    for call_id, tool_name, _ in calls:
        events.append(ToolInputStart(call_id=call_id, tool_name=tool_name))
    for call_id, tool_name, tool_input in calls:
        events.append(ToolCallRequest(call_id=call_id, tool_name=tool_name, input=tool_input))
    events.append(StepFinish(finish_reason="tool-calls", usage=Usage(20, 10, 30)))
    return events


async def collect(events) -> list:
    """Drain an async iterator into a list."""
    return [event async for event in events]


@pytest.fixture
def clean_registry():
    """Restore the tool registry after a test that registers extra tools."""
    saved = ToolRegistry.all_tools()
    yield ToolRegistry
    ToolRegistry.clear()
    ToolRegistry._tools.update(saved)

"""
Transcript to engine message conversion.

Each request rebuilds the engine's chat messages from the transcript: the
system prompt first, then every message in order, with an assistant's tool
calls followed by one ``tool`` message per result in call order so the
engine sees a deterministic replay of what happened.
"""

import json
from typing import Any, Iterable

from ..models import Message, ToolResultPart

BASE_SYSTEM_PROMPT = "You are a helpful AI assistant."


def build_system_prompt(enabled_ids: Iterable[str]) -> str:
    """System prompt naming the tools enabled for this request."""
    ids = list(enabled_ids)
    tool_line = ", ".join(ids) if ids else "none"
    return (
        f"{BASE_SYSTEM_PROMPT}\n"
        f"You have access to the following tools: {tool_line}.\n"
        "Use these tools when appropriate to respond to the user's requests.\n"
        "Be friendly and clear in your responses."
    )


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _result_content(result: ToolResultPart) -> str:
    if result.is_error:
        return _dump({"error": result.error})
    return _dump(result.output)


def _assistant_messages(message: Message) -> list[dict]:
    results = {r.call_id: r for r in message.tool_results()}
    # Calls without a recorded result cannot be replayed.
    calls = [c for c in message.tool_calls() if c.call_id in results]

    entry: dict = {"role": "assistant", "content": message.text or None}
    if calls:
        entry["tool_calls"] = [
            {
                "id": call.call_id,
                "type": "function",
                "function": {
                    "name": call.tool_name,
                    "arguments": _dump(call.input if call.input is not None else {}),
                },
            }
            for call in calls
        ]
    elif not message.text:
        return []

    converted = [entry]
    for call in calls:
        converted.append(
            {
                "role": "tool",
                "tool_call_id": call.call_id,
                "content": _result_content(results[call.call_id]),
            }
        )
    return converted


def build_model_messages(transcript: list[Message], system_prompt: str) -> list[dict]:
    """
    Build engine chat messages from a transcript.

    Args:
        transcript: Ordered messages of the session.
        system_prompt: Prompt placed before the transcript.

    Returns:
        OpenAI chat-completions message list.
    """
    messages: list[dict] = [{"role": "system", "content": system_prompt}]
    for message in transcript:
        if message.role == "assistant":
            messages.extend(_assistant_messages(message))
        elif message.text:
            messages.append({"role": message.role, "content": message.text})
    return messages

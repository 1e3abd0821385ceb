"""
Tool definitions for the inference engine.

Converts the tools selected for a request into OpenAI-style function-calling
definitions.
"""

import logging

from ..tools.registry import ToolDefinition

logger = logging.getLogger(__name__)


def _clean_schema(schema: dict) -> dict:
    """Drop pydantic's cosmetic ``title`` keys from a JSON Schema."""
    cleaned = {k: v for k, v in schema.items() if k != "title"}
    if "properties" in cleaned:
        cleaned["properties"] = {
            name: {k: v for k, v in prop.items() if k != "title"}
            for name, prop in cleaned["properties"].items()
        }
    return cleaned


def build_tool_definition(name: str, tool_def: ToolDefinition) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": tool_def.description,
            "parameters": _clean_schema(tool_def.parameters_schema),
        },
    }


def build_tool_definitions(tools: dict[str, ToolDefinition]) -> list[dict]:
    """
    Build OpenAI function-calling tool definitions.

    Args:
        tools: Selected tools, keyed by id, in presentation order.

    Returns:
        List of OpenAI-format tool definitions.
    """
    definitions = [build_tool_definition(name, tool_def) for name, tool_def in tools.items()]
    logger.debug("Built %d tool definitions", len(definitions))
    return definitions

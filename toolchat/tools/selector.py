"""
Tool selection.

Narrows the registry to the tools a caller enabled for one request. Ids that
are not registered are dropped without error so callers can ask for
capabilities that do not exist yet.
"""

import logging
from typing import Iterable

from .registry import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)


def select_tools(enabled_ids: Iterable[str]) -> dict[str, ToolDefinition]:
    """
    Build the enabled tool set for a request.

    Args:
        enabled_ids: Tool ids requested by the caller, in any order and
            possibly containing duplicates or unknown ids.

    Returns:
        Mapping of id to definition, in first-seen caller order.
    """
    registered = ToolRegistry.all_tools()
    selected: dict[str, ToolDefinition] = {}
    for tool_id in enabled_ids:
        if tool_id in selected:
            continue
        tool_def = registered.get(tool_id)
        if tool_def is None:
            logger.debug("Ignoring unknown tool id '%s'", tool_id)
            continue
        selected[tool_id] = tool_def
    return selected

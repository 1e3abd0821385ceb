"""
toolchat Tools Package

Available tools (all simulated, none contacts an external service):
- weather: Random weather for a location
- calculator: Arithmetic expression evaluation
- web-search: Canned search results
- datetime: Current date and time in a timezone
- translator: Tagged echo of the input text
- notes: Save/list notes without persistence
"""

from .registry import ToolDefinition, ToolRegistry, ToolResult, execute_tool
from .selector import select_tools
from .weather import get_weather
from .calculator import calculate
from .web_search import search
from .clock import get_datetime
from .translator import translate
from .notes import handle_notes

__all__ = [
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "execute_tool",
    "select_tools",
    "get_weather",
    "calculate",
    "search",
    "get_datetime",
    "translate",
    "handle_notes",
]

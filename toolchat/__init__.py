"""
toolchat - streaming chat orchestration with pluggable tools

This package provides:
- Tool registry with six simulated tools and per-request selection
- Bounded multi-step turn loop over an OpenAI-compatible chat model
- Ordered external event stream (SSE) and a FastAPI server
- Interactive CLI for testing
"""

from .orchestration import OpenAIEngine, StreamAdapter, TurnLoop
from .tools import ToolRegistry, select_tools

__all__ = [
    "OpenAIEngine",
    "StreamAdapter",
    "TurnLoop",
    "ToolRegistry",
    "select_tools",
]

__version__ = "0.1.0"

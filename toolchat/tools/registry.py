"""
Tool Registry - Single source of truth for tool definitions.

Provides a central registry mapping tool ids to their description, input
schema and handler. Execution goes through ``ToolRegistry.execute`` which
validates input against the schema and turns every tool-level failure into
an error result instead of raising.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from ..errors import ToolError, ToolExecutionError, ToolValidationError, UnknownToolError
from ..models import ToolResultPart

logger = logging.getLogger(__name__)


@dataclass
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    input_model: type[BaseModel]
    handler: Callable[[BaseModel], Any]

    @property
    def parameters_schema(self) -> dict:
        """JSON Schema of the tool input."""
        return self.input_model.model_json_schema()


@dataclass
class ToolResult:
    """Outcome of a single tool execution."""

    tool_name: str
    call_id: Optional[str] = None
    output: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def from_error(cls, exc: ToolError, call_id: Optional[str] = None) -> "ToolResult":
        return cls(
            tool_name=exc.tool_name or "",
            call_id=call_id,
            error=str(exc),
            error_kind=exc.kind,
        )

    def to_part(self) -> ToolResultPart:
        """Convert to a transcript result part."""
        return ToolResultPart(
            tool_name=self.tool_name,
            call_id=self.call_id or "",
            output=None if self.is_error else self.output,
            error=self.error,
        )


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"]) or "input"
        problems.append(f"{location}: {err['msg']}")
    return "Invalid input: " + "; ".join(problems)


class ToolRegistry:
    """Central registry for all tools."""

    _tools: dict[str, ToolDefinition] = {}

    @classmethod
    def register(
        cls,
        name: str,
        description: str,
        input_model: type[BaseModel],
        handler: Callable[[BaseModel], Any],
    ) -> None:
        """Register a tool with its metadata."""
        cls._tools[name] = ToolDefinition(
            name=name,
            description=description,
            input_model=input_model,
            handler=handler,
        )

    @classmethod
    def get(cls, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return cls._tools.get(name)

    @classmethod
    def all_tools(cls) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return cls._tools.copy()

    @classmethod
    def get_tools_summary(cls) -> str:
        """Get formatted summary of all tools."""
        lines = []
        for name, tool in cls._tools.items():
            lines.append(f"- {name}: {tool.description}")
        return "\n".join(lines)

    @classmethod
    def execute(
        cls,
        name: str,
        tool_input: Any,
        call_id: Optional[str] = None,
    ) -> ToolResult:
        """
        Validate input and run a registered tool.

        Never raises for tool-level failures: unknown tools, schema
        violations and exceptions from the tool body all come back as a
        ``ToolResult`` carrying an error.

        Args:
            name: Tool id.
            tool_input: Raw input (normally the decoded JSON arguments).
            call_id: Call id to stamp on the result.

        Returns:
            ToolResult with either ``output`` or ``error`` set.
        """
        tool_def = cls.get(name)
        if tool_def is None:
            logger.warning("Unknown tool: %s", name)
            return ToolResult.from_error(
                UnknownToolError(f"Unknown tool '{name}'", tool_name=name), call_id
            )
        return execute_tool(tool_def, tool_input, call_id)

    @classmethod
    def clear(cls) -> None:
        """Clear all registered tools (mainly for testing)."""
        cls._tools.clear()


def execute_tool(
    tool_def: ToolDefinition,
    tool_input: Any,
    call_id: Optional[str] = None,
) -> ToolResult:
    """Execute an already resolved tool definition. See ``ToolRegistry.execute``."""
    name = tool_def.name
    try:
        params = tool_def.input_model.model_validate(
            tool_input if tool_input is not None else {}
        )
    except ValidationError as e:
        logger.debug("Tool '%s' input rejected: %s", name, e)
        return ToolResult.from_error(
            ToolValidationError(_format_validation_error(e), tool_name=name), call_id
        )

    try:
        output = tool_def.handler(params)
    except ToolExecutionError as e:
        logger.info("Tool '%s' reported failure: %s", name, e)
        e.tool_name = name
        return ToolResult.from_error(e, call_id)
    except Exception as e:
        logger.exception("Tool '%s' execution failed: %s", name, e)
        return ToolResult.from_error(
            ToolExecutionError(f"Tool '{name}' failed to execute", tool_name=name),
            call_id,
        )

    return ToolResult(tool_name=name, call_id=call_id, output=output)

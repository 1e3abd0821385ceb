"""
Exception types for toolchat.

Tool-level errors are never propagated out of the turn loop: the registry
folds them into error result parts so the model can react in the next step.
Only engine faults and explicit cancellation end a request.
"""

from typing import Optional


class ToolchatError(Exception):
    """Base exception for toolchat."""


class ConfigurationError(ToolchatError):
    """Raised when a configuration file is malformed."""


class TranscriptError(ToolchatError):
    """Raised when a submitted transcript breaks the call/result invariant."""


class ToolError(ToolchatError):
    """Base class for failures attributable to a single tool call."""

    kind = "execution"

    def __init__(self, message: str, tool_name: Optional[str] = None):
        super().__init__(message)
        self.tool_name = tool_name


class ToolValidationError(ToolError):
    """Tool input did not match the tool's declared schema."""

    kind = "validation"


class UnknownToolError(ToolError):
    """The model requested a tool that is disabled or does not exist."""

    kind = "unknown-tool"


class ToolExecutionError(ToolError):
    """Raised by a tool body to report a failure with a user-facing message."""

    kind = "execution"


class InferenceEngineError(ToolchatError):
    """Transport or engine-level failure. Terminal for the request."""


class RequestAborted(ToolchatError):
    """The caller cancelled the in-flight request."""

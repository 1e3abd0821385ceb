"""
Request-scoped tracing context.

One ``TracingContext`` is created per chat request. It opens a root span for
the request and hands out child observations: a generation per model step
and a span per tool call. Parent linking is explicit through Langfuse
``TraceContext`` so nesting is correct even across ``await`` points.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)


@dataclass
class Observation:
    """A span or generation; inert when tracing is disabled."""

    name: str
    as_type: str = "span"
    enabled: bool = False
    start_kwargs: dict = field(default_factory=dict)
    _context_manager: Any = field(default=None, repr=False)
    _handle: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Any = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    def start(self, trace_context: Optional[TraceContext]) -> None:
        if not self.enabled:
            return
        client = get_tracing_client()
        if not client or not client.client:
            return
        try:
            self._start_time = time.time()
            self._context_manager = client.client.start_as_current_observation(
                trace_context=trace_context,
                as_type=self.as_type,
                name=self.name,
                **self.start_kwargs,
            )
            self._handle = self._context_manager.__enter__()
        except Exception as e:
            logger.warning(f"Failed to start {self.as_type} '{self.name}': {e}")
            self._handle = None

    def end(self) -> None:
        if not self.enabled or not self._handle:
            return
        try:
            update: dict[str, Any] = {
                "metadata": {
                    "status": self._status,
                    "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                }
            }
            if self._output is not None:
                update["output"] = self._output
            if self._usage:
                update["usage_details"] = self._usage
            self._handle.update(**update)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Failed to end {self.as_type} '{self.name}': {e}")

    @property
    def observation_id(self) -> Optional[str]:
        return getattr(self._handle, "id", None)

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def set_usage(self, prompt_tokens: int, completion_tokens: int) -> None:
        self._usage = {"input": prompt_tokens, "output": completion_tokens}


@dataclass
class TracingContext:
    """Lifecycle of the trace for a single chat request."""

    execution_id: str
    session_id: Optional[str] = None
    _root: Optional[Observation] = field(default=None, repr=False)
    _trace_id: Optional[str] = field(default=None, repr=False)
    _enabled: bool = field(default=False, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(self, name: str = "chat_request", input: Any = None,
                    metadata: Optional[dict] = None) -> None:
        """Open the root span for this request."""
        if not self._enabled:
            return
        self._root = Observation(
            name=name,
            enabled=True,
            start_kwargs={
                "input": input,
                "metadata": {"execution_id": self.execution_id, **(metadata or {})},
            },
        )
        self._root.start(None)
        self._trace_id = getattr(self._root._handle, "trace_id", None)
        if self._root._handle is not None and self.session_id:
            try:
                self._root._handle.update_trace(session_id=self.session_id)
            except Exception as e:
                logger.warning(f"[{self.execution_id}] Failed to set trace session: {e}")

    def end_trace(self, output: Any = None, status: str = "success") -> None:
        """Close the root span."""
        if self._root is None:
            return
        self._root.set_output(output)
        self._root.set_status(status)
        self._root.end()
        self._root = None

    def _parent_context(self) -> Optional[TraceContext]:
        if not self._trace_id or self._root is None or not self._root.observation_id:
            return None
        return TraceContext(trace_id=self._trace_id, parent_span_id=self._root.observation_id)

    @contextmanager
    def span(self, name: str, input: Any = None,
             metadata: Optional[dict] = None) -> Iterator[Observation]:
        """Span around a unit of work such as a tool call."""
        obs = Observation(
            name=name,
            enabled=self._enabled,
            start_kwargs={"input": input, "metadata": metadata},
        )
        obs.start(self._parent_context())
        try:
            yield obs
        finally:
            obs.end()

    @contextmanager
    def generation(self, name: str, model: str, input: Any = None,
                   model_parameters: Optional[dict] = None) -> Iterator[Observation]:
        """Generation around one call to the inference engine."""
        obs = Observation(
            name=name,
            as_type="generation",
            enabled=self._enabled,
            start_kwargs={
                "model": model,
                "input": input,
                "model_parameters": model_parameters,
            },
        )
        obs.start(self._parent_context())
        try:
            yield obs
        finally:
            obs.end()

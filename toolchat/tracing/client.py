"""
Process-wide Langfuse client.

Tracing is optional. The client only connects when both keys are set and the
server passes ``auth_check()``; otherwise it stays inert and every call on it
returns immediately. Uses the Langfuse SDK v3 (OpenTelemetry-based) API.
"""

import logging
from typing import Any, Optional

from langfuse import Langfuse

from ..config import LangfuseConfig

logger = logging.getLogger(__name__)


def _connect(public_key: str, secret_key: str, host: str, debug: bool) -> tuple[Optional[Langfuse], Optional[str]]:
    """Build and verify a Langfuse client. Returns ``(client, None)`` or ``(None, reason)``."""
    if host and not host.startswith(("http://", "https://")):
        logger.warning(f"LANGFUSE_HOST '{host}' has no scheme; expected http(s)://hostname:port")

    options: dict[str, Any] = {"public_key": public_key, "secret_key": secret_key, "debug": debug}
    if host:
        options["host"] = host
    try:
        langfuse = Langfuse(**options)
        if not langfuse.auth_check():
            return None, "Langfuse auth_check() failed, check LANGFUSE_HOST and keys"
    except Exception as e:
        return None, f"Failed to initialize Langfuse client: {e}"
    return langfuse, None


class TracingClient:
    """Holds the Langfuse client, or the reason there is none."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self.host = host
        self._client: Optional[Langfuse] = None
        self._error: Optional[str] = None

        if public_key and secret_key:
            self._client, self._error = _connect(public_key, secret_key, host, debug)
        else:
            self._error = "Langfuse credentials not configured"

        if self._client is not None:
            logger.info(f"Langfuse tracing enabled (host: {host or 'default'})")
        elif public_key or secret_key:
            logger.warning(f"Tracing disabled: {self._error}")
        else:
            logger.debug(f"Tracing disabled: {self._error}")

    @classmethod
    def from_config(cls, settings: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=settings.public_key,
            secret_key=settings.secret_key,
            host=settings.host,
            debug=settings.debug,
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def error(self) -> Optional[str]:
        """Why tracing is disabled, if it is."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning(f"Failed to flush tracing events: {e}")

    def shutdown(self) -> None:
        """Flush what is pending and close the client."""
        if self._client is None:
            return
        try:
            self._client.shutdown()
        except Exception as e:
            logger.warning(f"Error during tracing client shutdown: {e}")
        else:
            logger.info("Langfuse tracing client shutdown complete")
        finally:
            self._client = None


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(
    public_key: str = "",
    secret_key: str = "",
    host: str = "",
    debug: bool = False,
    settings: Optional[LangfuseConfig] = None,
) -> TracingClient:
    """Create the global tracing client, from explicit keys or a ``LangfuseConfig``."""
    global _tracing_client
    if settings is not None:
        _tracing_client = TracingClient.from_config(settings)
    else:
        _tracing_client = TracingClient(public_key=public_key, secret_key=secret_key, host=host, debug=debug)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    global _tracing_client
    if _tracing_client is not None:
        _tracing_client.shutdown()
        _tracing_client = None

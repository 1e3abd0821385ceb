"""
Configuration management for toolchat.

Loads all configuration from environment variables with sensible defaults
for local development. A ``.env`` file in the working directory is read first.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "")
    return float(value) if value else None


@dataclass
class InferenceConfig:
    """Configuration for the hosted chat model."""
    base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    api_key: str = os.getenv("OPENAI_API_KEY", "")
    model: str = os.getenv("CHAT_MODEL", "gpt-5-mini")
    # Unset means the provider default; some reasoning models reject the parameter.
    temperature: Optional[float] = _optional_float("CHAT_TEMPERATURE")
    max_steps: int = int(os.getenv("MAX_STEPS", "5"))
    parallel_tool_calls: bool = os.getenv("PARALLEL_TOOL_CALLS", "false").lower() == "true"


@dataclass
class ToolsConfig:
    """Configuration for the tool catalog."""
    capabilities_config_path: str = os.getenv("CAPABILITIES_CONFIG_PATH", "")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "Europe/Helsinki")


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    port: int = int(os.getenv("SERVER_PORT", "8000"))
    workers: int = int(os.getenv("SERVER_WORKERS", "1"))
    reload: bool = os.getenv("SERVER_RELOAD", "false").lower() == "true"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = os.getenv("LANGFUSE_PUBLIC_KEY", "")
    secret_key: str = os.getenv("LANGFUSE_SECRET_KEY", "")
    host: str = os.getenv("LANGFUSE_HOST", "")
    debug: bool = os.getenv("LANGFUSE_DEBUG", "false").lower() == "true"

    @property
    def enabled(self) -> bool:
        """Auto-enable when both keys are configured."""
        return bool(self.public_key and self.secret_key)


@dataclass
class Config:
    """Main configuration container."""
    inference: InferenceConfig
    tools: ToolsConfig
    server: ServerConfig
    langfuse: LangfuseConfig
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_config() -> Config:
    """Get the application configuration."""
    return Config(
        inference=InferenceConfig(),
        tools=ToolsConfig(),
        server=ServerConfig(),
        langfuse=LangfuseConfig(),
    )


# Global config instance
config = get_config()

"""
Configuration loader for toolchat.

Loads the capability catalog from a YAML file with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import config
from .errors import ConfigurationError
from .models import Capability
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

# Default catalog path relative to project root
DEFAULT_CAPABILITIES_CONFIG_PATH = (
    Path(__file__).parent.parent / "config" / "capabilities.yaml"
)

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0", ""}


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"'{field_name}' must be a boolean, got {value!r}")


def _parse_capability(tool_id: str, data: dict) -> Capability:
    """Parse a single catalog entry from dict."""
    if not isinstance(data, dict):
        raise ValueError("entry must be a mapping")
    return Capability(
        id=tool_id,
        name=str(data.get("name", tool_id.replace("-", " ").title())),
        description=str(data.get("description", "")),
        icon=str(data.get("icon", "")),
        default_enabled=_parse_bool(data.get("enabled", True), "enabled"),
    )


def default_capabilities() -> list[Capability]:
    """Derive one enabled capability per registered tool."""
    return [
        Capability(
            id=name,
            name=name.replace("-", " ").title(),
            description=tool.description,
        )
        for name, tool in ToolRegistry.all_tools().items()
    ]


def load_capabilities(path: Optional[str] = None) -> list[Capability]:
    """
    Load the capability catalog from a YAML file.

    Args:
        path: Path to the YAML file. If None, uses CAPABILITIES_CONFIG_PATH
              (env or config) or the default path.

    Returns:
        Capabilities in file order. Falls back to registry-derived entries
        when the file does not exist.

    Raises:
        ConfigurationError: If the file is malformed
    """
    if path is None:
        path = config.tools.capabilities_config_path or str(DEFAULT_CAPABILITIES_CONFIG_PATH)

    config_path = Path(path)

    if not config_path.exists():
        logger.warning(
            f"Capabilities config not found at {config_path}, using registered tools"
        )
        return default_capabilities()

    logger.debug(f"Loading capabilities config from {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if raw_config is None:
        return default_capabilities()

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)
    entries = raw_config.get("capabilities") or {}
    if not isinstance(entries, dict):
        raise ConfigurationError(f"'capabilities' in {config_path} must be a mapping")

    capabilities = []
    for tool_id, data in entries.items():
        try:
            capabilities.append(_parse_capability(str(tool_id), data))
        except ValueError as e:
            logger.error(f"Failed to parse capability '{tool_id}': {e}")
            raise ConfigurationError(
                f"Invalid capability configuration for '{tool_id}': {e}"
            ) from e

        if ToolRegistry.get(str(tool_id)) is None:
            logger.warning(f"Capability '{tool_id}' has no registered tool")

    return capabilities

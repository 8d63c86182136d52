"""YAML configuration loading with environment variable expansion."""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from huddle.config.models import AppConfig

# Matches a whole value of the form ${NAME} or ${NAME:-fallback}
ENV_VAR_PATTERN = re.compile(
    r"^\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}$"
)


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigFileNotFoundError(ConfigError):
    """Raised when the configuration file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the YAML file cannot be parsed."""


class EnvVarNotFoundError(ConfigError):
    """Raised when a referenced environment variable is not set and has no default."""


def expand_env_vars(data: Any) -> Any:
    """Recursively expand ``${VAR}`` references in configuration data.

    Only string values that consist entirely of a reference are expanded,
    so ``"prefix${VAR}"`` is left untouched. ``${VAR:-value}`` falls back to
    ``value`` when ``VAR`` is unset.

    Args:
        data: Parsed YAML data (dict, list, or scalar).

    Returns:
        The data with references replaced.

    Raises:
        EnvVarNotFoundError: If a variable without a default is not set.
    """
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    if not isinstance(data, str):
        return data

    match = ENV_VAR_PATTERN.match(data)
    if match is None:
        return data

    name = match.group("name")
    value = os.environ.get(name)
    if value is not None:
        return value
    if match.group("default") is not None:
        return match.group("default")
    raise EnvVarNotFoundError(f"Environment variable '{name}' not found")


def load_config(path: Path | str) -> AppConfig:
    """Load and validate the application configuration.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ConfigFileNotFoundError: If the file does not exist.
        ConfigParseError: If the YAML cannot be parsed.
        EnvVarNotFoundError: If a referenced environment variable is missing.
        ValidationError: If the data fails pydantic validation.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigFileNotFoundError(f"Configuration file not found: {path}")

    try:
        raw_data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Failed to parse YAML: {e}") from e

    if raw_data is None:
        raw_data = {}
    if not isinstance(raw_data, dict):
        raise ConfigParseError("Top-level configuration must be a mapping")

    return AppConfig(**expand_env_vars(raw_data))

"""Console configuration management.

Handles persistent configuration stored in ~/.api-tester/config.yaml.
Supports environment variable overrides. The configured hosts are the
defaults of a fresh session; a restored session snapshot overrides them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .session import DEFAULT_API_HOST, DEFAULT_AUTH_HOST, SessionState

# Default values
DEFAULT_TIMEOUT = 30
DEFAULT_LOG_LEVEL = "warning"

CONFIG_KEYS = ("auth_host", "api_host", "timeout", "log_level", "session_id")

# Environment variable mappings
ENV_VARS = {
    "auth_host": "API_TESTER_AUTH_HOST",
    "api_host": "API_TESTER_API_HOST",
    "timeout": "API_TESTER_TIMEOUT",
    "log_level": "API_TESTER_LOG_LEVEL",
    "session_id": "API_TESTER_SESSION",
}


@dataclass
class ConsoleConfig:
    """Console configuration."""

    auth_host: str = DEFAULT_AUTH_HOST
    api_host: str = DEFAULT_API_HOST
    timeout: int = DEFAULT_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL
    session_id: str | None = None

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def session_defaults(self) -> SessionState:
        """Fresh-session state seeded with the configured hosts."""
        return SessionState(auth_host=self.auth_host, api_host=self.api_host)

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in CONFIG_KEYS}


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.api-tester/config.yaml
    """
    return Path.home() / ".api-tester" / "config.yaml"


def _coerce(key: str, value: Any) -> Any:
    if key == "timeout":
        return int(value)
    return str(value)


def load_config() -> ConsoleConfig:
    """Load console configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.api-tester/config.yaml)
    3. Defaults

    Returns:
        ConsoleConfig with values and sources
    """
    config = ConsoleConfig()
    sources: dict[str, str] = {key: "default" for key in CONFIG_KEYS}

    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
            if isinstance(file_config, dict):
                for key in CONFIG_KEYS:
                    if key in file_config and file_config[key] is not None:
                        setattr(config, key, _coerce(key, file_config[key]))
                        sources[key] = "config file"
        except (OSError, yaml.YAMLError, ValueError):
            pass  # Ignore config file errors, use defaults

    for key, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            setattr(config, key, _coerce(key, raw))
            sources[key] = "environment"
        except ValueError:
            pass

    config._sources = sources
    return config


def _read_file() -> dict[str, Any]:
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            existing = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return existing if isinstance(existing, dict) else {}


def save_config(key: str, value: Any) -> None:
    """Save a config value to the config file.

    Args:
        key: Config key (see CONFIG_KEYS)
        value: Value to save

    Raises:
        ValueError: Unknown key or value of the wrong type
    """
    if key not in CONFIG_KEYS:
        raise ValueError(f"Unknown config key: {key}")

    existing = _read_file()
    existing[key] = _coerce(key, value)

    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)


def unset_config(key: str) -> bool:
    """Remove a config value from the config file.

    Args:
        key: Config key to remove

    Returns:
        True if key was removed, False if not found
    """
    config_path = get_config_path()
    if not config_path.exists():
        return False

    existing = _read_file()
    if key not in existing:
        return False

    del existing[key]

    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)

    return True

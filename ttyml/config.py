"""
Configuration Module for TTYML.

Provides:
- Centralized constants for the TTYML vocabulary, HTTP headers and timeouts
- ClientConfig dataclass with validation
- YAML/JSON configuration file support
- Environment variable overrides

DESIGN NOTES:
- All magic strings and numbers used by the client are defined here
- Precedence when loading: CLI overrides > environment > config file > defaults

DO NOT:
- Hardcode the TTYML namespace or media type elsewhere - import them from here
- Remove constants without updating all references
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Final, Optional

import yaml

from ._version import version as __version__

logger = logging.getLogger(__name__)


# =============================================================================
# CENTRALIZED CONSTANTS - Single source of truth for all configuration values
# =============================================================================

# --- TTYML vocabulary ---
TTYML_NAMESPACE: Final[str] = "https://ttyml.org/2018/05/26"
TTYML_MEDIA_TYPE: Final[str] = "text/ttyml"

# --- Document defaults ---
DEFAULT_CHARSET: Final[str] = "utf-8"
DEFAULT_METHOD: Final[str] = "GET"

# Stripped from header lines and user input (ASCII only, not Unicode spaces)
ASCII_WHITESPACE: Final[str] = " \t\n\r\f\v"

# --- HTTP ---
ACCEPT_ENCODING: Final[str] = "gzip, deflate"
FORM_CONTENT_TYPE: Final[str] = "application/x-www-form-urlencoded"
HTTP_REQUEST_TIMEOUT: Final[float] = 30.0  # seconds, connect + read
BODY_CHUNK_SIZE: Final[int] = 8192  # bytes handed to each body callback
DEFAULT_USER_AGENT: Final[str] = f"ttyml/{__version__}"

# Terminal size headers sent with every request when the size is known
TTY_COLUMNS_HEADER: Final[str] = "Tty-Columns"
TTY_LINES_HEADER: Final[str] = "Tty-Lines"

# --- User-facing messages ---
INVALID_INPUT_TEMPLATE: Final[str] = "Invalid input.  Must match '{regex}'"

# --- Environment variables ---
ENV_TIMEOUT: Final[str] = "TTYML_TIMEOUT"
ENV_USER_AGENT: Final[str] = "TTYML_USER_AGENT"
ENV_VERIFY_TLS: Final[str] = "TTYML_VERIFY_TLS"
ENV_LOG_LEVEL: Final[str] = "TTYML_LOG_LEVEL"

VALID_LOG_LEVELS: Final[frozenset[str]] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)

_TRUE_STRINGS: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class ClientConfig:
    """
    Main configuration class for the TTYML client.

    Supports loading from YAML files, JSON files, environment variables,
    or direct instantiation.
    """

    # HTTP settings
    timeout: float = HTTP_REQUEST_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    verify_tls: bool = True

    # Send Tty-Columns / Tty-Lines when the terminal size is known
    send_terminal_size: bool = True

    # Logging settings
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate configuration values."""
        try:
            self.timeout = float(self.timeout)
        except (TypeError, ValueError) as e:
            raise ValueError(f"timeout must be a number, got {self.timeout!r}") from e
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

        if not self.user_agent or not str(self.user_agent).strip():
            raise ValueError("user_agent must not be empty")

        self.verify_tls = _parse_bool(self.verify_tls, "verify_tls")
        self.send_terminal_size = _parse_bool(
            self.send_terminal_size, "send_terminal_size"
        )

        self.log_level = str(self.log_level).upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got {self.log_level!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "timeout": self.timeout,
            "user_agent": self.user_agent,
            "verify_tls": self.verify_tls,
            "send_terminal_size": self.send_terminal_size,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """Create config from dictionary, ignoring unknown keys."""
        known_fields = {
            "timeout",
            "user_agent",
            "verify_tls",
            "send_terminal_size",
            "log_level",
            "log_file",
        }
        unknown = set(data) - known_fields
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")
        filtered = {k: v for k, v in data.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ClientConfig":
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or not a mapping
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                "Configuration file must contain a YAML mapping/dictionary"
            )

        return cls.from_dict(data)

    @classmethod
    def from_json(cls, path: str | Path) -> "ClientConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("Configuration file must contain a JSON object")

        return cls.from_dict(data)


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect configuration overrides from TTYML_* environment variables."""
    if environ is None:
        environ = dict(os.environ)

    mapping = {
        ENV_TIMEOUT: "timeout",
        ENV_USER_AGENT: "user_agent",
        ENV_VERIFY_TLS: "verify_tls",
        ENV_LOG_LEVEL: "log_level",
    }
    overrides: Dict[str, Any] = {}
    for env_name, key in mapping.items():
        value = environ.get(env_name)
        if value:
            overrides[key] = value
    return overrides


def load_config(
    config_path: str | Path | None = None,
    cli_overrides: Dict[str, Any] | None = None,
    environ: Optional[Dict[str, str]] = None,
) -> ClientConfig:
    """
    Load configuration with precedence: CLI args > environment > config file > defaults.

    Args:
        config_path: Optional path to YAML or JSON config file
        cli_overrides: Optional dictionary of CLI argument overrides
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Merged ClientConfig instance
    """
    config_dict: Dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.suffix in (".yml", ".yaml"):
            file_config = ClientConfig.from_yaml(path)
        elif path.suffix == ".json":
            file_config = ClientConfig.from_json(path)
        else:
            raise ValueError(
                f"Unsupported config file format: {path.suffix}. "
                "Use .yaml, .yml, or .json"
            )
        config_dict = file_config.to_dict()

    config_dict.update(env_overrides(environ))

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:  # Only override if explicitly set
                config_dict[key] = value

    return ClientConfig.from_dict(config_dict)

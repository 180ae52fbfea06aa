# =============================================================================
# Lens Overlay Protocol - Centralized Configuration
# =============================================================================
# Provides a single Config dataclass containing the tunable parameters for the
# wire codec, the client-side request sequencing and the backend ingest path.
# Parameters are overridable via environment variables with the LENS_ prefix
# (e.g., LENS_REJECT_SEQUENCE_GAPS=true).
# =============================================================================

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    """
    Convert an environment variable string to a bool.

    Args:
        value: Raw string such as "true", "0", "yes".

    Returns:
        The parsed boolean.

    Raises:
        ValueError: If the string is not a recognised boolean literal.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _resolve_log_level(level_str: str) -> int:
    """
    Convert a string log level name to a logging constant.

    Args:
        level_str: One of "DEBUG", "INFO", "WARNING", "ERROR".

    Returns:
        The corresponding logging level, INFO for unknown names.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(level_str.upper(), logging.INFO)


@dataclass
class Config:
    """
    Centralized configuration for the Lens Overlay protocol stack.

    All fields can be overridden via environment variables prefixed with LENS_.
    """

    # -- Logging --
    log_level_str: str = "INFO"

    # -- Decoding --
    validate_coordinates_on_decode: bool = True
    max_message_bytes: int = 8 * 1024 * 1024
    max_recursion_depth: int = 100  # Nested unknown groups

    # -- Producing --
    strict_producer: bool = True
    analytics_id_bytes: int = 16

    # -- Backend ingest --
    reject_sequence_gaps: bool = False

    # -- Derived (computed post-init) --
    log_level: int = field(init=False)

    def __post_init__(self):
        """Apply environment variable overrides and compute derived fields."""
        self._apply_env_overrides()
        self.log_level = _resolve_log_level(self.log_level_str)

    def _apply_env_overrides(self):
        """
        Override config fields from environment variables.

        Looks for LENS_<FIELD_NAME_UPPERCASE> environment variables and
        applies them with appropriate type conversion.
        """
        field_types = {
            "log_level_str": str,
            "validate_coordinates_on_decode": _parse_bool,
            "max_message_bytes": int,
            "max_recursion_depth": int,
            "strict_producer": _parse_bool,
            "analytics_id_bytes": int,
            "reject_sequence_gaps": _parse_bool,
        }
        for field_name, field_type in field_types.items():
            env_key = f"LENS_{field_name.upper()}"
            env_value = os.environ.get(env_key)
            if env_value is not None:
                setattr(self, field_name, field_type(env_value))


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Return the singleton Config instance, creating it on first call.

    Returns:
        Config: The global configuration object.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached Config so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None

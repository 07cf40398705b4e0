"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Request timeout bounds in seconds
DEFAULT_REQUEST_TIMEOUT = 30.0
MAX_REQUEST_TIMEOUT = 600.0


@dataclass(frozen=True)
class Config:
    """Settings for one CLI run, read from ``FMECONNECT_*`` variables.

    Command-line flags override individual fields via ``dataclasses.replace``.
    """

    # FME Flow connection
    server_url: str = ""  # e.g., "https://fme.example.com"
    token: str = ""
    repository: str = ""

    # HTTP
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT  # seconds
    require_https: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    diagnostic_tags: str = ""  # comma-separated, "*" for all


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Upper-case a log level name, falling back to ``default`` if unknown.

    Args:
        value: Level name as configured.
        default: Level used when ``value`` is not recognized.

    Returns:
        A member of VALID_LOG_LEVELS.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid FMECONNECT_LOG_LEVEL: '%s' is not valid, using default '%s'. "
            "Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _parse_bool(value: str) -> bool:
    """Interpret an environment flag; only "true", "1" and "yes" count as set."""
    return value.strip().lower() in ("true", "1", "yes")


def _parse_timeout(value: str, name: str, default: float) -> float:
    """Parse a strictly positive timeout, capped at MAX_REQUEST_TIMEOUT.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed timeout in seconds, or the default if invalid.
    """
    try:
        parsed = float(value)
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %s", name, value, default
        )
        return default
    if parsed <= 0:
        logging.warning("Invalid %s: %s must be positive, using default %s", name, parsed, default)
        return default
    if parsed > MAX_REQUEST_TIMEOUT:
        logging.warning(
            "%s value %s exceeds maximum %s. Using maximum value.",
            name,
            parsed,
            MAX_REQUEST_TIMEOUT,
        )
        return MAX_REQUEST_TIMEOUT
    return parsed


def load_config(env_file: Path | None = None) -> Config:
    """Read a Config from ``FMECONNECT_*`` variables.

    Variables already set in the process win over the ``.env`` file. An
    out-of-range timeout or an unknown log level is logged and replaced by
    its default.

    Args:
        env_file: ``.env`` file to load; the nearest ``.env`` is searched for
            when omitted.

    Returns:
        The loaded configuration.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    request_timeout = _parse_timeout(
        os.getenv("FMECONNECT_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)),
        "FMECONNECT_REQUEST_TIMEOUT",
        DEFAULT_REQUEST_TIMEOUT,
    )
    log_level = _validate_log_level(os.getenv("FMECONNECT_LOG_LEVEL", "INFO"))

    return Config(
        server_url=os.getenv("FMECONNECT_SERVER_URL", "").strip(),
        token=os.getenv("FMECONNECT_TOKEN", "").strip(),
        repository=os.getenv("FMECONNECT_REPOSITORY", "").strip(),
        request_timeout=request_timeout,
        require_https=_parse_bool(os.getenv("FMECONNECT_REQUIRE_HTTPS", "")),
        log_level=log_level,
        log_json=_parse_bool(os.getenv("FMECONNECT_LOG_JSON", "")),
        diagnostic_tags=os.getenv("FMECONNECT_DIAGNOSTIC_TAGS", ""),
    )


__all__ = ["Config", "load_config"]

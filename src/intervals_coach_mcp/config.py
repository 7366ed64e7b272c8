"""
Configuration for the Intervals.icu coach MCP server.

Values come from environment variables, optionally seeded from a .env file in the
working directory. The resulting Config is immutable and is passed explicitly to
the API client and the tool dispatcher.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from intervals_coach_mcp.exceptions import ConfigurationError

DEFAULT_BASE_URL = "https://intervals.icu/api/v1"
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class Config:
    """Process-wide, read-only settings."""

    api_key: str
    athlete_id: str
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"
    debug_log: str | None = None

    def __repr__(self) -> str:
        # Never leak the key into logs or tracebacks
        return (
            f"Config(api_key='***', athlete_id={self.athlete_id!r}, "
            f"base_url={self.base_url!r}, request_timeout={self.request_timeout!r}, "
            f"log_level={self.log_level!r}, debug_log={self.debug_log!r})"
        )


def load_config(environ: Mapping[str, str] | None = None, dotenv: bool = True) -> Config:
    """Build a Config from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)
        dotenv: Whether to load a .env file into os.environ first

    Raises:
        ConfigurationError: if the API key or athlete ID is missing or malformed
    """
    if dotenv:
        _ = load_dotenv()
    if environ is None:
        environ = os.environ

    api_key = environ.get("INTERVALS_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError("INTERVALS_API_KEY environment variable is required")

    athlete_id = environ.get("INTERVALS_ATHLETE_ID", "").strip()
    if not athlete_id:
        raise ConfigurationError("INTERVALS_ATHLETE_ID environment variable is required")

    # Accept athlete IDs that are either all digits or start with 'i' followed by digits
    if not re.fullmatch(r"i?\d+", athlete_id):
        raise ConfigurationError(
            "INTERVALS_ATHLETE_ID must be all digits (e.g. 123456) or start with 'i' followed by digits (e.g. i123456)"
        )

    timeout_raw = environ.get("INTERVALS_REQUEST_TIMEOUT", "")
    try:
        request_timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
    except ValueError as exc:
        raise ConfigurationError(
            f"INTERVALS_REQUEST_TIMEOUT must be a number of seconds, got {timeout_raw!r}"
        ) from exc
    if request_timeout <= 0:
        raise ConfigurationError("INTERVALS_REQUEST_TIMEOUT must be positive")

    log_level = environ.get("INTERVALS_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"INTERVALS_LOG_LEVEL is not a logging level: {log_level!r}")

    return Config(
        api_key=api_key,
        athlete_id=athlete_id,
        base_url=environ.get("INTERVALS_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        request_timeout=request_timeout,
        log_level=log_level,
        debug_log=environ.get("INTERVALS_DEBUG_LOG") or None,
    )

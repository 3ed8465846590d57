"""Configuration for the logger and the request dispatcher.

Environment variables are read only when ``from_env`` is called, never at
import time.
"""

import os
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_OUTPUT = "LOG_OUTPUT"
ENV_LOG_ERROR_OUTPUT = "LOG_ERROR_OUTPUT"
ENV_LOG_FORMAT = "LOG_FORMAT"
ENV_REST_TIMEOUT = "REST_TIMEOUT"
ENV_REST_MAX_ATTEMPTS = "REST_MAX_ATTEMPTS"


class LogLevel(str, Enum):
    """Severity threshold for a logger."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    PANIC = "panic"
    FATAL = "fatal"


_LEVEL_ALIASES = {"warn": LogLevel.WARNING}


def parse_level(value: str | None) -> LogLevel:
    """Parse a level string, falling back to ``info`` for unknown values."""
    name = (value or "").strip().lower()
    if name in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[name]
    try:
        return LogLevel(name)
    except ValueError:
        return LogLevel.INFO


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


class LoggerSettings(BaseModel):
    """Sinks, threshold and default fields for a StructuredLogger."""

    model_config = ConfigDict(str_strip_whitespace=True)

    level: LogLevel = Field(default=LogLevel.INFO, description="Minimum severity emitted")
    output_paths: list[str] = Field(
        default_factory=lambda: ["stdout"], description="Sinks receiving every record"
    )
    error_output_paths: list[str] = Field(
        default_factory=lambda: ["stderr"], description="Sinks additionally receiving error records"
    )
    initial_fields: dict[str, Any] = Field(
        default_factory=dict, description="Fields attached to every record"
    )
    json_logs: bool = Field(default=True, description="Render JSON instead of console output")

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: Any) -> LogLevel:
        """Accept level names in any case, including ``warn``."""
        if isinstance(v, LogLevel):
            return v
        return parse_level(str(v))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LoggerSettings":
        """Build settings from ``LOG_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            Settings with unset variables left at their defaults
        """
        environ = os.environ if environ is None else environ

        values: dict[str, Any] = {"level": parse_level(environ.get(ENV_LOG_LEVEL))}
        output = _env_value(environ, ENV_LOG_OUTPUT)
        if output:
            values["output_paths"] = [output]
        error_output = _env_value(environ, ENV_LOG_ERROR_OUTPUT)
        if error_output:
            values["error_output_paths"] = [error_output]
        log_format = _env_value(environ, ENV_LOG_FORMAT).lower()
        if log_format:
            values["json_logs"] = log_format != "console"
        return cls(**values)


class ClientConfig(BaseModel):
    """Transport settings for a RestClient."""

    timeout: float | None = Field(default=None, gt=0, description="Request timeout in seconds")
    max_attempts: int = Field(default=1, ge=1, description="Attempts per request on transport errors")
    backoff_multiplier: float = Field(default=2.0, gt=0, description="Multiplier for exponential backoff")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ClientConfig":
        """Build a config from ``REST_*`` environment variables."""
        environ = os.environ if environ is None else environ

        values: dict[str, Any] = {}
        timeout = _env_value(environ, ENV_REST_TIMEOUT)
        if timeout:
            values["timeout"] = timeout
        max_attempts = _env_value(environ, ENV_REST_MAX_ATTEMPTS)
        if max_attempts:
            values["max_attempts"] = max_attempts
        return cls(**values)

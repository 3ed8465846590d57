"""Shared helpers for REST clients and services: error payloads, request dispatch and logging."""

from .config import ClientConfig, LoggerSettings, LogLevel
from .models import DecodeError, RestError

__all__ = ["ClientConfig", "DecodeError", "LogLevel", "LoggerSettings", "RestError"]

"""Utility modules for HTTP dispatch and structured logging."""

from .http_client import Mock, MockRegistry, RestClient, make_response, parse_rest_error
from .logger import NoOpLogger, StructuredLogger, get_logger, setup_logging

__all__ = [
    "Mock",
    "MockRegistry",
    "NoOpLogger",
    "RestClient",
    "StructuredLogger",
    "get_logger",
    "make_response",
    "parse_rest_error",
    "setup_logging",
]

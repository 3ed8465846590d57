"""Structured logging built on structlog.

Two flavours are provided:

- ``StructuredLogger``: an injectable logger with its own sinks and level,
  configured from ``LoggerSettings``. Nothing touches global logging state.
- ``setup_logging`` / ``default_logger``: a process-wide default instance
  for applications that prefer a single shared logger.

``get_logger`` is the lightweight helper restkit's own modules use; it
routes through stdlib logging so library records follow whatever the
application configured.
"""

import copy
import logging
import sys
import threading
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from ..config import LoggerSettings, LogLevel

STDOUT = "stdout"
STDERR = "stderr"

# Fatal sits above CRITICAL so a fatal threshold drops panic records
FATAL = logging.CRITICAL + 10
logging.addLevelName(FATAL, "FATAL")

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.PANIC: logging.CRITICAL,
    LogLevel.FATAL: FATAL,
}

_OVERRIDE_LEVELS = {"panic": logging.CRITICAL, "fatal": FATAL}

# Overrides the rendered level of critical records
_LEVEL_OVERRIDE_KEY = "_level"


class PanicError(Exception):
    """Raised by ``FatalSignal.abort`` for records logged with ``panic``."""

    def __init__(self, message: str, error: BaseException | None = None):
        self.error = error
        super().__init__(message)


@dataclass(frozen=True)
class FatalSignal:
    """Returned by ``panic``/``fatal`` once the record has been written.

    The logging call never aborts on its own; the caller decides whether to
    act on the signal by calling ``abort``.
    """

    kind: str
    message: str
    error: BaseException | None = None
    exit_code: int = 1

    def abort(self) -> None:
        """Raise ``PanicError`` for a panic, ``SystemExit`` for a fatal."""
        if self.kind == "panic":
            raise PanicError(self.message, self.error) from self.error
        raise SystemExit(self.exit_code)


class Logger(Protocol):
    """Interface shared by StructuredLogger and NoOpLogger."""

    def debug(self, msg: str, **fields: Any) -> None: ...

    def info(self, msg: str, **fields: Any) -> None: ...

    def warning(self, msg: str, **fields: Any) -> None: ...

    def error(self, msg: str, err: BaseException | None = None, **fields: Any) -> None: ...

    def panic(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal: ...

    def fatal(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal: ...

    def with_fields(self, **fields: Any) -> "Logger": ...


class _ThresholdFilter:
    """Drop records below the threshold, honouring the panic/fatal overrides.

    Stands in for ``structlog.stdlib.filter_by_level``, which only knows the
    stdlib method names and cannot tell panic from fatal.
    """

    def __init__(self, threshold: int):
        self.threshold = threshold

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        level = _OVERRIDE_LEVELS.get(event_dict.get(_LEVEL_OVERRIDE_KEY, ""))
        if level is None:
            level = logging.getLevelName(method_name.upper())
        if level < self.threshold:
            raise structlog.DropEvent
        return event_dict


def _override_level(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    level = event_dict.pop(_LEVEL_OVERRIDE_KEY, None)
    if level:
        event_dict["level"] = level
    return event_dict


def _build_processors(json_logs: bool, threshold: int) -> list[structlog.types.Processor]:
    shared_processors: list[structlog.types.Processor] = [
        _ThresholdFilter(threshold),
        structlog.stdlib.add_log_level,
        _override_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        # Machine-readable JSON output: {"time": ..., "level": ..., "msg": ...}
        return shared_processors + [
            structlog.processors.TimeStamper(fmt="iso", key="time"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.JSONRenderer(),
        ]
    # Human-readable console output
    return shared_processors + [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        ),
    ]


def _build_handler(sink: str, level: int) -> logging.Handler:
    """Create a handler for a sink identifier (stdout, stderr or a file path)."""
    handler: logging.Handler
    if sink == STDOUT:
        handler = logging.StreamHandler(sys.stdout)
    elif sink == STDERR:
        handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(sink, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


class StructuredLogger:
    """Leveled structured logger writing to configurable sinks.

    Every record goes to ``settings.output_paths``; records at error
    severity or above are also written to ``settings.error_output_paths``.
    """

    def __init__(self, settings: LoggerSettings | None = None):
        """Initialize the logger.

        Args:
            settings: Level, sinks and initial fields. Defaults to info
                level on stdout with errors also on stderr.
        """
        self.settings = settings or LoggerSettings()
        threshold = _STDLIB_LEVELS[self.settings.level]
        # Fatal records are emitted through critical; the threshold filter drops panics
        level = min(threshold, logging.CRITICAL)

        # Instantiated directly so it stays out of logging's global registry
        self._stdlib_logger = logging.Logger(f"restkit.{id(self):x}", level=level)
        self._stdlib_logger.propagate = False
        for sink in self.settings.output_paths:
            self._stdlib_logger.addHandler(_build_handler(sink, level))
        for sink in self.settings.error_output_paths:
            self._stdlib_logger.addHandler(_build_handler(sink, max(level, logging.ERROR)))
        if not self._stdlib_logger.handlers:
            self._stdlib_logger.addHandler(logging.NullHandler())

        self._logger = structlog.wrap_logger(
            self._stdlib_logger,
            processors=_build_processors(self.settings.json_logs, threshold),
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
        ).bind(**self.settings.initial_fields)

    @property
    def level(self) -> LogLevel:
        return self.settings.level

    def debug(self, msg: str, **fields: Any) -> None:
        """Debug logs are voluminous and usually disabled in production."""
        self._logger.debug(msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        """Info is the default logging priority."""
        self._logger.info(msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        """Warnings matter more than info but need no individual review."""
        self._logger.warning(msg, **fields)

    def error(self, msg: str, err: BaseException | None = None, **fields: Any) -> None:
        """Error logs are high priority; a healthy application emits none."""
        self._logger.error(msg, **_with_error(fields, err))

    def panic(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal:
        """Log at critical severity and return a panic signal."""
        return self._critical("panic", msg, err, fields)

    def fatal(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal:
        """Log at critical severity and return a fatal (exit) signal."""
        return self._critical("fatal", msg, err, fields)

    def _critical(
        self, kind: str, msg: str, err: BaseException | None, fields: dict[str, Any]
    ) -> FatalSignal:
        self._logger.critical(msg, **_with_error(fields, err), **{_LEVEL_OVERRIDE_KEY: kind})
        self.flush()
        return FatalSignal(kind=kind, message=msg, error=err)

    def with_fields(self, **fields: Any) -> "StructuredLogger":
        """Return a child logger that always adds ``fields``.

        The child shares sinks with this logger; this logger is unchanged.
        """
        child = copy.copy(self)
        child._logger = self._logger.bind(**fields)
        return child

    def printer(self) -> "PrintAdapter":
        """Return a print-style adapter for clients that expect one."""
        return PrintAdapter(self)

    def flush(self) -> None:
        for handler in self._stdlib_logger.handlers:
            handler.flush()

    def close(self) -> None:
        """Flush and close all sinks. Shared by child loggers."""
        for handler in list(self._stdlib_logger.handlers):
            handler.close()
            self._stdlib_logger.removeHandler(handler)


class NoOpLogger:
    """Logger that discards everything."""

    def debug(self, msg: str, **fields: Any) -> None:
        pass

    def info(self, msg: str, **fields: Any) -> None:
        pass

    def warning(self, msg: str, **fields: Any) -> None:
        pass

    def error(self, msg: str, err: BaseException | None = None, **fields: Any) -> None:
        pass

    def panic(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal:
        return FatalSignal(kind="panic", message=msg, error=err)

    def fatal(self, msg: str, err: BaseException | None = None, **fields: Any) -> FatalSignal:
        return FatalSignal(kind="fatal", message=msg, error=err)

    def with_fields(self, **fields: Any) -> "NoOpLogger":
        return self

    def printer(self) -> "PrintAdapter":
        return PrintAdapter(self)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class PrintAdapter:
    """Adapts a Logger to ``print``/``printf`` calls, logged at info."""

    def __init__(self, logger: Logger):
        self._logger = logger

    def print(self, *values: Any) -> None:
        self._logger.info(" ".join(str(v) for v in values))

    def printf(self, fmt: str, *args: Any) -> None:
        if not args:
            self._logger.info(fmt)
        else:
            self._logger.info(fmt % args)


def _with_error(fields: dict[str, Any], err: BaseException | None) -> dict[str, Any]:
    if err is None:
        return fields
    return {**fields, "error": str(err), "error_type": type(err).__name__}


_default_logger: StructuredLogger | NoOpLogger | None = None
_default_lock = threading.Lock()


def setup_logging(settings: LoggerSettings | None = None) -> StructuredLogger:
    """Install the process-wide default logger.

    Args:
        settings: Logger settings. If None, they are read once from the
            ``LOG_*`` environment variables.

    Returns:
        The newly installed default logger
    """
    logger = StructuredLogger(settings or LoggerSettings.from_env())
    set_default_logger(logger)
    return logger


def set_default_logger(logger: StructuredLogger | NoOpLogger) -> None:
    """Replace the process-wide default logger, e.g. with a NoOpLogger."""
    global _default_logger
    with _default_lock:
        _default_logger = logger


def default_logger() -> StructuredLogger | NoOpLogger:
    """Return the process-wide default logger.

    If ``setup_logging`` has not been called, a logger with default settings
    is created on first use.
    """
    global _default_logger
    with _default_lock:
        if _default_logger is None:
            _default_logger = StructuredLogger(LoggerSettings())
        return _default_logger


_LIBRARY_PROCESSORS: list[structlog.types.Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.format_exc_info,
    structlog.processors.KeyValueRenderer(key_order=["event"]),
]


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a structured logger backed by the stdlib logger ``name``.

    Args:
        name: Logger name (typically __name__ of the calling module)
        **initial_context: Initial context to bind to all log messages

    Returns:
        A bound logger instance with the specified context
    """
    logger = structlog.wrap_logger(
        logging.getLogger(name),
        processors=_LIBRARY_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
    )
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger

"""
Structured Logging for Clutch

Structured JSON logging with loop context tracking and configurable
formatters and handlers. Loggers are named hierarchically
(``clutch.control_loop.cpu``) and records propagate to the handlers of
every registered ancestor.
"""

import json
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union

# Context variable for the control loop currently emitting records
loop_id_var: ContextVar[Optional[str]] = ContextVar('loop_id', default=None)


class LogLevel(Enum):
    """Log levels for the Clutch logging system"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
    LogLevel.CRITICAL: 4
}


class LogFormatter(ABC):
    """Abstract base class for log formatters"""

    @abstractmethod
    def format(self, record: Dict[str, Any]) -> str:
        """Format a log record into a string"""
        pass


class JSONLogFormatter(LogFormatter):
    """JSON formatter for structured logging"""

    def format(self, record: Dict[str, Any]) -> str:
        return json.dumps(record, default=str, ensure_ascii=False)


class HumanReadableFormatter(LogFormatter):
    """Human-readable formatter for development/debugging"""

    def format(self, record: Dict[str, Any]) -> str:
        base_msg = f"[{record.get('timestamp', '')}] {record.get('level', '')} {record.get('logger', '')}: {record.get('message', '')}"

        loop_id = record.get('loop_id')
        if loop_id:
            base_msg += f" [loop_id={loop_id}]"

        if record.get('extra'):
            extra_str = ', '.join(f"{k}={v}" for k, v in record['extra'].items())
            base_msg += f" [{extra_str}]"

        return base_msg


class LogHandler(ABC):
    """Abstract base class for log handlers"""

    def __init__(self, formatter: LogFormatter):
        self.formatter = formatter

    @abstractmethod
    def emit(self, record: Dict[str, Any]) -> None:
        """Emit a log record"""
        pass


class ConsoleLogHandler(LogHandler):
    """Console log handler that writes to stdout/stderr"""

    def __init__(self, formatter: LogFormatter, stream: Optional[TextIO] = None):
        super().__init__(formatter)
        self.stream = stream or sys.stdout

    def emit(self, record: Dict[str, Any]) -> None:
        self.stream.write(self.formatter.format(record) + '\n')
        self.stream.flush()


class FileLogHandler(LogHandler):
    """File log handler that appends to a file"""

    def __init__(self, formatter: LogFormatter, file_path: Union[str, Path]):
        super().__init__(formatter)
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: Dict[str, Any]) -> None:
        with open(self.file_path, 'a', encoding='utf-8') as f:
            f.write(self.formatter.format(record) + '\n')


class ClutchLogger:
    """
    Structured logger with loop context support.

    Messages carry an optional ``extra`` dictionary that is kept as a nested
    object in the emitted record rather than being interpolated into the
    message text.
    """

    def __init__(self, name: str, level: Optional[LogLevel] = None, propagate: bool = True):
        self.name = name
        self.level = level
        self.propagate = propagate
        self.handlers: List[LogHandler] = []

    def add_handler(self, handler: LogHandler) -> None:
        self.handlers.append(handler)

    def remove_handler(self, handler: LogHandler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def set_level(self, level: Optional[LogLevel]) -> None:
        self.level = level

    def get_effective_level(self) -> LogLevel:
        """Own level, else the nearest ancestor's, else INFO."""
        if self.level is not None:
            return self.level
        for ancestor in _ancestors(self.name):
            if ancestor.level is not None:
                return ancestor.level
        return LogLevel.INFO

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self.get_effective_level()]

    def _create_log_record(self, level: LogLevel, message: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': level.value,
            'logger': self.name,
            'message': message,
            'loop_id': loop_id_var.get(),
        }

        if extra:
            record['extra'] = extra

        # Drop unset context values to keep records compact
        return {k: v for k, v in record.items() if v is not None}

    def _emit(self, record: Dict[str, Any]) -> None:
        for handler in self.handlers:
            try:
                handler.emit(record)
            except Exception as e:
                sys.stderr.write(f"Logging handler failed: {e}\n")

    def _log(self, level: LogLevel, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        if not self.is_enabled_for(level):
            return

        record = self._create_log_record(level, message, extra)
        self._emit(record)

        if self.propagate:
            for ancestor in _ancestors(self.name):
                if ancestor.is_enabled_for(level):
                    ancestor._emit(record)
                if not ancestor.propagate:
                    break

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(LogLevel.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: Optional[BaseException] = None) -> None:
        """Log error message with optional exception info"""
        self._log(LogLevel.ERROR, message, _with_exception(extra, exc_info))

    def critical(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: Optional[BaseException] = None) -> None:
        """Log critical message with optional exception info"""
        self._log(LogLevel.CRITICAL, message, _with_exception(extra, exc_info))


def _with_exception(extra: Optional[Dict[str, Any]], exc_info: Optional[BaseException]) -> Optional[Dict[str, Any]]:
    if not exc_info:
        return extra
    extra = dict(extra or {})
    extra['exception'] = {
        'type': type(exc_info).__name__,
        'message': str(exc_info),
        'module': type(exc_info).__module__
    }
    return extra


# Global logger registry
_loggers: Dict[str, ClutchLogger] = {}


def _ancestors(name: str) -> List[ClutchLogger]:
    """Registered loggers above ``name`` in the dotted hierarchy, nearest first."""
    found = []
    parts = name.split('.')
    for i in range(len(parts) - 1, 0, -1):
        parent = _loggers.get('.'.join(parts[:i]))
        if parent is not None:
            found.append(parent)
    return found


def get_logger(name: str, level: Optional[LogLevel] = None) -> ClutchLogger:
    """Get or create a logger instance"""
    if name not in _loggers:
        _loggers[name] = ClutchLogger(name, level)
    return _loggers[name]


def configure_default_logging(
    level: LogLevel = LogLevel.INFO,
    use_json: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True
) -> ClutchLogger:
    """Attach handlers to the ``clutch`` root logger and return it."""
    formatter = JSONLogFormatter() if use_json else HumanReadableFormatter()

    root_logger = get_logger("clutch")
    root_logger.set_level(level)
    root_logger.handlers.clear()

    if console:
        root_logger.add_handler(ConsoleLogHandler(formatter))

    if log_file:
        root_logger.add_handler(FileLogHandler(formatter, log_file))

    return root_logger


def configure_logging(config) -> ClutchLogger:
    """Configure the root logger from a ``LoggingConfiguration``."""
    return configure_default_logging(
        level=LogLevel(config.level),
        use_json=config.format == "json",
        log_file=config.file_path if config.output in ("file", "both") else None,
        console=config.output in ("console", "both")
    )


@contextmanager
def loop_context(loop_id: str):
    """Tag every record emitted inside the block with ``loop_id``."""
    token = loop_id_var.set(loop_id)
    try:
        yield loop_id
    finally:
        loop_id_var.reset(token)


def get_loop_id() -> Optional[str]:
    """Get the current loop ID from context"""
    return loop_id_var.get()

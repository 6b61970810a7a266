"""
Test fixtures for the Clutch logging system.

Capture structured log records emitted anywhere below a logger so tests can
assert on messages and extra fields.
"""

from typing import Any, Dict, List, Optional

import pytest

from clutch.infrastructure.observability.logging import (
    ClutchLogger, LogLevel, LogHandler, LogFormatter, JSONLogFormatter, get_logger
)


class CapturingLogHandler(LogHandler):
    """Log handler that keeps records in memory for assertions."""

    def __init__(self, formatter: LogFormatter):
        super().__init__(formatter)
        self.records: List[Dict[str, Any]] = []

    def emit(self, record: Dict[str, Any]) -> None:
        self.records.append(record.copy())

    def clear(self) -> None:
        self.records.clear()

    def get_records(self, level: Optional[LogLevel] = None) -> List[Dict[str, Any]]:
        """Get captured records, optionally filtered by level."""
        if level is None:
            return self.records.copy()
        return [r for r in self.records if r.get('level') == level.value]

    def messages(self) -> List[str]:
        return [r.get('message', '') for r in self.records]

    def has_record_with_message(self, message: str) -> bool:
        return any(message in r.get('message', '') for r in self.records)

    def has_record_with_extra(self, key: str, value: Any) -> bool:
        return any(
            r.get('extra', {}).get(key) == value
            for r in self.records
        )


class LogCapture:
    """Context manager capturing every record reaching ``logger``."""

    def __init__(self, logger: ClutchLogger, level: LogLevel = LogLevel.DEBUG):
        self.logger = logger
        self.level = level
        self.handler = CapturingLogHandler(JSONLogFormatter())
        self.original_level = None
        self.original_handlers = []

    def __enter__(self) -> CapturingLogHandler:
        self.original_level = self.logger.level
        self.original_handlers = self.logger.handlers.copy()

        self.logger.set_level(self.level)
        self.logger.handlers.clear()
        self.logger.add_handler(self.handler)

        return self.handler

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logger.handlers.clear()
        for handler in self.original_handlers:
            self.logger.add_handler(handler)
        self.logger.set_level(self.original_level)


@pytest.fixture
def log_capture():
    """Capture every record below the ``clutch`` root logger."""
    with LogCapture(get_logger("clutch")) as handler:
        yield handler

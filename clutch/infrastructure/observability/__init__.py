"""
Observability - structured logging and metrics for control loops.
"""

from .logging import (
    ClutchLogger, LogLevel, LogFormatter, LogHandler, JSONLogFormatter, HumanReadableFormatter,
    ConsoleLogHandler, FileLogHandler, get_logger, configure_default_logging, configure_logging,
    loop_context, get_loop_id
)
from .metrics import (
    ClutchMetricsCollector, MetricType, Counter, Gauge, Histogram, Timer,
    PrometheusExporter, get_metrics_collector, reset_metrics_collector
)

__all__ = [
    "ClutchLogger",
    "LogLevel",
    "LogFormatter",
    "LogHandler",
    "JSONLogFormatter",
    "HumanReadableFormatter",
    "ConsoleLogHandler",
    "FileLogHandler",
    "get_logger",
    "configure_default_logging",
    "configure_logging",
    "loop_context",
    "get_loop_id",
    "ClutchMetricsCollector",
    "MetricType",
    "Counter",
    "Gauge",
    "Histogram",
    "Timer",
    "PrometheusExporter",
    "get_metrics_collector",
    "reset_metrics_collector",
]

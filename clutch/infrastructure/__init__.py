"""
Infrastructure layer: exceptions and observability.
"""

from .exceptions import (
    ClutchException,
    ConfigurationError,
    ActuationError,
    ControlLoopError,
    EventSourceError
)

__all__ = [
    "ClutchException",
    "ConfigurationError",
    "ActuationError",
    "ControlLoopError",
    "EventSourceError",
]

"""
Adapters connecting control loops to actuators and event transports.
"""

from .actuator import FunctionActuator, NoOpActuator, actuator_of
from .event_source import (
    QueueEventSource, NATSEventSource, as_async_iterator, decode_event, encode_event
)

__all__ = [
    "FunctionActuator",
    "NoOpActuator",
    "actuator_of",
    "QueueEventSource",
    "NATSEventSource",
    "as_async_iterator",
    "decode_event",
    "encode_event",
]

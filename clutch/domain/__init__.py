"""
Domain layer: value objects and collaborator contracts.
"""

from .models import Metric, Event, TimeUnit, LoopMode, LoopDecision
from .interfaces import Controller, Actuator, EventSource

__all__ = [
    "Metric",
    "Event",
    "TimeUnit",
    "LoopMode",
    "LoopDecision",
    "Controller",
    "Actuator",
    "EventSource",
]

"""
Clutch - reactive autoscaling control loops.

A control loop consumes metric events, computes the error against a set
point, runs it through a PID controller and asks an actuator to resize a
pool, with a dead-zone around the set point and a cooldown between
actuations.
"""

from .domain import Metric, Event, TimeUnit, LoopMode, LoopDecision, Controller, Actuator, EventSource
from .framework.configuration import (
    Rope, ClutchConfiguration, ClutchSettings, ConfigurationBuilder, load_configuration_from_file
)
from .control_reasoning import Dampener, PIDController, ControlLoop, ControlLoopGroup
from .adapters import FunctionActuator, NoOpActuator, actuator_of, QueueEventSource, NATSEventSource
from .infrastructure import ClutchException, ConfigurationError, ActuationError, ControlLoopError, EventSourceError

__version__ = "0.1.0"

__all__ = [
    "Metric",
    "Event",
    "TimeUnit",
    "LoopMode",
    "LoopDecision",
    "Controller",
    "Actuator",
    "EventSource",
    "Rope",
    "ClutchConfiguration",
    "ClutchSettings",
    "ConfigurationBuilder",
    "load_configuration_from_file",
    "Dampener",
    "PIDController",
    "ControlLoop",
    "ControlLoopGroup",
    "FunctionActuator",
    "NoOpActuator",
    "actuator_of",
    "QueueEventSource",
    "NATSEventSource",
    "ClutchException",
    "ConfigurationError",
    "ActuationError",
    "ControlLoopError",
    "EventSourceError",
]

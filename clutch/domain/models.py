"""
Core Domain Models

Value objects shared by the controller, the control loop and the adapters.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Metric(Enum):
    """Identity of the metric a control loop tracks."""
    CPU = "cpu"
    MEMORY = "memory"
    NETWORK = "network"
    LAG = "lag"
    DROPS = "drops"
    RPS = "rps"
    USER_DEFINED = "user_defined"

    @classmethod
    def parse(cls, value) -> "Metric":
        """Resolve a metric from an instance, its value or its name, ignoring case."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value == text or member.name.lower() == text:
                return member
        raise ValueError(f"Unknown metric: {value!r}")


class TimeUnit(Enum):
    """Units accepted for the cooldown interval."""
    NANOSECONDS = "nanoseconds"
    MICROSECONDS = "microseconds"
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    def to_seconds(self, amount: float) -> float:
        return amount * _SECONDS_PER_UNIT[self]


_SECONDS_PER_UNIT = {
    TimeUnit.NANOSECONDS: 1e-9,
    TimeUnit.MICROSECONDS: 1e-6,
    TimeUnit.MILLISECONDS: 1e-3,
    TimeUnit.SECONDS: 1.0,
    TimeUnit.MINUTES: 60.0,
    TimeUnit.HOURS: 3600.0,
    TimeUnit.DAYS: 86400.0,
}


class LoopMode(Enum):
    """Whether a tick could actuate or fell inside the cooldown window."""
    ACTIVE = "active"
    COOLING = "cooling"


@dataclass(frozen=True)
class Event:
    """A single sampled value of one metric."""
    metric: Metric
    value: float


@dataclass(frozen=True)
class LoopDecision:
    """Everything the control loop derived from one accepted event."""
    event: Event
    error: float
    adjusted_error: float
    correction: float
    mode: LoopMode
    proposed: Optional[float]
    realized: float

    @property
    def actuated(self) -> bool:
        return self.mode is LoopMode.ACTIVE

    @property
    def in_dead_zone(self) -> bool:
        return self.adjusted_error == 0.0 and self.error != 0.0

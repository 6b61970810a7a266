"""
PID Controller Implementation

The feedback principle: constantly compare the actual output to the set
point, then apply a corrective action in the proper direction and of
approximately the right size. Applied iteratively, the system converges onto
the set point.

The controller only ever sees errors. It keeps its integral and last error
across steps, and scales every term by a shared dampener so external code can
change its aggressiveness at runtime (gain scheduling) without losing that
history.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..domain.interfaces import Controller
from ..infrastructure.exceptions import ConfigurationError
from ..infrastructure.observability import get_logger
from .gain_scheduling import Dampener


@dataclass
class PIDState:
    """Internal state for a PID controller."""
    previous_error: float = 0.0
    integral: float = 0.0
    derivative: float = 0.0
    steps: int = 0


class PIDController(Controller):
    """
    Proportional-Integral-Derivative three term controller.

    Mathematical implementation, per step with error ``e``:
    - integral += delta_t * e
    - derivative = (e - previous_error) / delta_t
    - output = d * (kp * e + ki * integral + kd * derivative)

    where ``d`` is the current dampener value. Setting a gain to zero
    disables its term, e.g. ``kd=0`` gives a PI controller.

    The integral is not clamped. Windup has to be handled through gain
    tuning or the dead-zone of the loop driving the controller.

    Not safe for concurrent steps; the control loop serializes them.
    """

    def __init__(
        self,
        kp: float,
        ki: float,
        kd: float,
        delta_t: float = 1.0,
        dampener: Optional[Dampener] = None,
        name: str = "pid"
    ):
        """
        Args:
            kp: The gain for the proportional component
            ki: The gain for the integral component
            kd: The gain for the derivative component
            delta_t: The time step divisor, strictly positive
            dampener: Shared multiplier for gain scheduling; a private one
                fixed at 1.0 is created when omitted
            name: Used in the logger name
        """
        if not isinstance(delta_t, (int, float)) or not math.isfinite(delta_t) or delta_t <= 0:
            raise ConfigurationError(
                f"delta_t must be a finite positive number, got {delta_t!r}",
                parameter="delta_t"
            )

        self.kp = float(kp)
        self.ki = float(ki)
        self.kd = float(kd)
        self.delta_t = float(delta_t)
        self.dampener = dampener if dampener is not None else Dampener(1.0)
        self.state = PIDState()
        self.logger = get_logger(f"clutch.pid_controller.{name}")

        self.logger.info("PID controller initialized", extra={
            "kp": self.kp,
            "ki": self.ki,
            "kd": self.kd,
            "delta_t": self.delta_t,
            "dampener": self.dampener.get()
        })

    @classmethod
    def from_configuration(cls, config, delta_t: float = 1.0, dampener: Optional[Dampener] = None) -> "PIDController":
        """Build a controller from a ``ClutchConfiguration``."""
        return cls(config.kp, config.ki, config.kd, delta_t, dampener, name=config.metric.value)

    def process_step(self, error: float) -> float:
        state = self.state
        state.integral += self.delta_t * error
        state.derivative = (error - state.previous_error) / self.delta_t
        state.previous_error = error
        state.steps += 1

        d = self.dampener.get()

        return (self.kp * d * error
                + self.ki * d * state.integral
                + self.kd * d * state.derivative)

    def get_tuning_info(self) -> Dict[str, Any]:
        """Get current tuning information for debugging and monitoring."""
        return {
            "gains": {
                "kp": self.kp,
                "ki": self.ki,
                "kd": self.kd
            },
            "delta_t": self.delta_t,
            "dampener": self.dampener.get(),
            "state": {
                "previous_error": self.state.previous_error,
                "integral": self.state.integral,
                "derivative": self.state.derivative,
                "steps": self.state.steps
            }
        }

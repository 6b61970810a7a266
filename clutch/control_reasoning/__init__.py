"""
Control reasoning: PID controller, gain scheduling and the control loops
that drive actuators from metric events.
"""

from .gain_scheduling import Dampener
from .pid_controller import PIDController, PIDState
from .control_loop import ControlLoop
from .loop_group import ControlLoopGroup

__all__ = [
    "Dampener",
    "PIDController",
    "PIDState",
    "ControlLoop",
    "ControlLoopGroup",
]

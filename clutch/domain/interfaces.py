"""
Core Domain Interfaces

Contracts between the control loop and its collaborators: the feedback
controller it drives, the actuator it feeds, and the stream it consumes.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator

from .models import Event


class Controller(ABC):
    """
    Single-input single-output feedback function.

    Implementations keep their own state between steps and must be stepped
    strictly in arrival order by a single caller.
    """

    @abstractmethod
    def process_step(self, error: float) -> float:
        """
        Consume one error sample.

        Args:
            error: Observed value minus set point

        Returns:
            float: Correction to apply to the current size
        """
        pass


class Actuator(ABC):
    """
    Sink that applies a target size to the resource pool.

    The returned size is what was actually realized and may differ from the
    request (rounding, platform limits).
    """

    @abstractmethod
    async def actuate(self, size: float) -> float:
        """
        Apply a target size.

        Args:
            size: Requested pool size, already clamped to the loop's bounds

        Returns:
            float: Realized pool size
        """
        pass


class EventSource(ABC):
    """An ordered, possibly unbounded, asynchronous stream of events."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[Event]:
        pass

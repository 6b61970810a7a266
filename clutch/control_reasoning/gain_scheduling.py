"""
Gain Scheduling

A dampener is a scalar shared between a controller and whatever external
logic decides how aggressive that controller should be. The controller reads
it once per step; operators, alerting hooks or incident tooling write it at
any time from any thread.
"""

import math
import threading
from contextlib import contextmanager

from ..infrastructure.observability import get_logger


class Dampener:
    """
    Thread-safe float cell multiplying every controller term.

    Each read and write is atomic. Nothing is transactional with a controller
    step: a step sees either the old or the new value.
    """

    def __init__(self, value: float = 1.0):
        self._value = float(value)
        self._lock = threading.Lock()
        self.logger = get_logger("clutch.gain_scheduling")

    def get(self) -> float:
        with self._lock:
            return self._value

    def set(self, value: float) -> None:
        with self._lock:
            old, self._value = self._value, float(value)
        self.logger.info("Dampener updated", extra={"old_value": old, "new_value": float(value)})

    def get_and_set(self, value: float) -> float:
        with self._lock:
            old, self._value = self._value, float(value)
        return old

    def add_and_get(self, delta: float) -> float:
        with self._lock:
            self._value += delta
            return self._value

    def compare_and_set(self, expected: float, update: float) -> bool:
        with self._lock:
            if self._value != expected:
                return False
            self._value = float(update)
            return True

    @property
    def value(self) -> float:
        return self.get()

    @contextmanager
    def boost(self, factor: float):
        """
        Multiply the dampener by ``factor`` for the duration of the block.

        Typical use is accelerating scale-up during an incident::

            with dampener.boost(2.0):
                await handle_incident()

        On exit, including on error, the factor is divided back out of the
        current value. Writes made inside the block and overlapping boosts
        therefore survive the exit.

        Raises:
            ValueError: If ``factor`` is not a finite positive number
        """
        if not math.isfinite(factor) or factor <= 0:
            raise ValueError(f"boost factor must be finite and positive, got {factor!r}")
        with self._lock:
            previous = self._value
            self._value = previous * factor
        self.logger.info("Dampener boosted", extra={"factor": factor, "previous_value": previous})
        try:
            yield self
        finally:
            with self._lock:
                self._value /= factor
                restored = self._value
            self.logger.info("Dampener restored", extra={"factor": factor, "value": restored})

    def __repr__(self) -> str:
        return f"Dampener({self.get()!r})"

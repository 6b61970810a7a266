"""
Actuator adapters.

Wrap plain callables as actuators so a control loop can drive anything from
``math.ceil`` in a test to a coroutine calling a cloud scaling API.
"""

import inspect
from typing import Awaitable, Callable, Union

from ..domain.interfaces import Actuator

SizeFunction = Callable[[float], Union[float, int, Awaitable[Union[float, int]]]]


class FunctionActuator(Actuator):
    """
    Actuator backed by a sync or async callable.

    The callable receives the requested size and returns the realized size;
    if it returns an awaitable, that awaitable is awaited. Exceptions are
    left to propagate so the control loop can apply its failure policy.
    """

    def __init__(self, fn: SizeFunction, name: str = None):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", type(fn).__name__)

    async def actuate(self, size: float) -> float:
        result = self.fn(size)
        if inspect.isawaitable(result):
            result = await result
        return float(result)

    def __repr__(self) -> str:
        return f"FunctionActuator({self.name})"


class NoOpActuator(Actuator):
    """Dry-run actuator: realizes exactly the requested size."""

    async def actuate(self, size: float) -> float:
        return float(size)

    def __repr__(self) -> str:
        return "NoOpActuator()"


def actuator_of(fn: SizeFunction) -> Actuator:
    """Shorthand for ``FunctionActuator(fn)``."""
    return FunctionActuator(fn)

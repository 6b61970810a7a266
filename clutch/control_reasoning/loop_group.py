"""
Control Loop Group

Runs several independent control loops off one multiplexed event stream.
A producer task copies every event into each loop's channel; each loop
consumes its channel on its own task, so a slow actuator in one loop never
delays another. Ordering is preserved per loop.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ..adapters.event_source import EventStream, QueueEventSource, as_async_iterator
from ..domain.interfaces import Actuator
from ..framework.configuration import ClutchSettings
from ..infrastructure.exceptions import ConfigurationError
from ..infrastructure.observability import configure_logging, get_logger
from .control_loop import ControlLoop

SizeCallback = Callable[[str, float], Union[None, Awaitable[None]]]


class ControlLoopGroup:
    """Fan-out of one event stream to named, independent control loops."""

    def __init__(self, loops: Mapping[str, ControlLoop], queue_size: int = 0):
        if not loops:
            raise ValueError("ControlLoopGroup needs at least one loop")
        self.loops: Dict[str, ControlLoop] = dict(loops)
        self.queue_size = queue_size
        self._tasks: List[asyncio.Task] = []
        self.logger = get_logger("clutch.loop_group")

    @classmethod
    def from_settings(
        cls,
        settings: ClutchSettings,
        actuators: Mapping[str, Actuator],
        initial_sizes: Mapping[str, float],
        queue_size: int = 0,
        apply_logging: bool = True,
        **loop_options: Any
    ) -> "ControlLoopGroup":
        """
        Build one loop per entry of ``settings.loops``.

        Args:
            settings: Loaded settings, e.g. from ``load_configuration_from_file``
            actuators: Actuator per loop name
            initial_sizes: Starting size per loop name
            queue_size: Per-loop channel bound
            apply_logging: Configure the ``clutch`` root logger from
                ``settings.logging`` first
            **loop_options: Passed to every ``ControlLoop``, e.g. ``clock``

        Raises:
            ConfigurationError: If a configured loop has no actuator or no
                initial size
        """
        if apply_logging:
            configure_logging(settings.logging)

        loops: Dict[str, ControlLoop] = {}
        for name, config in settings.loops.items():
            if name not in actuators:
                raise ConfigurationError(f"No actuator for loop '{name}'", parameter=name)
            if name not in initial_sizes:
                raise ConfigurationError(f"No initial size for loop '{name}'", parameter=name)
            loops[name] = ControlLoop(config, actuators[name], initial_sizes[name], loop_id=name, **loop_options)

        if not loops:
            raise ConfigurationError("Settings define no loops", parameter="loops")
        return cls(loops, queue_size=queue_size)

    async def _produce(self, source: EventStream, channels: Dict[str, QueueEventSource]) -> None:
        events = as_async_iterator(source)
        try:
            async for event in events:
                for channel in channels.values():
                    await channel.put(event)
        except asyncio.CancelledError:
            for channel in channels.values():
                await channel.close()
            raise
        except Exception as e:
            self.logger.error("Event source failed", extra={"loops": list(channels)}, exc_info=e)
            for channel in channels.values():
                await channel.fail(e)
            raise
        else:
            for channel in channels.values():
                await channel.close()

    async def _consume(
        self,
        name: str,
        loop: ControlLoop,
        channel: QueueEventSource,
        on_size: Optional[SizeCallback]
    ) -> List[float]:
        sizes: List[float] = []
        try:
            async for size in loop.transform(channel):
                sizes.append(size)
                if on_size is not None:
                    result = on_size(name, size)
                    if inspect.isawaitable(result):
                        await result
        finally:
            # Unblock the producer if this loop stops reading early
            channel.discard()
        return sizes

    async def run(self, source: EventStream, on_size: Optional[SizeCallback] = None) -> Dict[str, List[float]]:
        """
        Run every loop until ``source`` ends.

        Args:
            source: Multiplexed event stream
            on_size: Optional callback invoked with ``(loop_name, size)`` for
                every emitted size; may be a coroutine function

        Returns:
            Emitted sizes per loop name

        Raises:
            The upstream failure if ``source`` fails, otherwise the first
            failure of any loop once all loops have finished
        """
        channels = {name: QueueEventSource(self.queue_size) for name in self.loops}
        producer = asyncio.ensure_future(self._produce(source, channels))
        consumers = {
            name: asyncio.ensure_future(self._consume(name, loop, channels[name], on_size))
            for name, loop in self.loops.items()
        }
        self._tasks = [producer, *consumers.values()]

        self.logger.info("Loop group started", extra={"loops": list(self.loops)})
        try:
            results = await asyncio.gather(*consumers.values(), return_exceptions=True)
            # Every loop is done; nothing is left to deliver to
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
        except asyncio.CancelledError:
            self.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self.logger.info("Loop group cancelled", extra={"loops": list(self.loops)})
            raise

        sizes: Dict[str, List[float]] = {}
        failures: List[BaseException] = []
        for name, result in zip(consumers, results):
            if isinstance(result, BaseException):
                failures.append(result)
                self.logger.error("Control loop failed", extra={"loop": name}, exc_info=result)
            else:
                sizes[name] = result

        self.logger.info("Loop group stopped", extra={
            "loops": list(self.loops),
            "failed": len(failures)
        })
        if failures:
            raise failures[0]
        return sizes

    def cancel(self) -> None:
        """Cancel the producer and every loop task."""
        for task in self._tasks:
            if not task.done():
                task.cancel()

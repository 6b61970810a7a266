"""
Control Loop

Turns a stream of metric events into a stream of realized pool sizes:

    filter -> error -> dead-zone -> controller step -> cooldown gate
    -> clamp -> actuate -> emit

Each stage is a small method; ``process`` composes them for one event and
``decisions``/``transform`` drive ``process`` over a whole stream. One loop
tracks exactly one metric and handles its events strictly in order.

Emitted sizes always lie within the configured bounds; a realized size
outside them is clamped and logged.

Cooldown policy: a tick that lands inside the cooldown window does not call
the actuator; it re-emits the last realized size. Only a non-zero correction
that was actuated opens a new window.

Actuator failure policy: terminal. The failing tick leaves the baseline and
cooldown untouched, and the output stream ends with ``ActuationError``.
"""

import asyncio
import time
from typing import AsyncIterator, Callable, List, Optional

from ..domain.interfaces import Actuator, Controller
from ..domain.models import Event, LoopDecision, LoopMode
from ..framework.configuration import ClutchConfiguration
from ..infrastructure.exceptions import ActuationError, ControlLoopError
from ..infrastructure.observability import get_logger, get_metrics_collector, loop_context
from ..infrastructure.observability.metrics import ClutchMetricsCollector
from ..adapters.event_source import EventStream, as_async_iterator
from .gain_scheduling import Dampener
from .pid_controller import PIDController


class ControlLoop:
    """
    Reactive autoscaling loop for a single metric.

    The loop owns its controller and its baseline (last realized size and
    last actuation time). Both live until the loop's stream terminates; a
    loop runs once.
    """

    def __init__(
        self,
        config: ClutchConfiguration,
        actuator: Actuator,
        initial_size: float,
        controller: Optional[Controller] = None,
        dampener: Optional[Dampener] = None,
        delta_t: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[ClutchMetricsCollector] = None,
        loop_id: Optional[str] = None
    ):
        """
        Args:
            config: Validated loop configuration
            actuator: Sink applying sizes; its return value is authoritative
            initial_size: Baseline before any event arrives
            controller: Defaults to a PID controller built from ``config``
            dampener: Shared gain-scheduling cell for the default controller
            delta_t: Time step divisor for the default controller
            clock: Monotonic clock in seconds, injectable for tests
            metrics: Collector; defaults to the global one
            loop_id: Tag for log records, defaults to the metric name

        Raises:
            ConfigurationError: If ``delta_t`` is not a finite positive number
            ControlLoopError: If both ``controller`` and ``dampener`` are given

        ``config`` is validated when it is built; bad bounds, ropes or
        metrics raise pydantic's ``ValidationError`` there, never here.
        """
        if controller is not None and dampener is not None:
            raise ControlLoopError(
                "Pass either a controller or a dampener, not both",
                metric=config.metric.value
            )

        self.config = config
        self.actuator = actuator
        self.initial_size = float(initial_size)
        self.controller = controller or PIDController.from_configuration(config, delta_t, dampener)
        self.clock = clock
        self.metrics = metrics or get_metrics_collector()
        self.loop_id = loop_id or config.metric.value

        self._labels = {"metric": config.metric.value}
        self._last_size = self.initial_size
        self._last_actuation_time: Optional[float] = None
        self._lock = asyncio.Lock()
        self._started = False
        self._closed = False

        self.logger = get_logger(f"clutch.control_loop.{self.loop_id}")
        self.logger.info("Control loop initialized", extra={
            "metric": config.metric.value,
            "set_point": config.set_point,
            "size_bounds": f"[{config.min_size}, {config.max_size}]",
            "rope": f"[{config.rope.lower}, {config.rope.upper}]",
            "cooldown_seconds": config.cooldown_seconds,
            "initial_size": self.initial_size
        })

    @property
    def last_size(self) -> float:
        return self._last_size

    @property
    def last_actuation_time(self) -> Optional[float]:
        return self._last_actuation_time

    @property
    def closed(self) -> bool:
        return self._closed

    # Stages

    def accepts(self, event: Event) -> bool:
        return event.metric is self.config.metric

    def compute_error(self, value: float) -> float:
        return value - self.config.set_point

    def apply_dead_zone(self, error: float) -> float:
        return 0.0 if self.config.rope.contains(error) else error

    def is_cooling(self, now: float) -> bool:
        if self._last_actuation_time is None:
            return False
        return now - self._last_actuation_time < self.config.cooldown_seconds

    def clamp(self, size: float) -> float:
        return float(min(max(size, self.config.min_size), self.config.max_size))

    async def _actuate(self, proposed: float) -> float:
        try:
            with self.metrics.time_actuation(self.config.metric.value):
                realized = await self.actuator.actuate(proposed)
        except Exception as e:
            self.metrics.increment_counter("clutch_actuation_failures_total", self._labels)
            self.logger.error("Actuation failed", extra={
                "target_size": proposed,
                "last_size": self._last_size
            }, exc_info=e)
            raise ActuationError(
                f"Actuator failed to apply size {proposed}",
                metric=self.config.metric.value,
                target_size=proposed,
                cause=e
            ) from e

        self.metrics.increment_counter("clutch_actuations_total", self._labels)
        bounded = self.clamp(realized)
        if bounded != realized:
            self.logger.warning("Actuator realized a size outside the configured bounds", extra={
                "requested": proposed,
                "realized": realized,
                "emitted": bounded,
                "size_bounds": f"[{self.config.min_size}, {self.config.max_size}]"
            })
        return bounded

    # Orchestration

    async def process(self, event: Event) -> Optional[LoopDecision]:
        """
        Run one event through every stage.

        Returns:
            The decision for an accepted event, or None if the event carries
            another metric

        Raises:
            ActuationError: If the actuator fails
            ControlLoopError: If the loop's stream already terminated
        """
        async with self._lock:
            if self._closed:
                raise ControlLoopError("Control loop is closed", metric=self.config.metric.value)
            with loop_context(self.loop_id):
                return await self._process(event)

    async def _process(self, event: Event) -> Optional[LoopDecision]:
        if not self.accepts(event):
            self.metrics.increment_counter("clutch_events_filtered_total", self._labels)
            return None

        self.metrics.increment_counter("clutch_events_received_total", self._labels)

        error = self.compute_error(event.value)
        adjusted = self.apply_dead_zone(error)
        correction = self.controller.process_step(adjusted)

        now = self.clock()
        if self.is_cooling(now):
            self.metrics.increment_counter("clutch_cooldown_suppressed_total", self._labels)
            self.logger.debug("Cooling down, re-emitting last size", extra={
                "value": event.value,
                "correction": correction,
                "size": self._last_size,
                "remaining_seconds": self.config.cooldown_seconds - (now - self._last_actuation_time)
            })
            return LoopDecision(
                event=event,
                error=error,
                adjusted_error=adjusted,
                correction=correction,
                mode=LoopMode.COOLING,
                proposed=None,
                realized=self._last_size
            )

        proposed = self.clamp(self._last_size + correction)
        realized = await self._actuate(proposed)

        # Only a real correction opens a cooldown window
        if correction != 0.0:
            self._last_actuation_time = now
        previous, self._last_size = self._last_size, realized
        self.metrics.set_gauge("clutch_pool_size", realized, self._labels)

        if realized != previous:
            self.logger.info("Pool resized", extra={
                "value": event.value,
                "error": error,
                "correction": correction,
                "previous_size": previous,
                "proposed_size": proposed,
                "realized_size": realized
            })
        else:
            self.logger.debug("Tick processed", extra={
                "value": event.value,
                "error": error,
                "adjusted_error": adjusted,
                "correction": correction,
                "size": realized
            })

        return LoopDecision(
            event=event,
            error=error,
            adjusted_error=adjusted,
            correction=correction,
            mode=LoopMode.ACTIVE,
            proposed=proposed,
            realized=realized
        )

    def _log_lifecycle(self, message: str, **extra) -> None:
        with loop_context(self.loop_id):
            self.logger.info(message, extra=extra)

    async def decisions(self, source: EventStream) -> AsyncIterator[LoopDecision]:
        """
        Drive the loop over ``source``, yielding one decision per accepted event.

        Completion, failure and cancellation of either side close the loop;
        upstream failures propagate unchanged.
        """
        if self._started:
            raise ControlLoopError(
                "Control loop already ran; build a new loop for a new stream",
                metric=self.config.metric.value
            )
        self._started = True

        events = as_async_iterator(source)
        reason = "completed"
        self._log_lifecycle("Control loop started", initial_size=self.initial_size)
        try:
            async for event in events:
                decision = await self.process(event)
                if decision is not None:
                    yield decision
        except (GeneratorExit, asyncio.CancelledError):
            reason = "cancelled"
            raise
        except Exception as e:
            reason = "failed"
            with loop_context(self.loop_id):
                self.logger.error("Control loop terminated by failure", extra={
                    "last_size": self._last_size
                }, exc_info=e)
            raise
        finally:
            self._closed = True
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()
            self._log_lifecycle("Control loop stopped", reason=reason, last_size=self._last_size)

    async def transform(self, source: EventStream) -> AsyncIterator[float]:
        """Realized sizes, one per accepted event, in input order."""
        decisions = self.decisions(source)
        try:
            async for decision in decisions:
                yield decision.realized
        finally:
            await decisions.aclose()

    async def run(self, source: EventStream) -> List[float]:
        """Drain a finite source and return every emitted size."""
        return [size async for size in self.transform(source)]

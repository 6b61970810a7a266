"""
End-to-end scenarios: a configured loop driven by a stream of events.
"""

import math

import pytest

from clutch import ClutchConfiguration, ControlLoop, Event, Metric, actuator_of

from fixtures.loop_fixtures import ManualClock, RecordingActuator


def reference_config(**overrides):
    values = dict(
        metric=Metric.CPU,
        set_point=0.6,
        kp=0.01,
        ki=0.01,
        kd=0.01,
        min_size=3,
        max_size=10,
        rope=(0.25, 0.0),
        cooldown_interval=1,
        cooldown_unit="minutes",
    )
    values.update(overrides)
    return ClutchConfiguration(**values)


def cpu_events(value, count):
    return [Event(Metric.CPU, value) for _ in range(count)]


class TestReferenceScenarios:
    """Scenarios with the reference tuning."""

    @pytest.mark.asyncio
    async def test_below_set_point_inside_rope_holds_size(self):
        loop = ControlLoop(reference_config(), actuator_of(lambda size: size), 8.0, clock=ManualClock())
        sizes = await loop.run(cpu_events(0.5, 1000))

        assert len(sizes) == 1000
        assert set(sizes) == {8.0}

    @pytest.mark.asyncio
    async def test_above_set_point_scales_up_once_with_frozen_clock(self):
        actuator = RecordingActuator(math.ceil)
        loop = ControlLoop(reference_config(), actuator, 8.0, clock=ManualClock())
        sizes = await loop.run(cpu_events(0.7, 1000))

        assert sizes[0] == 9.0
        assert set(sizes) == {9.0}
        assert len(actuator.requests) == 1

    @pytest.mark.asyncio
    async def test_below_set_point_outside_rope_eventually_scales_down(self):
        config = reference_config(cooldown_interval=10, cooldown_unit="milliseconds")
        clock = ManualClock()
        loop = ControlLoop(config, actuator_of(math.ceil), 8.0, clock=clock)

        async def spaced():
            for event in cpu_events(0.2, 1000):
                yield event
                clock.advance(0.011)

        sizes = await loop.run(spaced())

        # Sub-unit corrections are rounded back up until the integral grows
        assert sizes[0] == 8.0
        assert any(size < 8.0 for size in sizes)
        assert all(later <= earlier for earlier, later in zip(sizes, sizes[1:]))
        assert min(sizes) == 3.0


class TestBehaviour:
    """General properties of a running loop."""

    @pytest.mark.asyncio
    async def test_steady_state(self):
        loop = ControlLoop(reference_config(rope=(0.0, 0.0)), actuator_of(math.ceil), 8.0, clock=ManualClock())
        sizes = await loop.run(cpu_events(0.6, 100))

        assert set(sizes) == {8.0}

    @pytest.mark.asyncio
    async def test_untracked_metrics_change_nothing(self):
        events = []
        for _ in range(50):
            events.append(Event(Metric.CPU, 0.6))
            events.append(Event(Metric.NETWORK, 0.95))
            events.append(Event(Metric.MEMORY, 0.01))

        loop = ControlLoop(reference_config(rope=(0.0, 0.0)), actuator_of(math.ceil), 8.0, clock=ManualClock())
        sizes = await loop.run(events)

        assert len(sizes) == 50
        assert set(sizes) == {8.0}

    @pytest.mark.asyncio
    async def test_scale_down(self):
        config = reference_config(kp=5.0, ki=0.0, kd=0.0, rope=(0.0, 0.0))
        loop = ControlLoop(config, actuator_of(math.ceil), 8.0, clock=ManualClock())
        sizes = await loop.run(cpu_events(0.1, 10))

        assert sizes[0] < 8.0
        assert sizes[0] == 6.0

    @pytest.mark.asyncio
    async def test_dead_zone_with_signed_rope(self):
        loop = ControlLoop(reference_config(rope=(-0.25, 0.0)), actuator_of(math.ceil), 8.0, clock=ManualClock())
        sizes = await loop.run(cpu_events(0.5, 200))

        assert set(sizes) == {8.0}

    @pytest.mark.asyncio
    async def test_sizes_stay_within_bounds(self):
        values = [0.99, 0.99, 0.01, 0.5, 0.99, 0.0, 0.0, 0.0, 1.0, 0.6] * 20
        config = reference_config(kp=3.0, ki=0.5, kd=0.5, rope=(0.0, 0.0), cooldown_interval=0)
        clock = ManualClock()
        loop = ControlLoop(config, actuator_of(round), 8.0, clock=clock)

        sizes = await loop.run([Event(Metric.CPU, v) for v in values])

        assert all(3.0 <= size <= 10.0 for size in sizes)
        assert max(sizes) == 10.0
        assert min(sizes) == 3.0

    @pytest.mark.asyncio
    async def test_burst_within_cooldown_actuates_once(self):
        actuator = RecordingActuator(math.ceil)
        clock = ManualClock()
        loop = ControlLoop(reference_config(kp=1.0), actuator, 8.0, clock=clock)

        first_burst = await loop.run(cpu_events(0.9, 20))

        assert len(actuator.requests) == 1
        assert set(first_burst) == {first_burst[0]}
        assert first_burst[0] > 8.0

    @pytest.mark.asyncio
    async def test_cooldown_elapses_between_ticks(self):
        actuator = RecordingActuator(math.ceil)
        clock = ManualClock()
        loop = ControlLoop(reference_config(), actuator, 8.0, clock=clock)

        async def spaced():
            for event in cpu_events(0.7, 3):
                yield event
                clock.advance(61.0)

        sizes = await loop.run(spaced())

        assert len(actuator.requests) == 3
        assert sizes == [9.0, 10.0, 10.0]

    @staticmethod
    def oscillating_load(ticks):
        return [Event(Metric.CPU, ((tick % 60) + 30) / 100) for tick in range(ticks)]

    @pytest.mark.asyncio
    async def test_oscillating_load_moves_size_both_ways(self):
        config = reference_config(kp=0.5, ki=0.0, kd=0.1, rope=(0.0, 0.0), cooldown_interval=0)
        loop = ControlLoop(config, actuator_of(lambda size: size), 5.0, clock=ManualClock())

        sizes = await loop.run(self.oscillating_load(1000))

        assert len(sizes) == 1000
        assert any(size < 5.0 for size in sizes)
        assert any(size > 5.0 for size in sizes)
        assert all(3.0 <= size <= 10.0 for size in sizes)

    @pytest.mark.asyncio
    async def test_oscillating_load_with_rounding_up_only_ratchets_up(self):
        config = reference_config(kp=0.5, ki=0.0, kd=0.1, rope=(0.0, 0.0), cooldown_interval=0)
        loop = ControlLoop(config, actuator_of(math.ceil), 5.0, clock=ManualClock())

        sizes = await loop.run(self.oscillating_load(1000))

        # No single negative correction reaches a whole unit
        assert min(sizes) == 5.0
        assert max(sizes) == 10.0

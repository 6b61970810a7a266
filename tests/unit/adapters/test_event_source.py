"""
Tests for event sources: channel semantics, payload decoding and the NATS
subscription.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock, patch

import pytest

from clutch.adapters import NATSEventSource, QueueEventSource, as_async_iterator, decode_event, encode_event
from clutch.domain.models import Event, Metric
from clutch.infrastructure.exceptions import EventSourceError


async def collect(source):
    return [event async for event in as_async_iterator(source)]


class TestAsAsyncIterator:
    """Test adapting iterables to async iterators."""

    @pytest.mark.asyncio
    async def test_sync_iterable(self):
        events = [Event(Metric.CPU, 0.1), Event(Metric.LAG, 3.0)]
        assert await collect(events) == events

    @pytest.mark.asyncio
    async def test_async_iterable(self):
        async def gen():
            yield Event(Metric.DROPS, 1.0)

        assert await collect(gen()) == [Event(Metric.DROPS, 1.0)]

    def test_unsupported(self):
        with pytest.raises(TypeError):
            as_async_iterator(42)


class TestQueueEventSource:
    """Test the in-process channel."""

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        channel = QueueEventSource()
        await channel.put(Event(Metric.CPU, 0.5))
        channel.put_nowait(Event(Metric.CPU, 0.6))
        await channel.close()

        assert [e.value for e in await collect(channel)] == [0.5, 0.6]
        assert channel.ended

    @pytest.mark.asyncio
    async def test_fail_raises_after_queued_events(self):
        channel = QueueEventSource()
        await channel.put(Event(Metric.CPU, 0.5))
        await channel.fail(ConnectionError("gone"))

        received = []
        with pytest.raises(ConnectionError):
            async for event in channel:
                received.append(event)
        assert received == [Event(Metric.CPU, 0.5)]

    @pytest.mark.asyncio
    async def test_put_after_close_is_ignored(self):
        channel = QueueEventSource()
        await channel.close()
        await channel.put(Event(Metric.CPU, 0.5))
        await channel.fail(RuntimeError("late"))

        assert await collect(channel) == []

    @pytest.mark.asyncio
    async def test_discard(self):
        channel = QueueEventSource(maxsize=2)
        await channel.put(Event(Metric.CPU, 0.5))
        await channel.put(Event(Metric.CPU, 0.6))

        channel.discard()

        assert channel.qsize() == 0
        assert channel.ended
        await asyncio.wait_for(channel.put(Event(Metric.CPU, 0.7)), timeout=1)
        assert channel.qsize() == 0

    @pytest.mark.asyncio
    async def test_close_on_full_channel_does_not_wait(self):
        channel = QueueEventSource(maxsize=1)
        await channel.put(Event(Metric.CPU, 0.5))

        await asyncio.wait_for(channel.close(), timeout=1)

        assert await collect(channel) == [Event(Metric.CPU, 0.5)]

    @pytest.mark.asyncio
    async def test_fail_on_full_channel_raises_after_queued_events(self):
        channel = QueueEventSource(maxsize=1)
        await channel.put(Event(Metric.CPU, 0.5))

        await asyncio.wait_for(channel.fail(ConnectionError("gone")), timeout=1)

        received = []
        with pytest.raises(ConnectionError):
            async for event in channel:
                received.append(event)
        assert received == [Event(Metric.CPU, 0.5)]

    @pytest.mark.asyncio
    async def test_consumer_stopping_early_discards_channel(self):
        channel = QueueEventSource(maxsize=3)
        for value in (0.5, 0.6, 0.7):
            await channel.put(Event(Metric.CPU, value))

        events = channel.__aiter__()
        assert (await events.__anext__()).value == 0.5
        await events.aclose()

        assert channel.ended
        assert channel.qsize() == 0
        await asyncio.wait_for(channel.put(Event(Metric.CPU, 0.8)), timeout=1)


class TestCodec:
    """Test JSON payload decoding."""

    def test_decode(self):
        assert decode_event(b'{"metric": "cpu", "value": 0.7}') == Event(Metric.CPU, 0.7)

    def test_decode_integer_value_and_metric_name(self):
        assert decode_event('{"metric": "RPS", "value": 120}') == Event(Metric.RPS, 120.0)

    def test_encode(self):
        assert json.loads(encode_event(Event(Metric.MEMORY, 0.25))) == {"metric": "memory", "value": 0.25}

    @pytest.mark.parametrize("payload", [
        b"not json",
        b"[1, 2]",
        b'{"metric": "cpu"}',
        b'{"metric": "disk", "value": 1}',
        b'{"metric": "cpu", "value": "high"}',
        b'{"metric": "cpu", "value": true}',
    ])
    def test_decode_rejects(self, payload):
        with pytest.raises(EventSourceError) as exc_info:
            decode_event(payload, subject="clutch.metrics")
        assert exc_info.value.error_code == "EVENT_SOURCE_ERROR"
        assert exc_info.value.context["subject"] == "clutch.metrics"


class TestNATSEventSource:
    """Test the NATS subscription with a mocked client."""

    def make_client(self):
        client = Mock()
        subscription = Mock()
        subscription.unsubscribe = AsyncMock()
        client.subscribe = AsyncMock(return_value=subscription)
        client.drain = AsyncMock()
        return client, subscription

    @pytest.mark.asyncio
    async def test_messages_are_delivered_in_order(self):
        client, subscription = self.make_client()
        source = NATSEventSource("clutch.metrics", client=client)

        await source.connect()
        client.subscribe.assert_awaited_once_with("clutch.metrics", cb=source._on_message)
        assert source.is_connected

        await source._on_message(Mock(data=encode_event(Event(Metric.CPU, 0.7))))
        await source._on_message(Mock(data=b"garbage"))
        await source._on_message(Mock(data=encode_event(Event(Metric.CPU, 0.4))))
        await source.close()

        assert [e.value for e in await collect(source)] == [0.7, 0.4]
        subscription.unsubscribe.assert_awaited_once()
        # Injected clients belong to the caller
        client.drain.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undecodable_message_is_logged(self, log_capture):
        client, _ = self.make_client()
        source = NATSEventSource("clutch.metrics", client=client)
        await source.connect()

        await source._on_message(Mock(data=b"{}"))

        assert log_capture.has_record_with_message("Dropping undecodable event")

    @pytest.mark.asyncio
    async def test_full_channel_drops_messages_and_closes(self, log_capture):
        client, _ = self.make_client()
        source = NATSEventSource("clutch.metrics", client=client, queue_size=1)
        await source.connect()

        await asyncio.wait_for(source._on_message(Mock(data=encode_event(Event(Metric.CPU, 0.7)))), timeout=1)
        await asyncio.wait_for(source._on_message(Mock(data=encode_event(Event(Metric.CPU, 0.9)))), timeout=1)
        await asyncio.wait_for(source.close(), timeout=1)

        assert log_capture.has_record_with_message("Dropping event, channel is full")
        assert [e.value for e in await collect(source)] == [0.7]

    @pytest.mark.asyncio
    async def test_owned_client_is_drained(self):
        client, _ = self.make_client()

        with patch("clutch.adapters.event_source.nats.connect", new=AsyncMock(return_value=client)) as connect:
            async with NATSEventSource("clutch.metrics", servers=["nats://broker:4222"]) as source:
                assert source.is_connected

        assert connect.await_args.kwargs["servers"] == ["nats://broker:4222"]
        client.drain.assert_awaited_once()
        assert not source.is_connected

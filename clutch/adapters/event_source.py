"""
Event sources.

Channels and transports that deliver metric events to control loops:
- ``as_async_iterator`` adapts sync and async iterables
- ``QueueEventSource`` is an in-process channel with completion and failure
- ``NATSEventSource`` subscribes to a NATS subject carrying JSON events
"""

import asyncio
import json
from typing import Any, AsyncIterable, AsyncIterator, Iterable, List, Optional, Union

import nats

from ..domain.interfaces import EventSource
from ..domain.models import Event, Metric
from ..infrastructure.exceptions import EventSourceError
from ..infrastructure.observability import get_logger

EventStream = Union[EventSource, AsyncIterable[Event], Iterable[Event]]


async def _iterate_sync(events: Iterable[Event]) -> AsyncIterator[Event]:
    for event in events:
        yield event


def as_async_iterator(source: EventStream) -> AsyncIterator[Event]:
    """Return an async iterator over any supported event stream."""
    if hasattr(source, "__aiter__"):
        return source.__aiter__()
    if hasattr(source, "__iter__"):
        return _iterate_sync(source)
    raise TypeError(f"Unsupported event source: {type(source).__name__}")


class _Closed:
    pass


class _Failed:
    def __init__(self, error: BaseException):
        self.error = error


class QueueEventSource(EventSource):
    """
    Single-consumer channel of events.

    Producers ``put`` events and end the stream with ``close()`` (normal
    completion) or ``fail(error)`` (the consumer's iteration raises
    ``error``). Items put after the stream ended are ignored. Ending the
    stream never waits for room in a bounded queue; the consumer sees the
    end once it has drained the queued events. A consumer that stops
    iterating discards the channel.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._ended = False
        self._terminal: Optional[Union[_Closed, _Failed]] = None

    @property
    def ended(self) -> bool:
        return self._ended

    def full(self) -> bool:
        return self._queue.full()

    async def put(self, event: Event) -> None:
        if not self._ended:
            await self._queue.put(event)

    def put_nowait(self, event: Event) -> None:
        """
        Raises:
            asyncio.QueueFull: If a bounded channel has no room
        """
        if not self._ended:
            self._queue.put_nowait(event)

    def _finish(self, terminal: Union[_Closed, _Failed]) -> None:
        if self._ended:
            return
        self._ended = True
        self._terminal = terminal
        try:
            self._queue.put_nowait(terminal)
        except asyncio.QueueFull:
            # Picked up by the consumer once the queue is drained
            pass

    async def close(self) -> None:
        self._finish(_Closed())

    async def fail(self, error: BaseException) -> None:
        self._finish(_Failed(error))

    def discard(self) -> None:
        """End the stream from the consumer side and drop anything queued."""
        self._ended = True
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break

    def qsize(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[Event]:
        try:
            while True:
                if self._queue.empty() and self._terminal is not None:
                    item = self._terminal
                else:
                    item = await self._queue.get()
                if isinstance(item, _Closed):
                    return
                if isinstance(item, _Failed):
                    raise item.error
                yield item
        finally:
            self.discard()


def decode_event(payload: Union[bytes, str], subject: Optional[str] = None) -> Event:
    """
    Decode a JSON payload such as ``{"metric": "cpu", "value": 0.7}``.

    Raises:
        EventSourceError: If the payload is not a JSON object with a known
            metric and a numeric value
    """
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EventSourceError("Event payload is not valid JSON", subject=subject, payload=text, cause=e) from e

    if not isinstance(data, dict) or "metric" not in data or "value" not in data:
        raise EventSourceError("Event payload must be an object with 'metric' and 'value'", subject=subject, payload=text)

    try:
        metric = Metric.parse(data["metric"])
    except ValueError as e:
        raise EventSourceError(str(e), subject=subject, payload=text, cause=e) from e

    value = data["value"]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventSourceError("Event value must be numeric", subject=subject, payload=text)

    return Event(metric=metric, value=float(value))


def encode_event(event: Event) -> bytes:
    return json.dumps({"metric": event.metric.value, "value": event.value}).encode("utf-8")


class NATSEventSource(EventSource):
    """
    Metric events delivered over a NATS subject.

    Messages are decoded with ``decode_event`` and queued in arrival order.
    Undecodable messages are logged and dropped; they never terminate the
    stream. Messages arriving while the channel is full are logged and
    dropped so the NATS dispatcher never blocks. ``close()`` ends iteration
    normally.
    """

    def __init__(
        self,
        subject: str,
        servers: Optional[List[str]] = None,
        name: str = "clutch-event-source",
        client: Any = None,
        queue_size: int = 1000,
        max_reconnect_attempts: int = 10,
        reconnect_time_wait: int = 2
    ):
        self.subject = subject
        self.servers = servers or ["nats://localhost:4222"]
        self.name = name
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_time_wait = reconnect_time_wait
        self.nc = client
        self._owns_client = client is None
        self._subscription = None
        self._channel = QueueEventSource(maxsize=queue_size)
        self.logger = get_logger("clutch.event_source.nats")

    @property
    def is_connected(self) -> bool:
        return self._subscription is not None

    async def connect(self) -> None:
        """Connect (unless a client was injected) and subscribe to the subject."""
        if self.nc is None:
            self.nc = await nats.connect(
                servers=self.servers,
                name=self.name,
                max_reconnect_attempts=self.max_reconnect_attempts,
                reconnect_time_wait=self.reconnect_time_wait,
                error_cb=self._error_callback,
                disconnected_cb=self._disconnected_callback,
                reconnected_cb=self._reconnected_callback
            )
        self._subscription = await self.nc.subscribe(self.subject, cb=self._on_message)
        self.logger.info("Subscribed to metric events", extra={
            "subject": self.subject,
            "servers": self.servers
        })

    async def _on_message(self, msg) -> None:
        try:
            event = decode_event(msg.data, subject=self.subject)
        except EventSourceError as e:
            self.logger.warning("Dropping undecodable event", extra={
                "subject": self.subject,
                "error": e.message
            })
            return
        try:
            self._channel.put_nowait(event)
        except asyncio.QueueFull:
            self.logger.warning("Dropping event, channel is full", extra={
                "subject": self.subject,
                "queue_size": self._channel.qsize()
            })

    async def close(self) -> None:
        """Unsubscribe, drain the client if we created it, and end the stream."""
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        if self.nc is not None and self._owns_client:
            await self.nc.drain()
        await self._channel.close()
        self.logger.info("Event source closed", extra={"subject": self.subject})

    async def _error_callback(self, e):
        self.logger.error("NATS error", extra={"subject": self.subject}, exc_info=e)

    async def _disconnected_callback(self):
        self.logger.warning("Disconnected from NATS", extra={"subject": self.subject})

    async def _reconnected_callback(self):
        self.logger.info("Reconnected to NATS", extra={"subject": self.subject})

    async def __aenter__(self) -> "NATSEventSource":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._channel.__aiter__()

"""
Task event bus — multi-consumer fan-out of lifecycle events.

Delivery policy:
- Each subscriber owns a bounded queue.
- ``publish`` never awaits. When a subscriber's queue is full the oldest
  queued event is dropped to make room, the drop is counted on the
  subscription and logged.
- A closed subscription is detached and receives nothing further.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional, Set

from task_kernel.models.events import TaskEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256

_CLOSED = object()


class TaskEventSubscription:
    """
    A single consumer's view of the event stream.

    Once closed, queued events can still be read; after them ``get`` returns
    None and async iteration stops.
    """

    def __init__(self, bus: "TaskEventBus", maxsize: int):
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue()
        self.maxsize = maxsize
        self.dropped = 0
        self.closed = False

    def _offer(self, event: TaskEvent) -> None:
        if self.closed:
            return
        while self._queue.qsize() >= self.maxsize:
            stale = self._queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "Subscriber queue full; dropped %s event for task %s",
                stale.type.value,
                stale.task_id,
            )
        self._queue.put_nowait(event)

    def _unwrap(self, item) -> Optional[TaskEvent]:
        if item is _CLOSED:
            # Keep the marker queued for any later reader.
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    async def get(self, timeout: Optional[float] = None) -> Optional[TaskEvent]:
        """
        Next event, or None once the subscription is closed and drained.
        Raises asyncio.TimeoutError if ``timeout`` elapses first.
        """
        if timeout is None:
            return self._unwrap(await self._queue.get())
        return self._unwrap(await asyncio.wait_for(self._queue.get(), timeout=timeout))

    def get_nowait(self) -> Optional[TaskEvent]:
        try:
            return self._unwrap(self._queue.get_nowait())
        except asyncio.QueueEmpty:
            return None

    def drain(self) -> list:
        """All events queued right now, oldest first."""
        events = []
        while True:
            event = self.get_nowait()
            if event is None:
                return events
            events.append(event)

    def pending(self) -> int:
        return self._queue.qsize() - (1 if self.closed else 0)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._bus._detach(self)
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[TaskEvent]:
        return self

    async def __anext__(self) -> TaskEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "TaskEventSubscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class TaskEventBus:
    """Owns the subscriber set. One bus per TaskManager; no global state."""

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE):
        self.max_queue_size = max_queue_size
        self._subscribers: Set[TaskEventSubscription] = set()

    def subscribe(self, maxsize: Optional[int] = None) -> TaskEventSubscription:
        subscription = TaskEventSubscription(self, maxsize or self.max_queue_size)
        self._subscribers.add(subscription)
        return subscription

    def publish(self, event: TaskEvent) -> None:
        for subscription in list(self._subscribers):
            subscription._offer(event)

    def _detach(self, subscription: TaskEventSubscription) -> None:
        self._subscribers.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

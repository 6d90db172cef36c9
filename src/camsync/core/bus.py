"""
Asyncio event bus carrying UI signals out of the sync engine.

Sections never render anything themselves: notifications, dialogs, loading
state and MQTT status changes are published here as typed payloads and any
number of front ends subscribe to the topics they draw.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from asyncio import QueueEmpty, QueueFull
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .contracts import BasePayload

logger = logging.getLogger(__name__)


Handler = Callable[[str, BasePayload], Awaitable[None] | None]


@dataclass(frozen=True)
class Subscription:
    """Handle for a topic subscription."""

    topic: str
    handler: Handler


class EventBus:
    """
    Minimal asynchronous publish/subscribe bus.

    Topics are matched exactly. Payloads published before :meth:`start`
    are queued and delivered once the dispatcher runs.
    """

    def __init__(self, *, queue_size: int = 256) -> None:
        self._queue: asyncio.Queue[tuple[str, BasePayload]] = asyncio.Queue(maxsize=queue_size)
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._published_total = 0
        self._dropped_total = 0

    @property
    def running(self) -> bool:
        return self._dispatcher_task is not None

    @property
    def dropped_total(self) -> int:
        return self._dropped_total

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        """Register a sync or async handler for a topic."""
        self._subscribers[topic].append(handler)
        logger.debug("Subscribed handler %s to topic %s", handler, topic)
        return Subscription(topic=topic, handler=handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        handlers = self._subscribers.get(subscription.topic, [])
        if subscription.handler in handlers:
            handlers.remove(subscription.handler)

    async def publish(self, topic: str, payload: BasePayload) -> None:
        """Queue a payload, waiting for space if the queue is full."""
        self._published_total += 1
        if self._queue.full():
            logger.warning("Event bus queue is full; publisher will wait for free space.")
        await self._queue.put((topic, payload))

    def publish_nowait(self, topic: str, payload: BasePayload) -> None:
        """Queue a payload from synchronous code; drops it when the queue is full."""
        self._published_total += 1
        try:
            self._queue.put_nowait((topic, payload))
        except QueueFull:
            self._dropped_total += 1
            logger.warning("Event bus queue is full; dropped payload for %s", topic)

    async def start(self) -> None:
        if self._dispatcher_task is None:
            self._dispatcher_task = asyncio.create_task(self._dispatcher(), name="camsync-bus")
            logger.debug("Event bus dispatcher started.")

    async def drain(self) -> None:
        """Wait until every queued payload has been handed to its handlers."""
        await self._queue.join()
        if self._handler_tasks:
            await asyncio.gather(*list(self._handler_tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Stop the dispatcher, letting in-flight handlers finish."""
        if self._dispatcher_task is None:
            return
        self._dispatcher_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._dispatcher_task
        self._dispatcher_task = None
        if self._handler_tasks:
            pending = list(self._handler_tasks)
            self._handler_tasks.clear()
            await asyncio.gather(*pending, return_exceptions=True)
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except QueueEmpty:
                break
            self._dropped_total += 1
            self._queue.task_done()
        logger.debug("Event bus dispatcher stopped (%d dropped).", self._dropped_total)

    async def _dispatcher(self) -> None:
        while True:
            topic, payload = await self._queue.get()
            try:
                for handler in list(self._subscribers.get(topic, [])):
                    # Handlers run as tasks so they may publish without deadlocking the queue.
                    task = asyncio.create_task(self._call_handler(handler, topic, payload))
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._on_handler_done)
            finally:
                self._queue.task_done()

    def _on_handler_done(self, task: asyncio.Task[None]) -> None:
        self._handler_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Subscriber handler failed", exc_info=exc)

    async def _call_handler(self, handler: Handler, topic: str, payload: BasePayload) -> None:
        result = handler(topic, payload)
        if inspect.isawaitable(result):
            await result


__all__ = ["EventBus", "Handler", "Subscription"]

"""Async pub/sub event bus standing in for the host's event source."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine
from uuid import uuid4

from eventhook.utils.logging import get_logger

log = get_logger(__name__)

ALL_EVENTS = "*"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Event:
    name: str
    # None means the event carried no data; an empty dict is still data
    data: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: uuid4().hex[:12])


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

Handler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    def __init__(self, max_queue_size: int = 256) -> None:
        self._subscribers: dict[str, list[tuple[Handler, asyncio.Queue[Event]]]] = {}
        self._max_queue_size = max_queue_size
        self._running = False
        self._tasks: list[asyncio.Task[None]] = []

    def subscribe(self, event_name: str, handler: Handler) -> None:
        """Register handler for event_name, or for every event with '*'."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.setdefault(event_name, []).append((handler, queue))

    async def publish(self, event: Event) -> None:
        handlers = [
            *self._subscribers.get(event.name, []),
            *self._subscribers.get(ALL_EVENTS, []),
        ]
        for handler, queue in handlers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                log.warning(
                    "event_queue_full",
                    event_name=event.name,
                    handler=getattr(handler, "__qualname__", type(handler).__qualname__),
                )

    async def start(self) -> None:
        self._running = True
        for event_name, handler_list in self._subscribers.items():
            for handler, queue in handler_list:
                name = getattr(handler, "__qualname__", type(handler).__qualname__)
                task = asyncio.create_task(
                    self._consumer(handler, queue, event_name),
                    name=f"bus-{event_name}-{name}",
                )
                self._tasks.append(task)

    async def _consumer(
        self, handler: Handler, queue: asyncio.Queue[Event], event_name: str
    ) -> None:
        while self._running:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await handler(event)
            except Exception:
                log.exception("handler_error", event_name=event_name)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every published event has been handed to its handler."""
        for handler_list in self._subscribers.values():
            for _, queue in handler_list:
                await queue.join()

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

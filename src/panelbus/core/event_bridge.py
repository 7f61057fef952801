"""Event bridge — ``asyncio.Queue``-based, lossless delivery to the display.

The signal watcher is the only writer; a single consumer task is the only
reader and dispatches each event to the subscribed display handlers.

Key behaviours:
* Bounded queue: when full, :meth:`EventBridge.publish` waits for the
  reader instead of dropping, so delivery is in order and lossless.
* Handlers may be sync or async and run one at a time, in order.
* A handler that raises is **auto-unsubscribed** (logged + removed).
* ``filter_dict`` on subscribe is AND-matched against the payload fields.
* Subscribing to ``"*"`` receives every kind.
* :meth:`EventBridge.stop` drains what is already queued before returning.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from panelbus.core import events
from panelbus.core.models.event import Event

_log = logging.getLogger(__name__)


@dataclass
class _Subscription:
    sub_id: str
    kind: str
    handler: Callable[..., Any]
    filter_dict: dict[str, Any] | None = None


class EventBridge:
    """Single-writer / single-reader event channel.

    Args:
        queue_size: Events buffered before :meth:`publish` waits.
    """

    def __init__(self, queue_size: int = 64) -> None:
        self._queue_size = queue_size
        self._queue: asyncio.Queue[Event | None] | None = None
        self._subscriptions: dict[str, _Subscription] = {}
        # kind → [sub_id, …]  for fast dispatch lookup
        self._kind_index: dict[str, list[str]] = {}
        self._consumer_task: asyncio.Task[None] | None = None
        self._delivered = 0

    @property
    def delivered(self) -> int:
        """Number of events handed to the reader so far."""
        return self._delivered

    @property
    def is_running(self) -> bool:
        return self._consumer_task is not None and not self._consumer_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the consumer task on the running loop."""
        self._queue = asyncio.Queue(maxsize=self._queue_size)
        self._consumer_task = asyncio.create_task(self._consume(), name="event-bridge-consumer")
        _log.info("Event bridge started (queue_size=%d)", self._queue_size)

    async def stop(self) -> None:
        """Deliver everything already queued, then stop the consumer."""
        if self._consumer_task is not None and self._queue is not None:
            await self._queue.put(None)
            await self._consumer_task
            self._consumer_task = None
        self._subscriptions.clear()
        self._kind_index.clear()
        _log.info("Event bridge stopped")

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, event: Event) -> None:
        """Enqueue *event*, waiting while the queue is full."""
        assert self._queue is not None, "EventBridge.start() has not been called"
        await self._queue.put(event)

    # ------------------------------------------------------------------
    # Subscribe / unsubscribe
    # ------------------------------------------------------------------

    def subscribe(
        self,
        kind: str,
        handler: Callable[..., Any],
        filter_dict: dict[str, Any] | None = None,
    ) -> str:
        """Register *handler* for *kind*, returning a subscription id.

        If *filter_dict* is given, the handler only fires when **all**
        key/value pairs match the event payload's fields.
        """
        sub_id = uuid.uuid4().hex
        self._subscriptions[sub_id] = _Subscription(
            sub_id=sub_id, kind=kind, handler=handler, filter_dict=filter_dict
        )
        self._kind_index.setdefault(kind, []).append(sub_id)
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        """Remove the subscription identified by *sub_id*."""
        sub = self._subscriptions.pop(sub_id, None)
        if sub is None:
            return
        ids = self._kind_index.get(sub.kind)
        if ids and sub_id in ids:
            ids.remove(sub_id)

    # ------------------------------------------------------------------
    # Consumer loop
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            if event is None:
                return
            self._delivered += 1
            await self._dispatch(event)

    async def _dispatch(self, event: Event) -> None:
        sub_ids = list(self._kind_index.get(event.kind, []))
        sub_ids += self._kind_index.get(events.ALL, [])
        for sub_id in sub_ids:
            sub = self._subscriptions.get(sub_id)
            if sub is None:
                continue
            if not self._matches_filter(event, sub.filter_dict):
                continue
            try:
                result = sub.handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                _log.exception(
                    "Handler %s for '%s' raised — auto-unsubscribing",
                    sub.handler,
                    event.kind,
                )
                self.unsubscribe(sub_id)

    @staticmethod
    def _matches_filter(event: Event, filter_dict: dict[str, Any] | None) -> bool:
        if filter_dict is None:
            return True
        return all(getattr(event.payload, k, None) == v for k, v in filter_dict.items())

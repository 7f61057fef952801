"""SignalWatcher — the single consumer of observed bus signals.

One task drains the transport's signal queue in arrival order, classifies
each signal into a :class:`SignalKind` and hands it to the handler
registered for that kind.  The events a handler returns are published on
the :class:`~panelbus.core.event_bridge.EventBridge`; the watcher is its
only writer.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from panelbus.core import bus_names as names
from panelbus.core.errors import AggregatorError, MalformedSignalError
from panelbus.core.event_bridge import EventBridge
from panelbus.core.interfaces.transport import BusSignal, BusTransport
from panelbus.core.models.event import Event

_log = logging.getLogger(__name__)

SignalHandler = Callable[[BusSignal], Awaitable[list[Event]]]
StartHook = Callable[[], Awaitable[list[Event]]]


class SignalKind(str, Enum):
    """Classes of signal the aggregator reacts to."""

    OWNERSHIP = "ownership"
    MEDIA_PROPERTIES = "media_properties"
    SESSION_PROPERTIES = "session_properties"


def classify(signal: BusSignal) -> SignalKind | None:
    """Return the :class:`SignalKind` of *signal*, or ``None`` to ignore it."""
    if signal.name == names.FDO_SIGNAL_NAME_OWNER_CHANGED:
        return SignalKind.OWNERSHIP
    if signal.name == names.PROPERTIES_SIGNAL_CHANGED:
        if signal.path == names.MEDIA_PLAYER_PATH:
            return SignalKind.MEDIA_PROPERTIES
        if signal.path == names.LOGIND_PATH:
            return SignalKind.SESSION_PROPERTIES
    return None


class SignalWatcher:
    """Consumes signals one at a time until stopped.

    Args:
        transport: Source of signals.
        bridge: Destination of the resulting events (must be started).
    """

    def __init__(self, transport: BusTransport, bridge: EventBridge) -> None:
        self._transport = transport
        self._bridge = bridge
        self._handlers: dict[SignalKind, SignalHandler] = {}
        self._start_hooks: list[StartHook] = []
        self._signals: asyncio.Queue[BusSignal] = asyncio.Queue()
        self._ready = asyncio.Event()
        self._quit = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def register(self, kind: SignalKind, handler: SignalHandler) -> None:
        """Route signals of *kind* to *handler*."""
        self._handlers[kind] = handler

    def on_start(self, hook: StartHook) -> None:
        """Run *hook* on the watcher task before the first signal is consumed."""
        self._start_hooks.append(hook)

    def attach(self) -> None:
        """Start buffering signals from the transport."""
        self._transport.attach(self._signals)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Spawn the consume loop and wait until it is live."""
        self._quit.clear()
        self._ready.clear()
        self._task = asyncio.create_task(self._watch(), name="signal-watcher")
        await self._ready.wait()
        _log.info("Signal watcher started (%d handler(s))", len(self._handlers))

    async def stop(self) -> None:
        """Ask the loop to exit and wait for it."""
        self._quit.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._transport.detach(self._signals)
        _log.info("Signal watcher stopped")

    # ------------------------------------------------------------------
    # Consume loop
    # ------------------------------------------------------------------

    async def _watch(self) -> None:
        self._ready.set()
        if self._quit.is_set():
            return

        for hook in self._start_hooks:
            try:
                produced = await hook()
            except Exception:
                _log.exception("Start hook %s failed", hook)
                continue
            await self._publish(produced)

        quit_waiter = asyncio.create_task(self._quit.wait())
        try:
            while True:
                if self._quit.is_set():
                    return
                getter = asyncio.create_task(self._signals.get())
                done, _ = await asyncio.wait(
                    {getter, quit_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter not in done:
                    getter.cancel()
                    return
                await self._dispatch(getter.result())
        finally:
            quit_waiter.cancel()

    async def _dispatch(self, signal: BusSignal) -> None:
        kind = classify(signal)
        handler = self._handlers.get(kind) if kind is not None else None
        if handler is None:
            return
        try:
            produced = await handler(signal)
        except MalformedSignalError as exc:
            _log.warning("Discarding %s from %s: %s", signal.name, signal.sender, exc)
            return
        except AggregatorError as exc:
            _log.warning("Handling %s from %s failed: %s", signal.name, signal.sender, exc)
            return
        except Exception:
            _log.exception("Unexpected error handling %s from %s", signal.name, signal.sender)
            return
        await self._publish(produced)

    async def _publish(self, produced: list[Event]) -> None:
        for event in produced:
            await self._bridge.publish(event)

"""D-Bus transport backed by ``dbus-fast``.

MPRIS players live on the session bus, logind on the system bus; calls
and match rules are routed to the right connection by destination/path.
Signals from both connections are delivered, variants unwrapped, to every
attached queue in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Sequence

from dbus_fast import BusType, Message, MessageType, Variant
from dbus_fast.aio import MessageBus

from panelbus.core import bus_names as names
from panelbus.core.interfaces.transport import BusSignal, BusTransport, TransportError

_log = logging.getLogger(__name__)


def unwrap(value: Any) -> Any:
    """Recursively replace :class:`Variant` values by their payload."""
    if isinstance(value, Variant):
        return unwrap(value.value)
    if isinstance(value, dict):
        return {k: unwrap(v) for k, v in value.items()}
    if isinstance(value, list):
        return [unwrap(v) for v in value]
    return value


def to_signal(message: Message) -> BusSignal | None:
    """Convert a received message into a :class:`BusSignal` (``None`` if not a signal)."""
    if message.message_type is not MessageType.SIGNAL:
        return None
    return BusSignal(
        name=f"{message.interface}.{message.member}",
        sender=message.sender or "",
        path=message.path or "",
        body=tuple(unwrap(v) for v in message.body),
    )


def match_rule(
    *,
    interface: str,
    member: str | None = None,
    path: str | None = None,
    arg0namespace: str | None = None,
) -> str:
    """Build a D-Bus match rule string for a signal subscription."""
    parts = ["type='signal'", f"interface='{interface}'"]
    if member:
        parts.append(f"member='{member}'")
    if path:
        parts.append(f"path='{path}'")
    if arg0namespace:
        parts.append(f"arg0namespace='{arg0namespace}'")
    return ",".join(parts)


class DbusTransport(BusTransport):
    """Session + system bus connections.

    Args:
        use_system_bus: Connect to the system bus for logind.  When the
            system bus is unreachable, the transport keeps working for
            media players and lock calls raise :class:`TransportError`.
    """

    def __init__(self, use_system_bus: bool = True) -> None:
        self._use_system_bus = use_system_bus
        self._session: MessageBus | None = None
        self._system: MessageBus | None = None
        self._queues: list[asyncio.Queue[BusSignal]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            self._session = await MessageBus(bus_type=BusType.SESSION).connect()
        except Exception as exc:
            raise TransportError(f"cannot connect to the session bus: {exc}") from exc
        self._session.add_message_handler(self._on_message)
        _log.info("Connected to session bus as %s", self._session.unique_name)

        if self._use_system_bus:
            try:
                self._system = await MessageBus(
                    bus_type=BusType.SYSTEM, negotiate_unix_fd=True
                ).connect()
            except Exception as exc:
                _log.warning("System bus unavailable, inhibition locks disabled: %s", exc)
            else:
                self._system.add_message_handler(self._on_message)
                _log.info("Connected to system bus as %s", self._system.unique_name)

    async def close(self) -> None:
        for bus in (self._session, self._system):
            if bus is None:
                continue
            bus.remove_message_handler(self._on_message)
            bus.disconnect()
        self._session = None
        self._system = None
        _log.info("D-Bus connections closed")

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def attach(self, queue: asyncio.Queue[BusSignal]) -> None:
        self._queues.append(queue)

    def detach(self, queue: asyncio.Queue[BusSignal]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    async def add_match(
        self,
        *,
        interface: str,
        member: str | None = None,
        path: str | None = None,
        arg0namespace: str | None = None,
    ) -> None:
        rule = match_rule(interface=interface, member=member, path=path, arg0namespace=arg0namespace)
        bus = self._bus_for(path=path)
        await self._call(
            bus, names.FDO_NAME, names.FDO_PATH, names.FDO_NAME, names.FDO_METHOD_ADD_MATCH, "s", [rule]
        )
        _log.debug("Added match rule %s", rule)

    def _on_message(self, message: Message) -> None:
        signal = to_signal(message)
        if signal is None:
            return
        for queue in self._queues:
            queue.put_nowait(signal)

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        bus = self._bus_for(destination=destination, path=path)
        reply = await self._call(bus, destination, path, interface, member, signature, body)
        return [unwrap(v) for v in reply.body]

    async def inhibit(self, what: str, who: str, why: str, mode: str) -> int:
        reply = await self._call(
            self._bus_for(destination=names.LOGIND_NAME),
            names.LOGIND_NAME,
            names.LOGIND_PATH,
            names.LOGIND_MANAGER_NAME,
            names.LOGIND_MANAGER_METHOD_INHIBIT,
            "ssss",
            [what, who, why, mode],
        )
        try:
            return reply.unix_fds[reply.body[0]]
        except (IndexError, TypeError) as exc:
            raise TransportError(f"Inhibit reply carried no file descriptor: {reply.body!r}") from exc

    def release(self, handle: int) -> None:
        try:
            os.close(handle)
        except OSError as exc:
            raise TransportError(f"closing inhibit fd {handle} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _bus_for(self, destination: str | None = None, path: str | None = None) -> MessageBus:
        wants_system = destination == names.LOGIND_NAME or path == names.LOGIND_PATH
        bus = self._system if wants_system else self._session
        if bus is None:
            which = "system" if wants_system else "session"
            raise TransportError(f"not connected to the {which} bus")
        return bus

    @staticmethod
    async def _call(
        bus: MessageBus,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> Message:
        message = Message(
            destination=destination,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=list(body),
        )
        try:
            reply = await bus.call(message)
        except Exception as exc:
            raise TransportError(f"{interface}.{member} on {destination} failed: {exc}") from exc
        if reply is None:
            raise TransportError(f"{interface}.{member} on {destination} returned no reply")
        if reply.message_type is MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            raise TransportError(f"{reply.error_name}: {detail}")
        return reply

"""In-memory bus transport for development and testing.

Implements :class:`~panelbus.core.interfaces.transport.BusTransport` with
scripted replies, recorded calls and ``simulate_*()`` helpers that inject
signals exactly as the D-Bus backend would deliver them.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from panelbus.core import bus_names as names
from panelbus.core.interfaces.transport import BusSignal, BusTransport, TransportError

_log = logging.getLogger(__name__)


@dataclass
class RecordedCall:
    """One outbound method call seen by the mock."""

    destination: str
    path: str
    interface: str
    member: str
    signature: str = ""
    body: list[Any] = field(default_factory=list)


@dataclass
class MockPlayer:
    """A fake MPRIS player published under *name* by *owner*."""

    name: str
    owner: str
    root: dict[str, Any] = field(default_factory=dict)
    player: dict[str, Any] = field(default_factory=dict)


class MockTransport(BusTransport):
    """Fake bus: no sockets, everything in memory.

    Attributes:
        calls: Every :meth:`call` made, in order.
        inhibit_requests: ``(what, who, why, mode)`` per :meth:`inhibit`.
        released: Handles passed to :meth:`release`, in order.
        matches: Match rules added via :meth:`add_match`.
        failures: ``member → exception`` raised by the next matching call
            (consumed once).  Use ``"Inhibit"`` / ``"Release"`` for locks.
    """

    def __init__(self) -> None:
        self.calls: list[RecordedCall] = []
        self.inhibit_requests: list[tuple[str, str, str, str]] = []
        self.released: list[int] = []
        self.matches: list[dict[str, str | None]] = []
        self.failures: dict[str, Exception] = {}
        self.block_inhibited = ""
        self.connected = False
        self._players: dict[str, MockPlayer] = {}
        self._queues: list[asyncio.Queue[BusSignal]] = []
        self._handles = itertools.count(100)
        self._open_handles: set[int] = set()

    # ------------------------------------------------------------------
    # BusTransport
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

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
        self.matches.append(
            {"interface": interface, "member": member, "path": path, "arg0namespace": arg0namespace}
        )

    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        self.calls.append(RecordedCall(destination, path, interface, member, signature, list(body)))
        await asyncio.sleep(0)
        self._raise_scripted(member)

        if member == names.FDO_METHOD_LIST_NAMES:
            return [[names.FDO_NAME] + [p.name for p in self._players.values()]]
        if member == names.FDO_METHOD_GET_NAME_OWNER:
            player = self._players.get(body[0])
            if player is None:
                raise TransportError(f"name {body[0]} has no owner")
            return [player.owner]
        if member == names.PROPERTIES_METHOD_GET_ALL:
            player = self._find_player(destination)
            if player is None:
                raise TransportError(f"no such player: {destination}")
            props = player.root if body[0] == names.MEDIA_PLAYER_NAME else player.player
            return [dict(props)]
        if member == names.PROPERTIES_METHOD_GET and destination == names.LOGIND_NAME:
            return [self.block_inhibited]
        return []

    async def inhibit(self, what: str, who: str, why: str, mode: str) -> int:
        self.inhibit_requests.append((what, who, why, mode))
        await asyncio.sleep(0)
        self._raise_scripted("Inhibit")
        handle = next(self._handles)
        self._open_handles.add(handle)
        return handle

    def release(self, handle: int) -> None:
        self._raise_scripted("Release")
        self.released.append(handle)
        self._open_handles.discard(handle)

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    @property
    def open_handles(self) -> set[int]:
        """Handles handed out and not yet released."""
        return set(self._open_handles)

    @property
    def attached(self) -> int:
        """Number of signal queues currently attached."""
        return len(self._queues)

    def calls_to(self, member: str, destination: str | None = None) -> list[RecordedCall]:
        return [
            c
            for c in self.calls
            if c.member == member and (destination is None or c.destination == destination)
        ]

    # ------------------------------------------------------------------
    # Simulation helpers
    # ------------------------------------------------------------------

    def add_player(
        self,
        name: str,
        owner: str,
        player: dict[str, Any] | None = None,
        root: dict[str, Any] | None = None,
    ) -> MockPlayer:
        """Publish a player without signalling (visible to discovery)."""
        mock = MockPlayer(name=name, owner=owner, root=dict(root or {}), player=dict(player or {}))
        self._players[name] = mock
        return mock

    def simulate_player_appeared(
        self,
        name: str,
        owner: str,
        player: dict[str, Any] | None = None,
        root: dict[str, Any] | None = None,
    ) -> None:
        """Publish a player and emit its ``NameOwnerChanged(name, "", owner)``."""
        self.add_player(name, owner, player=player, root=root)
        self.emit(names.FDO_SIGNAL_NAME_OWNER_CHANGED, names.FDO_NAME, names.FDO_PATH, name, "", owner)

    def simulate_player_vanished(self, name: str) -> None:
        """Drop a player and emit ``NameOwnerChanged(name, owner, "")``."""
        mock = self._players.pop(name)
        self.emit(names.FDO_SIGNAL_NAME_OWNER_CHANGED, names.FDO_NAME, names.FDO_PATH, name, mock.owner, "")

    def simulate_properties_changed(
        self,
        owner: str,
        changed: dict[str, Any],
        interface: str = names.PLAYER_NAME,
    ) -> None:
        """Emit ``PropertiesChanged`` from *owner* at the MPRIS path."""
        player = self._find_player(owner)
        if player is not None:
            target = player.root if interface == names.MEDIA_PLAYER_NAME else player.player
            target.update(changed)
        self.emit(names.PROPERTIES_SIGNAL_CHANGED, owner, names.MEDIA_PLAYER_PATH, interface, dict(changed), [])

    def simulate_block_inhibited(self, raw: str, sender: str = ":1.1") -> None:
        """Emit logind's ``BlockInhibited`` change."""
        self.block_inhibited = raw
        self.emit(
            names.PROPERTIES_SIGNAL_CHANGED,
            sender,
            names.LOGIND_PATH,
            names.LOGIND_MANAGER_NAME,
            {names.LOGIND_PROPERTY_BLOCK_INHIBITED: raw},
            [],
        )

    def emit(self, name: str, sender: str, path: str, *body: Any) -> None:
        """Deliver an arbitrary signal to every attached queue."""
        signal = BusSignal(name=name, sender=sender, path=path, body=tuple(body))
        if not self._queues:
            _log.debug("No queue attached, dropping %s", name)
        for queue in self._queues:
            queue.put_nowait(signal)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _find_player(self, destination: str) -> MockPlayer | None:
        player = self._players.get(destination)
        if player is not None:
            return player
        for candidate in self._players.values():
            if candidate.owner == destination:
                return candidate
        return None

    def _raise_scripted(self, member: str) -> None:
        exc = self.failures.pop(member, None)
        if exc is not None:
            raise exc

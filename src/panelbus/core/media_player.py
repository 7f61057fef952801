"""MediaPlayerTracker — MPRIS player lifecycle, arbitration and conflicts.

Handlers run on the watcher task and return the events to emit; they never
wait on outbound calls other than the snapshot read a new player requires.
Pausing conflicting players is dispatched as fire-and-forget tasks, with
each paused entry's echo guard armed to absorb the resulting confirmation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Sequence

from pydantic import ValidationError

from panelbus.core import bus_names as names
from panelbus.core import events
from panelbus.core.errors import CommandError, MalformedSignalError, SnapshotError
from panelbus.core.interfaces.transport import BusSignal, BusTransport, TransportError
from panelbus.core.models.event import Event, MediaPlayerChange
from panelbus.core.models.state import PlayerProperties
from panelbus.core.registry import PlayerRegistry
from panelbus.logging.logger import PlayerLogger

_log = logging.getLogger(__name__)

_PLAYER_NAME_PREFIX = names.MEDIA_PLAYER_NAME + "."


class MediaPlayerTracker:
    """Tracks every live MPRIS player and exposes the arbitration winner.

    Args:
        transport: Bus transport used for snapshots and commands.
        lock: Coarse lock shared with the rest of the aggregator; held for
            every registry mutation.
        registry: Registry to populate (a fresh one by default).
    """

    def __init__(
        self,
        transport: BusTransport,
        lock: asyncio.Lock,
        registry: PlayerRegistry | None = None,
    ) -> None:
        self._transport = transport
        self._lock = lock
        self._registry = registry if registry is not None else PlayerRegistry()
        self._tasks: set[asyncio.Task[None]] = set()
        self._logs: dict[str, PlayerLogger] = {}

    @property
    def registry(self) -> PlayerRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def winner_owner(self) -> str | None:
        """Owner of the current arbitration winner, if any."""
        winner = self._registry.winner()
        return winner[0] if winner else None

    def current_event(self) -> Event:
        """Media event for the current winner (default payload when empty)."""
        winner = self._registry.winner()
        payload = MediaPlayerChange.from_player(*winner) if winner else MediaPlayerChange()
        return Event(kind=events.MEDIA_PLAYER_CHANGED, payload=payload)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def discover(self) -> list[Event]:
        """Seed the registry from players already on the bus."""
        try:
            reply = await self._transport.call(
                names.FDO_NAME, names.FDO_PATH, names.FDO_NAME, names.FDO_METHOD_LIST_NAMES
            )
        except TransportError as exc:
            _log.warning("Listing bus names failed, starting with no players: %s", exc)
            return [self.current_event()]

        bus_names = reply[0] if reply and isinstance(reply[0], list) else []
        for name in sorted(n for n in bus_names if isinstance(n, str)):
            if not name.startswith(_PLAYER_NAME_PREFIX):
                continue
            try:
                owner_reply = await self._transport.call(
                    names.FDO_NAME,
                    names.FDO_PATH,
                    names.FDO_NAME,
                    names.FDO_METHOD_GET_NAME_OWNER,
                    "s",
                    [name],
                )
                await self._add_player(name, str(owner_reply[0]))
            except (TransportError, SnapshotError, MalformedSignalError, IndexError) as exc:
                _log.warning("Skipping player %s during discovery: %s", name, exc)

        _log.info("Discovered %d media player(s)", len(self._registry))
        return [self.current_event()]

    # ------------------------------------------------------------------
    # Signal handlers
    # ------------------------------------------------------------------

    async def handle_name_owner_changed(self, signal: BusSignal) -> list[Event]:
        """``org.freedesktop.DBus.NameOwnerChanged`` → player appeared / vanished."""
        name, old_owner, new_owner = _owner_change_body(signal)
        if not name.startswith(_PLAYER_NAME_PREFIX):
            return []

        if not new_owner:
            async with self._lock:
                if self._registry.remove(old_owner) is not None:
                    self._forget_log(old_owner).info("Player vanished")
                return [self.current_event()]

        if not old_owner:
            return [await self._add_player(name, new_owner)]

        _log.debug("Ignoring ownership handover of %s", name)
        return []

    async def handle_properties_changed(self, signal: BusSignal) -> list[Event]:
        """``PropertiesChanged`` at the MPRIS object path."""
        interface, changed = _properties_body(signal)
        if not interface.startswith(names.MEDIA_PLAYER_NAME):
            return []
        props = parse_properties(changed)
        if not props.model_fields_set:
            return []

        owner = signal.sender
        log = self._player_log(owner)
        async with self._lock:
            previous = self._winner_state()
            player = self._registry.get(owner)
            if player is None:
                log.info("Properties from unknown player, tracking it")
                self._registry.seed(owner)
                suppressed = False
            else:
                suppressed = player.echo_guard.consume()

            self._registry.apply(owner, props)
            if suppressed:
                log.debug("Absorbed echo of our own pause")
                return []

            self._resolve_conflicts(previous)
            return [self.current_event()]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def command(self, method: str, signature: str = "", body: Sequence[Any] = ()) -> bool:
        """Invoke *method* on the current winner.

        Returns:
            ``False`` if there is no player to address, ``True`` otherwise.

        Raises:
            CommandError: If the remote call fails.
        """
        owner = self.winner_owner()
        if owner is None:
            _log.debug("No active player for %s", method)
            return False
        try:
            await self._call_player(owner, method, signature, body)
        except TransportError as exc:
            raise CommandError(f"{method} on {owner} failed: {exc}") from exc
        return True

    async def close(self) -> None:
        """Cancel pause calls that are still in flight."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._logs.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _add_player(self, name: str, owner: str) -> Event:
        props = await self._fetch_snapshot(name)
        log = self._player_log(owner, name)

        async with self._lock:
            previous = self._winner_state()
            self._registry.seed(owner)
            self._registry.apply(owner, props)
            log.info("Player appeared")
            self._resolve_conflicts(previous)
            return self.current_event()

    async def _fetch_snapshot(self, name: str) -> PlayerProperties:
        snapshot: dict[str, Any] = {}
        for interface in (names.MEDIA_PLAYER_NAME, names.PLAYER_NAME):
            try:
                reply = await self._transport.call(
                    name,
                    names.MEDIA_PLAYER_PATH,
                    names.PROPERTIES_NAME,
                    names.PROPERTIES_METHOD_GET_ALL,
                    "s",
                    [interface],
                )
            except TransportError as exc:
                raise SnapshotError(f"failed fetching initial state of {name}: {exc}") from exc
            if not reply or not isinstance(reply[0], dict):
                raise SnapshotError(f"unexpected GetAll reply from {name}: {reply!r}")
            snapshot.update(reply[0])
        return parse_properties(snapshot)

    def _winner_state(self) -> tuple[str, bool] | None:
        winner = self._registry.winner()
        return (winner[0], winner[1].is_playing) if winner else None

    def _resolve_conflicts(self, previous: tuple[str, bool] | None) -> None:
        current = self._registry.winner()
        if previous is None or current is None:
            return
        prev_owner, prev_playing = previous
        owner, player = current
        if owner == prev_owner or not (player.is_playing and prev_playing):
            return

        for other in self._registry.playing_owners():
            if other == owner:
                continue
            self._player_log(other).info("Pausing, %s took over playback", owner)
            self._registry.mark_paused(other)
            self._dispatch(self._pause(other), name=f"pause-{other}")

    def _player_log(self, owner: str, bus_name: str | None = None) -> PlayerLogger:
        """Logger for *owner*, built once per entry (rebuilt when its bus name becomes known)."""
        log = self._logs.get(owner)
        if log is None or (bus_name is not None and log.bus_name != bus_name):
            log = self._logs[owner] = PlayerLogger(_log, owner, bus_name)
        return log

    def _forget_log(self, owner: str) -> PlayerLogger:
        return self._logs.pop(owner, None) or PlayerLogger(_log, owner)

    def _dispatch(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _pause(self, owner: str) -> None:
        try:
            await self._call_player(owner, names.PLAYER_METHOD_PAUSE)
        except TransportError as exc:
            log = self._logs.get(owner) or PlayerLogger(_log, owner)
            log.warning("Best-effort pause failed: %s", exc)

    async def _call_player(
        self, owner: str, method: str, signature: str = "", body: Sequence[Any] = ()
    ) -> None:
        await self._transport.call(
            owner, names.MEDIA_PLAYER_PATH, names.PLAYER_NAME, method, signature, body
        )


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_properties(raw: Any) -> PlayerProperties:
    """Validate an MPRIS property dictionary.

    Raises:
        MalformedSignalError: If *raw* is not a dict of the expected types.
    """
    if not isinstance(raw, dict):
        raise MalformedSignalError(f"expected property dict, got {type(raw).__name__}")
    try:
        return PlayerProperties.model_validate(raw)
    except ValidationError as exc:
        raise MalformedSignalError(f"invalid player properties: {exc}") from exc


def _owner_change_body(signal: BusSignal) -> tuple[str, str, str]:
    body = signal.body
    if len(body) != 3 or not all(isinstance(v, str) for v in body):
        raise MalformedSignalError(f"unexpected NameOwnerChanged body: {body!r}")
    return body[0], body[1], body[2]


def _properties_body(signal: BusSignal) -> tuple[str, Any]:
    body = signal.body
    if len(body) < 2 or not isinstance(body[0], str):
        raise MalformedSignalError(f"unexpected PropertiesChanged body: {body!r}")
    return body[0], body[1]

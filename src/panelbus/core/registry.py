"""PlayerRegistry — per-owner player state and now-playing arbitration.

Arbitration picks the most recently updated *Playing* entry; when nothing
is playing it falls back to the most recently updated entry of any status,
so paused metadata can still be displayed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

from panelbus.core.models.state import PlaybackStatus, Player, PlayerProperties


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlayerRegistry:
    """Mapping of bus owner → :class:`Player`.

    Not thread-safe on its own; the aggregator serialises writers.

    Args:
        clock: Source of wall-clock time.  Stamps handed out are strictly
            increasing even if the clock stalls or steps back.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._players: dict[str, Player] = {}
        self._clock = clock
        self._last_stamp: datetime | None = None

    # ------------------------------------------------------------------
    # Mapping access
    # ------------------------------------------------------------------

    def __contains__(self, owner: object) -> bool:
        return owner in self._players

    def __len__(self) -> int:
        return len(self._players)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._players))

    def get(self, owner: str) -> Player | None:
        return self._players.get(owner)

    def playing_owners(self) -> list[str]:
        return [owner for owner, p in self._players.items() if p.is_playing]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def seed(self, owner: str) -> Player:
        """Insert a fresh entry for *owner* (status defaults to Playing)."""
        player = Player(playback=PlaybackStatus.PLAYING, updated_at=self._stamp())
        self._players[owner] = player
        return player

    def remove(self, owner: str) -> Player | None:
        return self._players.pop(owner, None)

    def apply(self, owner: str, props: PlayerProperties) -> bool:
        """Apply the keys present in *props* to *owner*'s entry.

        Keys absent from the payload are left untouched; ``Metadata``, when
        present, replaces the previous metadata wholesale.

        Returns:
            ``True`` if at least one tracked field was applied (and
            ``updated_at`` bumped), ``False`` if the payload carried none.

        Raises:
            KeyError: If *owner* has no entry.
        """
        player = self._players[owner]
        fields = props.model_fields_set
        if not fields:
            return False

        if "playback_status" in fields and props.playback_status is not None:
            player.playback = PlaybackStatus.parse(props.playback_status)
        if "can_go_next" in fields and props.can_go_next is not None:
            player.can_go_next = props.can_go_next
        if "can_go_previous" in fields and props.can_go_previous is not None:
            player.can_go_previous = props.can_go_previous
        if "identity" in fields:
            player.identity = props.identity
        if "desktop_entry" in fields:
            player.desktop_entry = props.desktop_entry
        if "metadata" in fields and props.metadata is not None:
            player.metadata = props.metadata.model_copy()

        player.updated_at = self._stamp()
        return True

    def mark_paused(self, owner: str) -> None:
        """Optimistically mark *owner* paused and expect one echo."""
        player = self._players[owner]
        player.playback = PlaybackStatus.PAUSED
        player.echo_guard.arm()

    # ------------------------------------------------------------------
    # Arbitration
    # ------------------------------------------------------------------

    def winner(self) -> tuple[str, Player] | None:
        """Return ``(owner, player)`` of the current winner, or ``None``."""
        playing: tuple[str, Player] | None = None
        recent: tuple[str, Player] | None = None
        for owner, player in self._players.items():
            if player.is_playing and (playing is None or _newer(player, playing[1])):
                playing = (owner, player)
            if recent is None or _newer(player, recent[1]):
                recent = (owner, player)
        return playing or recent

    def _stamp(self) -> datetime:
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now


def _newer(a: Player, b: Player) -> bool:
    if a.updated_at is None:
        return False
    if b.updated_at is None:
        return True
    return a.updated_at > b.updated_at

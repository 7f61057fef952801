"""Controls — imperative operations invoked by the display layer.

Media commands address the current arbitration winner; with no player
around they succeed without doing anything.  Lock commands delegate to
:class:`~panelbus.core.idle_inhibitor.IdleInhibitor`.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Any

from panelbus.core import bus_names as names
from panelbus.core.errors import InhibitError
from panelbus.core.idle_inhibitor import IdleInhibitor
from panelbus.core.media_player import MediaPlayerTracker
from panelbus.core.models.state import InhibitTarget


_COMMANDS = frozenset(
    {
        "play_pause",
        "play",
        "pause",
        "next",
        "previous",
        "stop",
        "seek",
        "set_position",
        "inhibit",
        "uninhibit",
    }
)


class Controls:
    """Command façade over the media tracker and the lock manager.

    Either collaborator may be ``None`` when its module is disabled.

    Raises (from the individual commands):
        CommandError: A media command reached a player and failed.
        InhibitError: A lock could not be taken or released.
    """

    def __init__(
        self,
        media: MediaPlayerTracker | None,
        inhibitor: IdleInhibitor | None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._media = media
        self._inhibitor = inhibitor
        self._loop = loop

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def play_pause(self) -> None:
        await self._media_call(names.PLAYER_METHOD_PLAY_PAUSE)

    async def play(self) -> None:
        await self._media_call(names.PLAYER_METHOD_PLAY)

    async def pause(self) -> None:
        await self._media_call(names.PLAYER_METHOD_PAUSE)

    async def next(self) -> None:
        await self._media_call(names.PLAYER_METHOD_NEXT)

    async def previous(self) -> None:
        await self._media_call(names.PLAYER_METHOD_PREVIOUS)

    async def stop(self) -> None:
        await self._media_call(names.PLAYER_METHOD_STOP)

    async def seek(self, offset_us: int) -> None:
        """Seek relative to the current position by *offset_us* microseconds."""
        await self._media_call(names.PLAYER_METHOD_SEEK, "x", [int(offset_us)])

    async def set_position(self, track_id: str, position_us: int) -> None:
        """Jump to the absolute *position_us* within *track_id*."""
        await self._media_call(
            names.PLAYER_METHOD_SET_POSITION, "ox", [track_id, int(position_us)]
        )

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    async def inhibit(self, target: InhibitTarget | str) -> None:
        if self._inhibitor is None:
            raise InhibitError("idle inhibitor is disabled")
        await self._inhibitor.acquire(target)

    async def uninhibit(self, target: InhibitTarget | str) -> None:
        if self._inhibitor is None:
            raise InhibitError("idle inhibitor is disabled")
        await self._inhibitor.release(target)

    # ------------------------------------------------------------------
    # Cross-thread entry
    # ------------------------------------------------------------------

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the loop :meth:`submit` schedules onto."""
        self._loop = loop

    def submit(self, command: str, *args: Any) -> concurrent.futures.Future[None]:
        """Schedule *command* on the aggregator loop from another thread.

        Example::

            controls.submit("seek", 5_000_000).result()
        """
        if command not in _COMMANDS:
            raise ValueError(f"unknown command: {command!r}")
        assert self._loop is not None, "Controls has no event loop (aggregator not started)"
        return asyncio.run_coroutine_threadsafe(getattr(self, command)(*args), self._loop)

    async def _media_call(self, method: str, signature: str = "", body: list[Any] | None = None) -> None:
        if self._media is None:
            return
        await self._media.command(method, signature, body or [])

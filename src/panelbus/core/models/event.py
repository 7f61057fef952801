"""Pydantic models for events delivered to the display layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from pydantic import BaseModel, Field

from panelbus.core.models.state import InhibitTarget, PlaybackStatus, Player


class MediaPlayerChange(BaseModel):
    """Now-playing view derived from the arbitration winner.

    An instance with ``owner=None`` and ``state=UNSPECIFIED`` is the default
    payload emitted when no player is known.
    """

    owner: str | None = None
    state: PlaybackStatus = PlaybackStatus.UNSPECIFIED
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    art_url: str | None = None
    url: str | None = None
    track_id: str | None = None
    length_us: int | None = None
    identity: str | None = None
    desktop_entry: str | None = None
    can_go_next: bool = False
    can_go_previous: bool = False
    updated_at: datetime | None = None

    @classmethod
    def from_player(cls, owner: str, player: Player) -> MediaPlayerChange:
        md = player.metadata
        return cls(
            owner=owner,
            state=player.playback,
            title=md.title or None,
            artist=md.artist or None,
            album=md.album or None,
            art_url=md.art_url or None,
            url=md.url or None,
            track_id=md.track_id or None,
            length_us=md.length_us or None,
            identity=player.identity or None,
            desktop_entry=player.desktop_entry or None,
            can_go_next=player.can_go_next,
            can_go_previous=player.can_go_previous,
            updated_at=player.updated_at,
        )


class IdleInhibitorChange(BaseModel):
    """Reported inhibition state of one target."""

    target: InhibitTarget
    active: bool = Field(description="Target is blocked according to the session manager")
    held: bool = Field(default=False, description="This process holds a handle for the target")


class Event(BaseModel):
    """Structured event flowing from the aggregator to the display layer."""

    kind: str = Field(description="Dot-separated event kind, e.g. 'media_player.changed'")
    payload: Union[MediaPlayerChange, IdleInhibitorChange]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

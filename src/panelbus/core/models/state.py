"""Runtime state models and enumerations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator


class PlaybackStatus(str, Enum):
    """Playback state of a media player as shown by the panel."""

    PLAYING = "Playing"
    PAUSED = "Paused"
    UNSPECIFIED = "Unspecified"

    @classmethod
    def parse(cls, raw: str) -> PlaybackStatus:
        """Map an MPRIS ``PlaybackStatus`` string; ``Stopped`` and unknown
        values become :attr:`UNSPECIFIED`.
        """
        if raw == cls.PLAYING.value:
            return cls.PLAYING
        if raw == cls.PAUSED.value:
            return cls.PAUSED
        return cls.UNSPECIFIED


class InhibitTarget(str, Enum):
    """Session transitions that can be blocked via logind."""

    IDLE = "idle"
    SLEEP = "sleep"
    SHUTDOWN = "shutdown"


class SuppressionState(str, Enum):
    """States of the one-shot :class:`EchoGuard`."""

    NORMAL = "normal"
    PENDING = "pending"
    CONSUMED = "consumed"


class EchoGuard(BaseModel):
    """One-shot guard that absorbs the confirmation of a self-issued command.

    ``NORMAL`` → :meth:`arm` → ``PENDING`` → :meth:`consume` → ``CONSUMED``.
    Consuming in any state other than ``PENDING`` returns ``False`` and
    settles the guard back to ``NORMAL``.
    """

    state: SuppressionState = SuppressionState.NORMAL

    @property
    def is_pending(self) -> bool:
        return self.state is SuppressionState.PENDING

    def arm(self) -> None:
        """Expect exactly one echo."""
        self.state = SuppressionState.PENDING

    def consume(self) -> bool:
        """Return ``True`` if the current update is the expected echo."""
        if self.state is SuppressionState.PENDING:
            self.state = SuppressionState.CONSUMED
            return True
        self.state = SuppressionState.NORMAL
        return False


class Metadata(BaseModel):
    """Track metadata, parsed from an MPRIS ``Metadata`` dictionary.

    The dictionary always arrives complete, so a parsed instance replaces
    the previous one wholesale.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: StrictStr | None = Field(default=None, alias="xesam:title")
    artist: StrictStr | None = Field(default=None, alias="xesam:artist")
    album: StrictStr | None = Field(default=None, alias="xesam:album")
    url: StrictStr | None = Field(default=None, alias="xesam:url")
    art_url: StrictStr | None = Field(default=None, alias="mpris:artUrl")
    track_id: StrictStr | None = Field(default=None, alias="mpris:trackid")
    length_us: StrictInt | None = Field(default=None, alias="mpris:length")

    @field_validator("artist", mode="before")
    @classmethod
    def _first_artist(cls, value: Any) -> Any:
        # xesam:artist is a list of strings; the panel shows the first one.
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value


class PlayerProperties(BaseModel):
    """The tracked subset of ``org.mpris.MediaPlayer2[.Player]`` properties.

    Only keys actually present in a payload end up in ``model_fields_set``,
    which is what makes partial updates possible.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    playback_status: StrictStr | None = Field(default=None, alias="PlaybackStatus")
    can_go_next: StrictBool | None = Field(default=None, alias="CanGoNext")
    can_go_previous: StrictBool | None = Field(default=None, alias="CanGoPrevious")
    identity: StrictStr | None = Field(default=None, alias="Identity")
    desktop_entry: StrictStr | None = Field(default=None, alias="DesktopEntry")
    metadata: Metadata | None = Field(default=None, alias="Metadata")


class Player(BaseModel):
    """State of one media player, keyed in the registry by its bus owner."""

    metadata: Metadata = Field(default_factory=Metadata)
    identity: str | None = None
    desktop_entry: str | None = None
    playback: PlaybackStatus = PlaybackStatus.PLAYING
    can_go_next: bool = False
    can_go_previous: bool = False
    updated_at: datetime | None = None
    echo_guard: EchoGuard = Field(default_factory=EchoGuard)

    @property
    def is_playing(self) -> bool:
        return self.playback is PlaybackStatus.PLAYING

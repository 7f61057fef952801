"""Pydantic models for configuration, events, and player state."""
from panelbus.core.models.config import (
    IdleInhibitorConfig,
    MediaPlayerConfig,
    PanelConfig,
    SystemConfig,
)
from panelbus.core.models.event import Event, IdleInhibitorChange, MediaPlayerChange
from panelbus.core.models.state import (
    EchoGuard,
    InhibitTarget,
    Metadata,
    PlaybackStatus,
    Player,
    PlayerProperties,
    SuppressionState,
)

__all__ = [
    "IdleInhibitorConfig",
    "MediaPlayerConfig",
    "PanelConfig",
    "SystemConfig",
    "Event",
    "IdleInhibitorChange",
    "MediaPlayerChange",
    "EchoGuard",
    "InhibitTarget",
    "Metadata",
    "PlaybackStatus",
    "Player",
    "PlayerProperties",
    "SuppressionState",
]

"""Configuration Pydantic models: PanelConfig and its sections."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class MediaPlayerConfig(BaseModel):
    """MPRIS media player tracking."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Track media players")


class IdleInhibitorConfig(BaseModel):
    """logind inhibition locks.

    ``requester`` / ``reason`` / ``mode`` are passed verbatim to
    ``org.freedesktop.login1.Manager.Inhibit``.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Manage inhibition locks")
    requester: str = Field(default="panelbus", description="'who' argument of Inhibit")
    reason: str = Field(default="user request", description="'why' argument of Inhibit")
    mode: Literal["block", "delay"] = Field(default="block", description="Inhibit mode")


class SystemConfig(BaseModel):
    """Process-level runtime settings."""

    model_config = ConfigDict(extra="forbid")

    log_level: str = Field(default="INFO", description="Root log level")
    log_dir: str | None = Field(default="logs", description="Directory for rotating log files")
    event_queue_size: int = Field(
        default=64, ge=1, description="Events buffered before the writer waits for the reader"
    )
    transport: Literal["dbus", "mock"] = Field(default="dbus", description="Bus transport backend")


class PanelConfig(BaseModel):
    """Top-level configuration loaded from ``panelbus_config.json``."""

    model_config = ConfigDict(extra="forbid")

    media_player: MediaPlayerConfig = Field(default_factory=MediaPlayerConfig)
    idle_inhibitor: IdleInhibitorConfig = Field(default_factory=IdleInhibitorConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

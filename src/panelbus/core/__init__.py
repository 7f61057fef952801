"""Core services: signal watcher, player registry, locks, event bridge."""

from panelbus.core.aggregator import SessionAggregator
from panelbus.core.controls import Controls
from panelbus.core.event_bridge import EventBridge
from panelbus.core.idle_inhibitor import IdleInhibitor
from panelbus.core.media_player import MediaPlayerTracker
from panelbus.core.registry import PlayerRegistry
from panelbus.core.watcher import SignalKind, SignalWatcher

__all__ = [
    "Controls",
    "EventBridge",
    "IdleInhibitor",
    "MediaPlayerTracker",
    "PlayerRegistry",
    "SessionAggregator",
    "SignalKind",
    "SignalWatcher",
]

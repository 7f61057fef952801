"""SessionAggregator — startup & shutdown orchestration.

All heavy logic lives in dedicated modules; this class owns the state of
one aggregator instance, sequences init / teardown and wires components
together.
"""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType

from panelbus.core import bus_names as names
from panelbus.core.controls import Controls
from panelbus.core.event_bridge import EventBridge
from panelbus.core.idle_inhibitor import IdleInhibitor
from panelbus.core.interfaces.transport import BusTransport, TransportError
from panelbus.core.media_player import MediaPlayerTracker
from panelbus.core.models.config import PanelConfig
from panelbus.core.watcher import SignalKind, SignalWatcher

_log = logging.getLogger(__name__)


class SessionAggregator:
    """Aggregates MPRIS players and logind inhibition locks into one event
    stream plus a command façade.

    Args:
        config: Validated configuration.
        transport: Bus transport (not yet connected).
        bridge: Event bridge to publish on; created from
            ``config.system.event_queue_size`` when omitted.
    """

    def __init__(
        self,
        config: PanelConfig,
        transport: BusTransport,
        bridge: EventBridge | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._bridge = bridge or EventBridge(queue_size=config.system.event_queue_size)
        self._lock = asyncio.Lock()

        self._media: MediaPlayerTracker | None = None
        if config.media_player.enabled:
            self._media = MediaPlayerTracker(transport, self._lock)

        self._inhibitor: IdleInhibitor | None = None
        if config.idle_inhibitor.enabled:
            self._inhibitor = IdleInhibitor(transport, self._lock, config.idle_inhibitor)

        self._controls = Controls(self._media, self._inhibitor)
        self._watcher: SignalWatcher | None = None
        self._started = False

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def bridge(self) -> EventBridge:
        """Event stream towards the display layer."""
        return self._bridge

    @property
    def controls(self) -> Controls:
        return self._controls

    @property
    def media(self) -> MediaPlayerTracker | None:
        return self._media

    @property
    def inhibitor(self) -> IdleInhibitor | None:
        return self._inhibitor

    @property
    def is_started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect → bridge → subscriptions → watcher (returns once it is live).

        If any step fails, whatever was already set up is torn down again
        before the exception propagates.
        """
        _log.info("SessionAggregator starting …")
        watcher = SignalWatcher(self._transport, self._bridge)
        try:
            await self._start(watcher)
        except BaseException:
            _log.error("SessionAggregator failed to start, tearing down")
            await self._abort_start(watcher)
            raise
        self._watcher = watcher
        self._started = True
        _log.info(
            "SessionAggregator started (media_player=%s, idle_inhibitor=%s)",
            self._media is not None,
            self._inhibitor is not None,
        )

    async def _start(self, watcher: SignalWatcher) -> None:
        # 1. Transport
        await self._transport.connect()
        self._controls.bind_loop(asyncio.get_running_loop())

        # 2. Event bridge
        await self._bridge.start()

        # 3. Watcher, buffering before any match rule is installed
        watcher.attach()

        if self._media is not None:
            watcher.register(SignalKind.OWNERSHIP, self._media.handle_name_owner_changed)
            watcher.register(SignalKind.MEDIA_PROPERTIES, self._media.handle_properties_changed)
            await self._transport.add_match(
                interface=names.FDO_NAME,
                member=names.FDO_MEMBER_NAME_OWNER_CHANGED,
                arg0namespace=names.MEDIA_PLAYER_NAME,
            )
            await self._transport.add_match(
                interface=names.PROPERTIES_NAME,
                member=names.PROPERTIES_MEMBER_CHANGED,
                path=names.MEDIA_PLAYER_PATH,
            )
            watcher.on_start(self._media.discover)

        if self._inhibitor is not None:
            watcher.register(SignalKind.SESSION_PROPERTIES, self._inhibitor.handle_properties_changed)
            try:
                await self._transport.add_match(
                    interface=names.PROPERTIES_NAME,
                    member=names.PROPERTIES_MEMBER_CHANGED,
                    path=names.LOGIND_PATH,
                )
            except TransportError as exc:
                _log.warning("Not watching %s: %s", names.LOGIND_PROPERTY_BLOCK_INHIBITED, exc)
            else:
                watcher.on_start(self._inhibitor.sync)

        # 4. Consume loop; startup barrier
        await watcher.start()

    async def _abort_start(self, watcher: SignalWatcher) -> None:
        try:
            try:
                await watcher.stop()
                if self._media is not None:
                    await self._media.close()
            finally:
                await self._bridge.stop()
        finally:
            if self._inhibitor is not None:
                await self._inhibitor.release_all()
            await self._transport.close()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop watching, drain events, release every held lock, disconnect.

        Locks are released last, after display handlers have seen every
        queued event, and even if an earlier step fails.  Once released,
        further :meth:`Controls.inhibit` calls are refused.
        """
        _log.info("SessionAggregator stopping")
        try:
            try:
                if self._watcher is not None:
                    await self._watcher.stop()
                    self._watcher = None
                if self._media is not None:
                    await self._media.close()
            finally:
                await self._bridge.stop()
        finally:
            try:
                if self._inhibitor is not None:
                    await self._inhibitor.release_all()
            finally:
                await self._transport.close()
                self._started = False
        _log.info("SessionAggregator stopped")

    async def __aenter__(self) -> SessionAggregator:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

"""IdleInhibitor — per-target logind inhibition locks.

A handle is held only after a successful :meth:`IdleInhibitor.acquire` and
until the matching :meth:`IdleInhibitor.release`; handles are never
inferred from the ``BlockInhibited`` broadcast, which only drives what is
reported to the display layer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from panelbus.core import bus_names as names
from panelbus.core import events
from panelbus.core.errors import InhibitError, MalformedSignalError
from panelbus.core.interfaces.transport import BusSignal, BusTransport, TransportError
from panelbus.core.models.config import IdleInhibitorConfig
from panelbus.core.models.event import Event, IdleInhibitorChange
from panelbus.core.models.state import InhibitTarget

_log = logging.getLogger(__name__)


def parse_block_inhibited(raw: str) -> set[InhibitTarget]:
    """Parse logind's colon-delimited ``BlockInhibited`` string.

    Unknown entries (``handle-power-key`` etc.) are ignored.
    """
    known = {t.value: t for t in InhibitTarget}
    return {known[part] for part in raw.split(":") if part in known}


class IdleInhibitor:
    """Lock table mapping each :class:`InhibitTarget` to a handle (0 = not held).

    Args:
        transport: Bus transport used to take and close locks.
        lock: Coarse lock shared with the rest of the aggregator.
        config: Requester / reason / mode passed to logind.
    """

    def __init__(
        self,
        transport: BusTransport,
        lock: asyncio.Lock,
        config: IdleInhibitorConfig | None = None,
    ) -> None:
        self._transport = transport
        self._lock = lock
        self._config = config or IdleInhibitorConfig()
        self._handles: dict[InhibitTarget, int] = {t: 0 for t in InhibitTarget}
        # Last state reported outward per target; None until the first broadcast.
        self._reported: dict[InhibitTarget, bool | None] = {t: None for t in InhibitTarget}
        self._closed = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_held(self, target: InhibitTarget) -> bool:
        return self._handles[target] != 0

    def handles(self) -> dict[InhibitTarget, int]:
        """Copy of the lock table."""
        return dict(self._handles)

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    async def acquire(self, target: InhibitTarget | str) -> None:
        """Take the lock for *target*; a no-op if already held.

        Raises:
            InhibitError: If *target* is unknown, logind refuses, or
                :meth:`release_all` has already run; nothing is stored.
        """
        target = _coerce_target(target)
        async with self._lock:
            if self._closed:
                raise InhibitError(f"inhibit {target.value} refused: shutting down")
            if self._handles[target]:
                _log.debug("Inhibit %s already held", target.value)
                return
            try:
                handle = await self._transport.inhibit(
                    target.value,
                    self._config.requester,
                    self._config.reason,
                    self._config.mode,
                )
            except TransportError as exc:
                raise InhibitError(f"inhibit {target.value} failed: {exc}") from exc
            self._handles[target] = handle
        _log.info("Inhibit %s acquired (handle=%d)", target.value, handle)

    async def release(self, target: InhibitTarget | str) -> None:
        """Close the lock for *target*; a no-op if this process holds none.

        Raises:
            InhibitError: If *target* is unknown or closing fails; the handle
                stays in the table in that case.
        """
        target = _coerce_target(target)
        async with self._lock:
            handle = self._handles[target]
            if not handle:
                return
            try:
                self._transport.release(handle)
            except TransportError as exc:
                raise InhibitError(f"uninhibit {target.value} failed: {exc}") from exc
            self._handles[target] = 0
        _log.info("Inhibit %s released", target.value)

    async def release_all(self) -> None:
        """Release every held handle and refuse further acquires.

        Failures are logged and skipped.
        """
        async with self._lock:
            self._closed = True
            for target, handle in self._handles.items():
                if not handle:
                    continue
                try:
                    self._transport.release(handle)
                except TransportError as exc:
                    _log.warning("Releasing %s on shutdown failed: %s", target.value, exc)
                self._handles[target] = 0

    # ------------------------------------------------------------------
    # Reconciliation with the session broadcast
    # ------------------------------------------------------------------

    async def handle_properties_changed(self, signal: BusSignal) -> list[Event]:
        """``PropertiesChanged`` at the logind path."""
        body = signal.body
        if len(body) < 2 or not isinstance(body[0], str) or not isinstance(body[1], dict):
            raise MalformedSignalError(f"unexpected PropertiesChanged body: {body!r}")
        interface, changed = body[0], body[1]
        if interface != names.LOGIND_MANAGER_NAME:
            return []
        raw = changed.get(names.LOGIND_PROPERTY_BLOCK_INHIBITED)
        if raw is None:
            return []
        return await self.reconcile(raw)

    async def sync(self) -> list[Event]:
        """Read ``BlockInhibited`` once and reconcile (startup)."""
        try:
            reply = await self._transport.call(
                names.LOGIND_NAME,
                names.LOGIND_PATH,
                names.PROPERTIES_NAME,
                names.PROPERTIES_METHOD_GET,
                "ss",
                [names.LOGIND_MANAGER_NAME, names.LOGIND_PROPERTY_BLOCK_INHIBITED],
            )
        except TransportError as exc:
            _log.warning("Reading %s failed: %s", names.LOGIND_PROPERTY_BLOCK_INHIBITED, exc)
            return []
        if not reply:
            return []
        return await self.reconcile(reply[0])

    async def reconcile(self, raw: Any) -> list[Event]:
        """Report each target whose broadcast state diverges from what the
        display was last told.  Never touches the lock table.
        """
        if not isinstance(raw, str):
            raise MalformedSignalError(f"BlockInhibited is not a string: {raw!r}")
        active = parse_block_inhibited(raw)

        out: list[Event] = []
        async with self._lock:
            for target in InhibitTarget:
                is_active = target in active
                if self._reported[target] == is_active:
                    continue
                self._reported[target] = is_active
                if is_active != self.is_held(target):
                    _log.debug(
                        "Inhibit %s active=%s but held=%s", target.value, is_active, self.is_held(target)
                    )
                out.append(self._event(target, is_active))
        return out

    def _event(self, target: InhibitTarget, active: bool) -> Event:
        kind = events.IDLE_INHIBITOR_INHIBIT if active else events.IDLE_INHIBITOR_UNINHIBIT
        return Event(
            kind=kind,
            payload=IdleInhibitorChange(target=target, active=active, held=self.is_held(target)),
        )


def _coerce_target(target: InhibitTarget | str) -> InhibitTarget:
    try:
        return InhibitTarget(target)
    except ValueError:
        raise InhibitError(f"invalid inhibit target: {target!r}") from None

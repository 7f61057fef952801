"""Transport factory — picks the bus backend named in the config."""

from __future__ import annotations

import logging

from panelbus.core.interfaces.transport import BusTransport
from panelbus.core.models.config import PanelConfig

_log = logging.getLogger(__name__)


def create_transport(config: PanelConfig) -> BusTransport:
    """Return the :class:`BusTransport` selected by ``config.system.transport``.

    * ``"dbus"`` → ``DbusTransport`` (session bus + system bus when the
      idle inhibitor is enabled).
    * ``"mock"`` → ``MockTransport`` (in-memory, for development).
    """
    if config.system.transport == "mock":
        from panelbus.transport.mock.mock_transport import MockTransport

        _log.info("Using MockTransport")
        return MockTransport()

    from panelbus.transport.dbus.dbus_transport import DbusTransport

    _log.info("Using DbusTransport (system bus=%s)", config.idle_inhibitor.enabled)
    return DbusTransport(use_system_bus=config.idle_inhibitor.enabled)

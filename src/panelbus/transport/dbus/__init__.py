"""D-Bus transport backend (dbus-fast)."""

from panelbus.transport.dbus.dbus_transport import DbusTransport

__all__ = ["DbusTransport"]

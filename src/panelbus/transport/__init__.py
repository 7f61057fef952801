"""Bus transports: factory + backends (dbus, mock)."""

from panelbus.transport.factory import create_transport

__all__ = ["create_transport"]

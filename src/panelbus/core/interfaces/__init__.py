"""Abstract interfaces the core depends on."""

from panelbus.core.interfaces.transport import BusSignal, BusTransport, TransportError

__all__ = ["BusSignal", "BusTransport", "TransportError"]

"""Mock transport backend for development and testing."""

from panelbus.transport.mock.mock_transport import MockPlayer, MockTransport, RecordedCall

__all__ = ["MockPlayer", "MockTransport", "RecordedCall"]

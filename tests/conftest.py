"""Shared pytest fixtures for panelbus tests."""

from __future__ import annotations

import asyncio

import pytest

from panelbus.core.event_bridge import EventBridge
from panelbus.core.models.config import PanelConfig, SystemConfig
from panelbus.core.models.event import Event
from panelbus.transport.mock.mock_transport import MockTransport


@pytest.fixture
async def bridge():
    """Provide a started EventBridge that is stopped after the test."""
    b = EventBridge(queue_size=100)
    await b.start()
    yield b
    await b.stop()


@pytest.fixture
def mock_transport() -> MockTransport:
    """Fresh in-memory transport."""
    return MockTransport()


@pytest.fixture
def lock() -> asyncio.Lock:
    return asyncio.Lock()


@pytest.fixture
def panel_config() -> PanelConfig:
    """Default config using the mock transport, no log files."""
    return PanelConfig(system=SystemConfig(transport="mock", log_dir=None))


@pytest.fixture
def received(bridge: EventBridge) -> list[Event]:
    """Every event delivered by ``bridge``, in order."""
    out: list[Event] = []
    bridge.subscribe("*", out.append)
    return out

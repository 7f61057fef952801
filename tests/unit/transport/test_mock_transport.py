"""Tests for MockTransport scripted replies and simulation helpers."""

from __future__ import annotations

import asyncio

import pytest

from panelbus.core import bus_names as names
from panelbus.core.interfaces.transport import BusSignal, TransportError
from panelbus.transport.mock.mock_transport import MockTransport


@pytest.fixture
def queue(mock_transport: MockTransport) -> asyncio.Queue:
    q: asyncio.Queue[BusSignal] = asyncio.Queue()
    mock_transport.attach(q)
    return q


class TestScriptedCalls:
    async def test_list_names(self, mock_transport):
        mock_transport.add_player("org.mpris.MediaPlayer2.vlc", ":1.10")
        reply = await mock_transport.call(
            names.FDO_NAME, names.FDO_PATH, names.FDO_NAME, names.FDO_METHOD_LIST_NAMES
        )
        assert "org.mpris.MediaPlayer2.vlc" in reply[0]

    async def test_get_all_by_interface(self, mock_transport):
        mock_transport.add_player(
            "org.mpris.MediaPlayer2.vlc", ":1.10", player={"CanGoNext": True}, root={"Identity": "VLC"}
        )
        root = await mock_transport.call(
            "org.mpris.MediaPlayer2.vlc",
            names.MEDIA_PLAYER_PATH,
            names.PROPERTIES_NAME,
            names.PROPERTIES_METHOD_GET_ALL,
            "s",
            [names.MEDIA_PLAYER_NAME],
        )
        player = await mock_transport.call(
            ":1.10",
            names.MEDIA_PLAYER_PATH,
            names.PROPERTIES_NAME,
            names.PROPERTIES_METHOD_GET_ALL,
            "s",
            [names.PLAYER_NAME],
        )
        assert root == [{"Identity": "VLC"}]
        assert player == [{"CanGoNext": True}]

    async def test_scripted_failure_is_consumed_once(self, mock_transport):
        mock_transport.failures["Next"] = TransportError("boom")
        with pytest.raises(TransportError):
            await mock_transport.call(":1.10", names.MEDIA_PLAYER_PATH, names.PLAYER_NAME, "Next")
        assert await mock_transport.call(":1.10", names.MEDIA_PLAYER_PATH, names.PLAYER_NAME, "Next") == []
        assert len(mock_transport.calls_to("Next", ":1.10")) == 2

    async def test_unknown_name_owner(self, mock_transport):
        with pytest.raises(TransportError):
            await mock_transport.call(
                names.FDO_NAME, names.FDO_PATH, names.FDO_NAME, names.FDO_METHOD_GET_NAME_OWNER, "s", ["x"]
            )


class TestLocks:
    async def test_handles_are_distinct_and_non_zero(self, mock_transport):
        a = await mock_transport.inhibit("idle", "t", "r", "block")
        b = await mock_transport.inhibit("sleep", "t", "r", "block")
        assert a and b and a != b
        assert mock_transport.open_handles == {a, b}
        mock_transport.release(a)
        assert mock_transport.open_handles == {b}


class TestSimulation:
    async def test_player_appeared_and_vanished(self, mock_transport, queue):
        mock_transport.simulate_player_appeared("org.mpris.MediaPlayer2.vlc", ":1.10")
        mock_transport.simulate_player_vanished("org.mpris.MediaPlayer2.vlc")
        appeared, vanished = queue.get_nowait(), queue.get_nowait()
        assert appeared.body == ("org.mpris.MediaPlayer2.vlc", "", ":1.10")
        assert vanished.body == ("org.mpris.MediaPlayer2.vlc", ":1.10", "")

    async def test_properties_changed_updates_snapshot(self, mock_transport, queue):
        mock_transport.add_player("org.mpris.MediaPlayer2.vlc", ":1.10")
        mock_transport.simulate_properties_changed(":1.10", {"PlaybackStatus": "Paused"})
        signal = queue.get_nowait()
        assert signal.sender == ":1.10"
        assert signal.path == names.MEDIA_PLAYER_PATH
        assert signal.body[1] == {"PlaybackStatus": "Paused"}
        player = await mock_transport.call(
            ":1.10", names.MEDIA_PLAYER_PATH, names.PROPERTIES_NAME,
            names.PROPERTIES_METHOD_GET_ALL, "s", [names.PLAYER_NAME],
        )
        assert player == [{"PlaybackStatus": "Paused"}]

    async def test_detach(self, mock_transport, queue):
        mock_transport.detach(queue)
        mock_transport.simulate_block_inhibited("idle")
        assert queue.empty()
        assert mock_transport.block_inhibited == "idle"

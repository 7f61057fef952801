"""Tests for MediaPlayerTracker: lifecycle, partial updates, conflicts, echo guard."""

from __future__ import annotations

import asyncio
import logging

import pytest

from panelbus.core import bus_names as names
from panelbus.core import events
from panelbus.core.errors import CommandError, MalformedSignalError, SnapshotError
from panelbus.core.interfaces.transport import BusSignal, TransportError
from panelbus.core.media_player import MediaPlayerTracker, parse_properties
from panelbus.core.models.state import PlaybackStatus
from panelbus.transport.mock.mock_transport import MockTransport
from tests.helpers.runtime import wait_for

VLC = "org.mpris.MediaPlayer2.vlc"
MPV = "org.mpris.MediaPlayer2.mpv"


def owner_changed(name: str, old: str, new: str) -> BusSignal:
    return BusSignal(
        name=names.FDO_SIGNAL_NAME_OWNER_CHANGED,
        sender=names.FDO_NAME,
        path=names.FDO_PATH,
        body=(name, old, new),
    )


def props_changed(owner: str, changed: dict, interface: str = names.PLAYER_NAME) -> BusSignal:
    return BusSignal(
        name=names.PROPERTIES_SIGNAL_CHANGED,
        sender=owner,
        path=names.MEDIA_PLAYER_PATH,
        body=(interface, changed, []),
    )


@pytest.fixture
async def tracker(mock_transport: MockTransport, lock: asyncio.Lock):
    t = MediaPlayerTracker(mock_transport, lock)
    yield t
    await t.close()


async def appear(
    tracker: MediaPlayerTracker, transport: MockTransport, name: str, owner: str, status: str = "Playing"
):
    transport.add_player(
        name,
        owner,
        player={"PlaybackStatus": status, "Metadata": {"xesam:title": name.rsplit(".", 1)[-1]}},
        root={"Identity": name.rsplit(".", 1)[-1]},
    )
    return await tracker.handle_name_owner_changed(owner_changed(name, "", owner))


class TestParseProperties:
    def test_not_a_dict(self):
        with pytest.raises(MalformedSignalError):
            parse_properties(["PlaybackStatus"])

    def test_wrong_value_type(self):
        with pytest.raises(MalformedSignalError):
            parse_properties({"PlaybackStatus": 1})


class TestDiscover:
    async def test_empty_bus_emits_default(self, tracker: MediaPlayerTracker):
        produced = await tracker.discover()
        assert len(produced) == 1
        assert produced[0].kind == events.MEDIA_PLAYER_CHANGED
        assert produced[0].payload.owner is None
        assert produced[0].payload.state is PlaybackStatus.UNSPECIFIED

    async def test_seeds_existing_players(self, tracker, mock_transport: MockTransport):
        mock_transport.add_player(VLC, ":1.10", player={"PlaybackStatus": "Paused"})
        mock_transport.add_player(MPV, ":1.11", player={"PlaybackStatus": "Playing"})
        mock_transport.add_player("org.kde.StatusNotifierWatcher", ":1.12")

        produced = await tracker.discover()

        assert set(tracker.registry) == {":1.10", ":1.11"}
        assert produced[-1].payload.owner == ":1.11"
        assert produced[-1].payload.state is PlaybackStatus.PLAYING

    async def test_fetches_both_interfaces(self, tracker, mock_transport: MockTransport):
        mock_transport.add_player(VLC, ":1.10", player={"CanGoNext": True}, root={"Identity": "VLC"})
        await tracker.discover()

        requested = [c.body[0] for c in mock_transport.calls_to(names.PROPERTIES_METHOD_GET_ALL)]
        assert requested == [names.MEDIA_PLAYER_NAME, names.PLAYER_NAME]
        player = tracker.registry.get(":1.10")
        assert player.identity == "VLC"
        assert player.can_go_next is True

    async def test_list_names_failure(self, tracker, mock_transport: MockTransport):
        mock_transport.failures[names.FDO_METHOD_LIST_NAMES] = TransportError("bus gone")
        produced = await tracker.discover()
        assert len(tracker.registry) == 0
        assert produced[0].payload.owner is None

    async def test_snapshot_failure_skips_player(self, tracker, mock_transport: MockTransport):
        mock_transport.add_player(MPV, ":1.11")
        mock_transport.add_player(VLC, ":1.10")
        mock_transport.failures[names.PROPERTIES_METHOD_GET_ALL] = TransportError("timeout")

        await tracker.discover()

        # Names are visited in sorted order: mpv fails, vlc succeeds.
        assert set(tracker.registry) == {":1.10"}


class TestOwnership:
    async def test_player_appeared(self, tracker, mock_transport):
        produced = await appear(tracker, mock_transport, VLC, ":1.10")
        assert len(produced) == 1
        assert produced[0].payload.owner == ":1.10"
        assert produced[0].payload.title == "vlc"
        assert produced[0].payload.identity == "vlc"

    async def test_player_vanished(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await tracker.handle_name_owner_changed(owner_changed(VLC, ":1.10", ""))
        assert ":1.10" not in tracker.registry
        assert produced[0].payload.owner is None

    async def test_log_lines_name_the_player(self, tracker, mock_transport, caplog):
        with caplog.at_level(logging.INFO, logger="panelbus.core.media_player"):
            await appear(tracker, mock_transport, VLC, ":1.10")
            await tracker.handle_name_owner_changed(owner_changed(VLC, ":1.10", ""))
        assert "[owner=:1.10 player=vlc] Player appeared" in caplog.text
        assert "[owner=:1.10 player=vlc] Player vanished" in caplog.text

    async def test_later_lines_keep_the_player_name(self, tracker, mock_transport, caplog):
        with caplog.at_level(logging.DEBUG, logger="panelbus.core.media_player"):
            await appear(tracker, mock_transport, VLC, ":1.10")
            await appear(tracker, mock_transport, MPV, ":1.11")
            await tracker.handle_properties_changed(props_changed(":1.10", {"PlaybackStatus": "Paused"}))
        assert "[owner=:1.10 player=vlc] Pausing, :1.11 took over playback" in caplog.text
        assert "[owner=:1.10 player=vlc] Absorbed echo of our own pause" in caplog.text

    async def test_vanish_reveals_previous_player(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10", status="Paused")
        await appear(tracker, mock_transport, MPV, ":1.11")
        produced = await tracker.handle_name_owner_changed(owner_changed(MPV, ":1.11", ""))
        assert produced[0].payload.owner == ":1.10"
        assert produced[0].payload.state is PlaybackStatus.PAUSED

    async def test_non_player_name_ignored(self, tracker):
        produced = await tracker.handle_name_owner_changed(owner_changed("org.gnome.Shell", "", ":1.3"))
        assert produced == []
        assert len(tracker.registry) == 0

    async def test_ownership_handover_ignored(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await tracker.handle_name_owner_changed(owner_changed(VLC, ":1.10", ":1.20"))
        assert produced == []
        assert set(tracker.registry) == {":1.10"}

    async def test_snapshot_failure_propagates(self, tracker, mock_transport):
        with pytest.raises(SnapshotError):
            await tracker.handle_name_owner_changed(owner_changed(VLC, "", ":1.10"))
        assert len(tracker.registry) == 0

    async def test_malformed_body(self, tracker):
        bad = BusSignal(names.FDO_SIGNAL_NAME_OWNER_CHANGED, names.FDO_NAME, names.FDO_PATH, (VLC, ""))
        with pytest.raises(MalformedSignalError):
            await tracker.handle_name_owner_changed(bad)


class TestPropertiesChanged:
    async def test_partial_update(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await tracker.handle_properties_changed(
            props_changed(":1.10", {"PlaybackStatus": "Paused"})
        )
        assert produced[0].payload.state is PlaybackStatus.PAUSED
        assert produced[0].payload.title == "vlc"

    async def test_untracked_only_payload(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        before = tracker.registry.get(":1.10").updated_at
        produced = await tracker.handle_properties_changed(props_changed(":1.10", {"Rate": 1.0}))
        assert produced == []
        assert tracker.registry.get(":1.10").updated_at == before

    async def test_untracked_payload_keeps_guard_armed(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        tracker.registry.mark_paused(":1.10")
        await tracker.handle_properties_changed(props_changed(":1.10", {"Volume": 0.3}))
        assert tracker.registry.get(":1.10").echo_guard.is_pending

    async def test_unknown_sender_is_tracked(self, tracker):
        produced = await tracker.handle_properties_changed(
            props_changed(":1.99", {"Metadata": {"xesam:title": "Radio"}})
        )
        assert ":1.99" in tracker.registry
        assert produced[0].payload.owner == ":1.99"
        assert produced[0].payload.state is PlaybackStatus.PLAYING

    async def test_foreign_interface_ignored(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await tracker.handle_properties_changed(
            props_changed(":1.10", {"Identity": "x"}, interface="org.example.Other")
        )
        assert produced == []

    async def test_root_interface_accepted(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await tracker.handle_properties_changed(
            props_changed(":1.10", {"Identity": "VLC media player"}, interface=names.MEDIA_PLAYER_NAME)
        )
        assert produced[0].payload.identity == "VLC media player"

    async def test_malformed_payload(self, tracker):
        with pytest.raises(MalformedSignalError):
            await tracker.handle_properties_changed(props_changed(":1.10", {"PlaybackStatus": 3}))


class TestConflicts:
    async def test_new_player_pauses_previous(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        produced = await appear(tracker, mock_transport, MPV, ":1.11")

        assert produced[0].payload.owner == ":1.11"
        assert tracker.registry.get(":1.10").playback is PlaybackStatus.PAUSED
        await wait_for(lambda: len(mock_transport.calls_to(names.PLAYER_METHOD_PAUSE)) == 1)
        assert mock_transport.calls_to(names.PLAYER_METHOD_PAUSE)[0].destination == ":1.10"

    async def test_resume_pauses_the_other(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10", status="Paused")
        await appear(tracker, mock_transport, MPV, ":1.11")
        produced = await tracker.handle_properties_changed(
            props_changed(":1.10", {"PlaybackStatus": "Playing"})
        )
        assert produced[0].payload.owner == ":1.10"
        assert tracker.registry.playing_owners() == [":1.10"]
        await wait_for(lambda: len(mock_transport.calls_to(names.PLAYER_METHOD_PAUSE)) == 1)
        assert mock_transport.calls_to(names.PLAYER_METHOD_PAUSE)[0].destination == ":1.11"

    async def test_no_conflict_when_previous_not_playing(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10", status="Paused")
        await appear(tracker, mock_transport, MPV, ":1.11")
        await asyncio.sleep(0)
        assert mock_transport.calls_to(names.PLAYER_METHOD_PAUSE) == []

    async def test_echo_of_pause_is_absorbed_once(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        await appear(tracker, mock_transport, MPV, ":1.11")

        echo = await tracker.handle_properties_changed(
            props_changed(":1.10", {"PlaybackStatus": "Paused"})
        )
        assert echo == []
        assert tracker.registry.get(":1.10").playback is PlaybackStatus.PAUSED

        later = await tracker.handle_properties_changed(
            props_changed(":1.10", {"Metadata": {"xesam:title": "next"}})
        )
        assert len(later) == 1
        assert later[0].payload.owner == ":1.11"

    async def test_pause_failure_is_logged(self, tracker, mock_transport, caplog):
        mock_transport.failures[names.PLAYER_METHOD_PAUSE] = TransportError("no reply")
        await appear(tracker, mock_transport, VLC, ":1.10")
        await appear(tracker, mock_transport, MPV, ":1.11")
        await wait_for(lambda: "Best-effort pause failed" in caplog.text)
        assert tracker.registry.get(":1.10").playback is PlaybackStatus.PAUSED


class TestCommand:
    async def test_no_player(self, tracker, mock_transport):
        assert await tracker.command(names.PLAYER_METHOD_NEXT) is False
        assert mock_transport.calls == []

    async def test_addresses_winner(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        assert await tracker.command(names.PLAYER_METHOD_SEEK, "x", [5_000_000]) is True
        call = mock_transport.calls_to(names.PLAYER_METHOD_SEEK)[0]
        assert call.destination == ":1.10"
        assert call.interface == names.PLAYER_NAME
        assert call.path == names.MEDIA_PLAYER_PATH
        assert call.signature == "x"
        assert call.body == [5_000_000]

    async def test_failure_raises_command_error(self, tracker, mock_transport):
        await appear(tracker, mock_transport, VLC, ":1.10")
        mock_transport.failures[names.PLAYER_METHOD_NEXT] = TransportError("NotSupported")
        with pytest.raises(CommandError):
            await tracker.command(names.PLAYER_METHOD_NEXT)

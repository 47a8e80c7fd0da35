"""
Contract tests for auto-advance when the playing clip stops.

Stop notifications are processed on the player's stop worker, never on the
device thread. A staged next item is promoted and started exactly once;
with no next item the player empties and reports stopped.
"""

import logging
import threading

import pytest


@pytest.fixture
def two_clip_player(player, media_factory):
    """Player with rundown [A(auto), B(auto)] and A loaded and playing."""
    a = player.add_file_item(media_factory("A"), 0)
    b = player.add_file_item(media_factory("B"), 1)
    a.is_auto_start = True
    b.is_auto_start = True
    player.load(a)
    return player


class TestPromotion:
    """Stop with a staged next item."""

    def test_staged_next_becomes_playing(self, two_clip_player, fake_device, mock_listener):
        a, b = two_clip_player.rundown
        a_input = a.input
        a_input.emit_position(8.5)
        b_input = b.input

        a_input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        assert two_clip_player.playing_item is b
        assert b_input.play_count == 1
        assert a_input.dispose_count == 1
        # Already staged: no second load on the device
        assert fake_device.calls("load") == ["A"]
        mock_listener.on_item_loaded.assert_called_with(b)
        mock_listener.on_stopped.assert_not_called()

    def test_old_item_unloaded_before_new_item_plays(self, two_clip_player, fake_device):
        a, b = two_clip_player.rundown
        a.input.emit_position(9.0)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        log = fake_device.call_log
        assert log.index(("dispose", "A")) < log.index(("play", "B"))

    def test_unstaged_next_is_loaded_on_promotion(self, two_clip_player, fake_device):
        a, b = two_clip_player.rundown
        # Stop before the preload window (short clip or seek past the end)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        assert two_clip_player.playing_item is b
        assert fake_device.calls("load") == ["A", "B"]
        assert b.input.play_count == 1

    def test_promotion_recomputes_next(self, player, media_factory):
        items = [player.add_file_item(media_factory(name), i) for i, name in enumerate("ABC")]
        for item in items:
            item.is_auto_start = True
        a, b, c = items
        player.load(a)
        a.input.emit_stopped()
        assert player.wait_idle(2.0)
        assert player.playing_item is b
        assert player.next_item is c

    def test_loop_plays_rundown_again(self, two_clip_player):
        a, b = two_clip_player.rundown
        two_clip_player.set_loop(True)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.next_item is a

        b.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.playing_item is a
        assert a.is_playing

    def test_disable_after_unload_on_advance(self, two_clip_player):
        a, b = two_clip_player.rundown
        two_clip_player.set_disable_after_unload(True)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert a.is_disabled
        assert not b.is_disabled


class TestRefusedPromotion:
    """Device refusing the successor when the playing clip stops."""

    def test_refused_successor_stops_player(self, two_clip_player, fake_device, mock_listener):
        a, b = two_clip_player.rundown
        a_input = a.input
        fake_device.refuse_inputs = True

        a_input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        assert two_clip_player.playing_item is None
        assert a_input.dispose_count == 1
        assert not b.is_prepared
        mock_listener.on_item_loaded.assert_called_with(None)
        mock_listener.on_stopped.assert_called_once_with()

    def test_successor_can_be_loaded_after_refusal(self, two_clip_player, fake_device):
        a, b = two_clip_player.rundown
        fake_device.refuse_load = True
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.playing_item is None
        assert fake_device.inputs[-1].disposed

        fake_device.refuse_load = False
        assert two_clip_player.load(b) is True
        assert two_clip_player.playing_item is b
        assert b.is_playing

    def test_worker_survives_refusal(self, two_clip_player, fake_device):
        a, b = two_clip_player.rundown
        fake_device.refuse_inputs = True
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        fake_device.refuse_inputs = False
        two_clip_player.load(a)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.playing_item is b


class TestEndOfRundown:
    """Stop with nothing to follow."""

    def test_stop_without_next_empties_player(self, player, media_factory, mock_listener):
        a = player.add_file_item(media_factory("A"), 0)
        a.is_auto_start = True
        player.load(a)
        a_input = a.input
        mock_listener.on_item_loaded.reset_mock()

        a_input.emit_stopped()
        assert player.wait_idle(2.0)

        assert player.playing_item is None
        assert a_input.dispose_count == 1
        mock_listener.on_item_loaded.assert_called_once_with(None)
        mock_listener.on_stopped.assert_called_once_with()

    def test_manual_next_item_is_not_started(self, player, media_factory, mock_listener):
        a = player.add_file_item(media_factory("A"), 0)
        b = player.add_file_item(media_factory("B"), 1)
        a.is_auto_start = True
        player.load(a)
        a.input.emit_stopped()
        assert player.wait_idle(2.0)
        assert player.playing_item is None
        assert not b.is_prepared
        mock_listener.on_stopped.assert_called_once_with()


class TestStopDispatch:
    """Stop notifications and threads."""

    def test_stop_handled_off_device_thread(self, two_clip_player, mock_listener):
        a, b = two_clip_player.rundown
        threads = []
        mock_listener.on_item_loaded.side_effect = lambda item: threads.append(threading.current_thread())

        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)

        assert len(threads) == 1
        assert threads[0] is not threading.current_thread()
        assert threads[0].name == f"RundownPlayer-StopWorker-{two_clip_player.name}"

    def test_stop_from_non_playing_item_ignored(self, two_clip_player, fake_device, caplog):
        a, b = two_clip_player.rundown
        a.input.emit_position(9.0)
        with caplog.at_level(logging.WARNING, logger="studio.broadcast_core.rundown_player"):
            b.input.emit_stopped()
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "[ADVANCE]" in warnings[0].getMessage()
        assert "not the playing item" in warnings[0].getMessage()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.playing_item is a
        assert b.input.play_count == 0

    def test_stale_stop_ignored_after_manual_load(self, two_clip_player, mock_listener):
        a, b = two_clip_player.rundown
        a_input = a.input
        with two_clip_player._lock:
            # Worker blocks on the lock until the operator has loaded B
            a_input.emit_stopped()
            two_clip_player.load(b)
        assert two_clip_player.wait_idle(2.0)

        assert two_clip_player.playing_item is b
        assert b.input.play_count == 1
        mock_listener.on_stopped.assert_not_called()

    def test_stop_after_uninitialize_ignored(self, two_clip_player, mock_listener):
        a, b = two_clip_player.rundown
        two_clip_player.uninitialize()
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(0.5)
        assert two_clip_player.playing_item is a
        mock_listener.on_stopped.assert_not_called()

    def test_reinitialize_restarts_worker(self, two_clip_player):
        a, b = two_clip_player.rundown
        two_clip_player.uninitialize()
        two_clip_player.initialize()
        assert two_clip_player.playing_item is None

        two_clip_player.load(a)
        a.input.emit_stopped()
        assert two_clip_player.wait_idle(2.0)
        assert two_clip_player.playing_item is b

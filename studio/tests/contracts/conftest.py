"""
Shared pytest fixtures for Studio contract tests.

Contract tests use test doubles (fakes, stubs, mocks) to avoid real dependencies.
No playback hardware, real media files or environment variables are used.
"""

import threading
from unittest.mock import Mock

import pytest

from studio.broadcast_core.rundown_player import RundownPlayer
from studio.tests.contracts.test_doubles import (
    FakePlaybackDevice,
    StubOutputSink,
    create_channel_config,
    create_fake_media,
)


@pytest.fixture
def channel_config():
    """Create a stereo 25 fps channel configuration."""
    return create_channel_config()


@pytest.fixture
def fake_device():
    """Create a fake playback device that records calls."""
    return FakePlaybackDevice()


@pytest.fixture
def stub_output_sink():
    """Create a stub output sink that records writes."""
    return StubOutputSink()


@pytest.fixture
def mock_listener():
    """Create a mock rundown player listener."""
    listener = Mock()
    listener.on_item_loaded = Mock()
    listener.on_item_removed = Mock()
    listener.on_item_submitted = Mock()
    listener.on_position = Mock()
    listener.on_stopped = Mock()
    return listener


@pytest.fixture
def player(fake_device, channel_config, mock_listener):
    """Create an initialized rundown player on the fake device (2 s preload)."""
    rundown_player = RundownPlayer(fake_device, channel_config, preload_time=2.0, callback=mock_listener)
    rundown_player.initialize()
    yield rundown_player
    rundown_player.dispose()


@pytest.fixture
def media_factory():
    """Create MediaFiles with distinct names."""
    def _create(name: str, duration=10.0):
        return create_fake_media(name, duration)
    return _create


@pytest.fixture(autouse=True)
def thread_leak_guard():
    """
    Detect thread leaks between tests.

    Stop workers and frame clocks must be gone once their player/device is disposed.
    """
    before = set(t.ident for t in threading.enumerate())
    yield
    after = set(t.ident for t in threading.enumerate())
    leaked = after - before
    if leaked:
        leaked_threads = [t for t in threading.enumerate() if t.ident in leaked and t.is_alive()]
        if leaked_threads:
            thread_info = '\n'.join(f"  - {t.name} (daemon={t.daemon})" for t in leaked_threads)
            assert False, f"Thread leak detected - shutdown incomplete.\nLeaked threads:\n{thread_info}"

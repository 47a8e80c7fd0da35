"""
Command-line entry point for the Studio rundown player.

Builds the channel registry on simulated playback devices, puts the given
media files on the rundown of the first channel and plays it through.
"""

import argparse
import logging
import logging.handlers
import signal
import sys
import threading
from typing import List, Optional

from studio.app.channel_registry import ChannelRegistry
from studio.broadcast_core.media_file import probe_media
from studio.broadcast_core.simulated_device import SimulatedPlaybackDevice
from studio.config import StudioConfig, load_config
from studio.state.now_playing_state import NowPlayingState, NowPlayingStateManager

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(config: StudioConfig) -> None:
    """
    Set up root logging from configuration.

    Console logging always; a rotation-tolerant file handler when log_file is set.
    """
    logging.basicConfig(
        level=config.log_level.upper(),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    if config.log_file:
        try:
            # WatchedFileHandler reopens the file after external rotation
            handler = logging.handlers.WatchedFileHandler(config.log_file, mode='a')
        except OSError as e:
            logger.warning(f"[STUDIO] Cannot open log file {config.log_file}: {e}")
            return
        handler.setFormatter(logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s'))
        logging.getLogger().addHandler(handler)


def _parse_args(args: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="studio", description="Play media files through a rundown.")
    parser.add_argument("paths", nargs="*", help="media files to put on the rundown")
    parser.add_argument("--loop", action="store_true", help="wrap to the start of the rundown")
    parser.add_argument("--disable-after-unload", action="store_true",
                        help="mark clips disabled once they have played")
    parser.add_argument("--speed", type=float, default=1.0, help="frame clock speed multiplier")
    parser.add_argument("--duration", type=float, default=None,
                        help="duration in seconds for files ffprobe cannot read")
    return parser.parse_args(args)


def _log_now_playing(state: Optional[NowPlayingState]) -> None:
    if state is None:
        logger.info("[STUDIO] Now playing: nothing")
    else:
        logger.info(f"[STUDIO] Now playing: {state.name} ({state.kind}, {state.duration_sec}s)")


def main(args: Optional[List[str]] = None) -> None:
    """
    Main entry point.

    Runs until the rundown stops or SIGINT/SIGTERM is received.
    """
    options = _parse_args(args)
    config = load_config()
    if options.loop:
        config.loop = True
    if options.disable_after_unload:
        config.disable_after_unload = True
    configure_logging(config)

    registry = ChannelRegistry(
        config,
        device_factory=lambda channel: SimulatedPlaybackDevice(channel, speed=options.speed),
    )
    finished = threading.Event()

    def signal_handler(sig, frame):
        signal_name = "SIGTERM" if sig == signal.SIGTERM else "SIGINT"
        logger.info(f"[STUDIO] Received {signal_name} signal - shutting down")
        finished.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    registry.initialize()
    try:
        player = registry.players[0]
        now_playing = NowPlayingStateManager()
        now_playing.add_listener(_log_now_playing)
        player.add_listener(now_playing)
        stop_listener = _StopListener(finished)
        player.add_listener(stop_listener)

        for index, path in enumerate(options.paths):
            media = probe_media(path)
            if media.duration is None:
                media.duration = options.duration
            item = player.add_file_item(media, index)
            item.is_auto_start = True

        if not player.rundown:
            logger.info("[STUDIO] Rundown is empty, nothing to play")
            return

        player.load(player.rundown[0])
        logger.info(f"[STUDIO] Playing {len(player.rundown)} item(s) on {player.name}. Press Ctrl+C to stop.")
        while not finished.wait(0.1):
            pass
    except Exception as e:
        logger.error(f"[STUDIO] Error: {e}", exc_info=True)
        raise
    finally:
        registry.shutdown()


class _StopListener:
    """Sets an event when the player reaches the end of its rundown."""

    def __init__(self, finished: threading.Event):
        self._finished = finished

    def on_stopped(self) -> None:
        self._finished.set()

    def on_item_loaded(self, item) -> None:
        pass

    def on_item_removed(self, item) -> None:
        pass

    def on_item_submitted(self, item) -> None:
        pass

    def on_position(self, elapsed: float) -> None:
        pass


if __name__ == "__main__":
    main(sys.argv[1:])

"""
Simulated playback device.

Stands in for the broadcast decode/render engine so a rundown can be run
without output hardware. A frame-clock thread ticks at the channel frame
rate; every tick renders one PCM frame of the current input to the sink and
advances the playing input by one frame of media time.

File inputs render silence (no decoding), live inputs render a test tone.
"""

import logging
import math
import threading
import time
from typing import Optional, Tuple

import numpy as np

from studio.broadcast_core.media_file import LiveSource, MediaFile
from studio.broadcast_core.playback_device import FileInputHandle, InputHandle, PlaybackDevice
from studio.config import ChannelConfig
from studio.outputs.base_sink import BaseSink
from studio.outputs.null_sink import NullSink

logger = logging.getLogger(__name__)

# Clips without a probed duration play for this long
DEFAULT_CLIP_DURATION = 10.0


class SimulatedFileInput(FileInputHandle):
    """File input that plays silence for the media duration."""

    def __init__(self, media: MediaFile, audio_channel_count: int, samples_per_frame: int):
        super().__init__(media.name)
        self.media = media
        self.duration = media.duration if media.duration is not None else DEFAULT_CLIP_DURATION
        self._lock = threading.Lock()
        self._position = 0.0
        self._is_playing = False
        self._is_loop = False
        self._is_eof = False
        self.disposed = False
        self._frame = np.zeros((samples_per_frame, audio_channel_count), dtype=np.int16)

    @property
    def position(self) -> float:
        with self._lock:
            return self._position

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def is_eof(self) -> bool:
        return self._is_eof

    @property
    def is_loop(self) -> bool:
        return self._is_loop

    @is_loop.setter
    def is_loop(self, value: bool) -> None:
        self._is_loop = value

    def play(self) -> None:
        self._is_playing = True

    def pause(self) -> None:
        self._is_playing = False

    def seek(self, offset: float) -> bool:
        if offset < 0 or offset >= self.duration:
            return False
        with self._lock:
            self._position = offset
            self._is_eof = False
        return True

    def dispose(self) -> None:
        self._is_playing = False
        self.disposed = True

    def render(self) -> np.ndarray:
        return self._frame

    def advance(self, frame_duration: float) -> Tuple[Optional[float], bool]:
        """
        Move the play head by one frame.

        Returns:
            (elapsed to report or None when not playing, True if the clip just ended)
        """
        if not self._is_playing or self.disposed:
            return None, False
        with self._lock:
            self._position += frame_duration
            if self._position < self.duration:
                return self._position, False
            if self._is_loop:
                self._position = 0.0
                return self._position, False
            self._position = self.duration
            self._is_eof = True
            self._is_playing = False
            return self._position, True


class SimulatedLiveInput(InputHandle):
    """Live input rendering a continuous sine tone; never ends."""

    def __init__(self, source: LiveSource, audio_channel_count: int, samples_per_frame: int,
                 sample_rate: int, frequency: float = 440.0):
        super().__init__(source.name)
        self.source = source
        self.audio_channel_count = audio_channel_count
        self.samples_per_frame = samples_per_frame
        self._is_playing = False
        self._elapsed = 0.0
        self.disposed = False

        # Phase accumulator for continuous tone generation
        self._phase = 0.0
        self._phase_increment = 2.0 * math.pi * frequency / sample_rate

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    def play(self) -> None:
        self._is_playing = True

    def pause(self) -> None:
        self._is_playing = False

    def dispose(self) -> None:
        self._is_playing = False
        self.disposed = True

    def render(self) -> np.ndarray:
        samples = np.sin(self._phase_increment * np.arange(self.samples_per_frame) + self._phase)
        self._phase = (self._phase + self._phase_increment * self.samples_per_frame) % (2.0 * math.pi)
        # 0.8 amplitude to avoid clipping
        samples_int16 = (samples * 0.8 * 32767).astype(np.int16)
        return np.repeat(samples_int16[:, np.newaxis], self.audio_channel_count, axis=1)

    def advance(self, frame_duration: float) -> Tuple[Optional[float], bool]:
        if not self._is_playing or self.disposed:
            return None, False
        self._elapsed += frame_duration
        return self._elapsed, False


class SimulatedPlaybackDevice(PlaybackDevice):
    """
    Playback device driven by a frame clock.

    The staged (preloaded) input becomes current as soon as the current
    file input ends; its owner is told through on_stopped afterwards.
    """

    def __init__(self, channel: ChannelConfig, sink: Optional[BaseSink] = None, speed: float = 1.0):
        """
        Initialize the device.

        Args:
            channel: Output channel configuration (frame rate, audio format)
            sink: Where rendered frames go (NullSink when omitted); closed by uninitialize()
            speed: Clock speed multiplier; media time per frame is unchanged
        """
        if speed <= 0:
            raise ValueError(f"Invalid speed: {speed} (must be > 0)")
        self.channel = channel
        self.sink = sink if sink is not None else NullSink()
        self._sink_closed = False
        self.speed = speed
        self.frame_duration = 1.0 / channel.frame_rate
        self.frames_rendered = 0

        self._lock = threading.RLock()
        self._current: Optional[InputHandle] = None
        self._staged: Optional[InputHandle] = None
        self._silence = np.zeros((channel.samples_per_frame, channel.audio_channel_count), dtype=np.int16)

        self._stop_event = threading.Event()
        self._clock_thread: Optional[threading.Thread] = None

    @property
    def current_input(self) -> Optional[InputHandle]:
        with self._lock:
            return self._current

    @property
    def staged_input(self) -> Optional[InputHandle]:
        with self._lock:
            return self._staged

    def create_file_input(self, media: MediaFile, audio_channel_count: int) -> SimulatedFileInput:
        return SimulatedFileInput(media, audio_channel_count, self.channel.samples_per_frame)

    def create_live_input(self, source: LiveSource, audio_channel_count: int) -> SimulatedLiveInput:
        return SimulatedLiveInput(
            source,
            audio_channel_count,
            self.channel.samples_per_frame,
            self.channel.sample_rate,
        )

    def load(self, input_handle: InputHandle) -> None:
        with self._lock:
            if self._staged is input_handle:
                self._staged = None
            self._current = input_handle
        logger.debug(f"[DEVICE] {self.channel.name}: loaded {input_handle.name}")

    def preload(self, input_handle: InputHandle) -> None:
        with self._lock:
            self._staged = input_handle
        logger.debug(f"[DEVICE] {self.channel.name}: staged {input_handle.name}")

    def clear(self) -> None:
        with self._lock:
            self._current = None
            self._staged = None
        logger.debug(f"[DEVICE] {self.channel.name}: cleared")

    def initialize(self) -> None:
        if self._clock_thread is not None:
            return
        if self._sink_closed:
            # The previous sink was closed on uninitialize and cannot be reopened
            if not isinstance(self.sink, NullSink):
                logger.warning(f"[DEVICE] {self.channel.name}: output sink was closed, discarding frames")
            self.sink = NullSink()
            self._sink_closed = False
        self._stop_event.clear()
        self._clock_thread = threading.Thread(
            target=self._clock_loop,
            daemon=True,
            name=f"SimulatedDevice-Clock-{self.channel.name}"
        )
        self._clock_thread.start()
        logger.info(f"[DEVICE] {self.channel.name}: frame clock started ({self.channel.frame_rate} fps x{self.speed})")

    def uninitialize(self) -> None:
        thread = self._clock_thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._clock_thread = None
        logger.info(f"[DEVICE] {self.channel.name}: frame clock stopped")

        # No frame is rendered after the clock has stopped
        self._sink_closed = True
        try:
            self.sink.close()
        except Exception as e:
            logger.error(f"[DEVICE] {self.channel.name}: error closing output sink: {e}", exc_info=True)

    def tick(self) -> None:
        """Render and advance exactly one frame."""
        with self._lock:
            current = self._current
            if current is not None and current.disposed:
                self._current = current = None

        if current is None:
            self.sink.write(self._silence)
            self.frames_rendered += 1
            return

        self.sink.write(current.render())
        self.frames_rendered += 1

        elapsed, ended = current.advance(self.frame_duration)
        callback = current.callback
        if elapsed is not None and callback is not None:
            callback.on_position(elapsed)
        if not ended:
            return

        with self._lock:
            if self._current is current:
                self._current = self._staged
                self._staged = None
        logger.debug(f"[DEVICE] {self.channel.name}: {current.name} reached end of stream")
        callback = current.callback
        if callback is not None:
            callback.on_stopped()

    def _clock_loop(self) -> None:
        interval = self.frame_duration / self.speed
        next_deadline = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"[DEVICE] {self.channel.name}: error rendering frame: {e}", exc_info=True)
            next_deadline += interval
            delay = next_deadline - time.monotonic()
            if delay < 0:
                # Fell behind: resync instead of bursting
                next_deadline = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)

"""
Playback device interface.

The playback device is the decode/render engine behind an output channel.
The rundown player hands it prepared inputs and listens for position and
stop notifications coming back from those inputs. Notifications arrive on a
thread owned by the device.
"""

from abc import ABC, abstractmethod
from typing import Optional, Protocol

from studio.broadcast_core.media_file import LiveSource, MediaFile


class InputCallback(Protocol):
    """
    Receiver of input notifications.

    Called from the device thread; implementations must return quickly.
    """

    def on_position(self, elapsed: float) -> None:
        """
        Called for every rendered frame of the input.

        Args:
            elapsed: Seconds since the start of the media
        """
        ...

    def on_stopped(self) -> None:
        """Called once when a file input reaches end of stream without looping."""
        ...


class InputHandle(ABC):
    """
    A decode input created by the playback device.

    Owned by the rundown item that prepared it; released with dispose().
    """

    def __init__(self, name: str):
        self.name = name
        self._callback: Optional[InputCallback] = None

    @property
    def callback(self) -> Optional[InputCallback]:
        return self._callback

    def set_callback(self, callback: Optional[InputCallback]) -> None:
        """Attach (or with None, detach) the receiver of this input's notifications."""
        self._callback = callback

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        ...

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def dispose(self) -> None:
        """Release decoder resources. Safe to call more than once."""
        ...


class FileInputHandle(InputHandle):
    """Input decoding a media file: seekable, loopable, reports end of stream."""

    @property
    @abstractmethod
    def is_eof(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_loop(self) -> bool:
        ...

    @is_loop.setter
    @abstractmethod
    def is_loop(self, value: bool) -> None:
        ...

    @abstractmethod
    def seek(self, offset: float) -> bool:
        """
        Seek to an offset from the start of the media.

        Args:
            offset: Seconds from start

        Returns:
            True if the seek was accepted
        """
        ...


class PlaybackDevice(ABC):
    """
    Output channel engine.

    Creates inputs, plays the loaded input and stages one preloaded input
    that takes over seamlessly when the loaded one ends.
    """

    @abstractmethod
    def create_file_input(self, media: MediaFile, audio_channel_count: int) -> FileInputHandle:
        ...

    @abstractmethod
    def create_live_input(self, source: LiveSource, audio_channel_count: int) -> InputHandle:
        ...

    @abstractmethod
    def load(self, input_handle: InputHandle) -> None:
        """Make input_handle the current input of the channel."""
        ...

    @abstractmethod
    def preload(self, input_handle: InputHandle) -> None:
        """Stage input_handle to follow the current input."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop current and staged inputs and output black/silence."""
        ...

    def initialize(self) -> None:
        """Open the output. Subclasses override if the device needs setup."""
        pass

    def uninitialize(self) -> None:
        """Close the output. Subclasses override if the device holds resources."""
        pass

"""
Rundown items.

A rundown item is one playable entry of a rundown. It wraps a single input
of the playback device and owns that input only while prepared:

    constructed -> prepare() -> play()/pause()/seek() -> unload() -> ...

Items report everything that happens to them (frame played, end of stream,
flag changes, removal requests) as ItemNotification messages posted to the
player that owns them.
"""

import enum
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from studio.broadcast_core.item_notification import ItemNotification, NotificationKind
from studio.broadcast_core.media_file import LiveSource, MediaFile
from studio.broadcast_core.playback_device import FileInputHandle, InputHandle, PlaybackDevice

logger = logging.getLogger(__name__)

NotificationSink = Callable[[ItemNotification], None]


class ItemKind(enum.Enum):
    FILE = "file"
    LIVE = "live"


class RundownItem(ABC):
    """
    Base class for rundown entries.

    The prepared flag and the input change together under a per-item lock, so
    exactly one prepare() succeeds per prepare/unload cycle and every created
    input is disposed by exactly one unload(), whichever threads call them.
    """

    kind: ItemKind

    def __init__(self, device: PlaybackDevice):
        """
        Initialize a detached, unprepared item.

        Args:
            device: Playback device that creates this item's input on prepare()
        """
        self.item_id = uuid.uuid4()
        self._device = device
        self._is_auto_start = False
        self._is_disabled = False
        self._prepared = False
        self._prepared_lock = threading.Lock()
        self._input: Optional[InputHandle] = None
        self._sink: Optional[NotificationSink] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} id={self.item_id}>"

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def thumbnail(self) -> Optional[Any]:
        ...

    @property
    @abstractmethod
    def can_seek(self) -> bool:
        ...

    @property
    def input(self) -> Optional[InputHandle]:
        """Underlying device input, present only while prepared."""
        return self._input

    @property
    def is_prepared(self) -> bool:
        with self._prepared_lock:
            return self._prepared

    @property
    def is_playing(self) -> bool:
        input_handle = self._input
        return input_handle is not None and input_handle.is_playing

    @property
    def is_auto_start(self) -> bool:
        return self._is_auto_start

    @is_auto_start.setter
    def is_auto_start(self, value: bool) -> None:
        if self._is_auto_start == value:
            return
        self._is_auto_start = value
        self._raise_property_changed("is_auto_start")

    @property
    def is_disabled(self) -> bool:
        return self._is_disabled

    @is_disabled.setter
    def is_disabled(self, value: bool) -> None:
        if self._is_disabled == value:
            return
        self._is_disabled = value
        self._raise_property_changed("is_disabled")

    # Ownership

    @property
    def is_attached(self) -> bool:
        return self._sink is not None

    def attach(self, sink: NotificationSink) -> None:
        """
        Route this item's notifications to sink (the owning player).

        Raises:
            ValueError: If the item already belongs to a rundown
        """
        if self._sink is not None:
            raise ValueError(f"{self.name} already belongs to a rundown")
        self._sink = sink

    def detach(self) -> None:
        self._sink = None

    def request_removal(self) -> None:
        """Ask the owning player to remove this item from its rundown."""
        self._post(ItemNotification(NotificationKind.REMOVE_REQUESTED, self.item_id))

    # Lifecycle

    def prepare(self, audio_channel_count: int) -> bool:
        """
        Allocate the device input for this item.

        Args:
            audio_channel_count: Audio channels of the output channel

        Returns:
            True if the input was created, False if the item was already prepared
        """
        with self._prepared_lock:
            if self._prepared:
                return False
            # A failing device leaves the item unprepared
            input_handle = self._create_input(audio_channel_count)
            input_handle.set_callback(self)
            self._input = input_handle
            self._prepared = True
        logger.debug(f"[ITEM] Prepared: {self.name}")
        return True

    def unload(self) -> bool:
        """
        Release the device input.

        Notifications are detached before the input is disposed.

        Returns:
            True if an input was released, False if the item was not prepared
        """
        with self._prepared_lock:
            if not self._prepared:
                return False
            input_handle = self._input
            self._input = None
            self._prepared = False
        input_handle.set_callback(None)
        input_handle.dispose()
        logger.debug(f"[ITEM] Unloaded: {self.name}")
        return True

    def dispose(self) -> None:
        self.unload()

    def play(self) -> None:
        """
        Start playback.

        Raises:
            RuntimeError: If the item is not prepared
        """
        input_handle = self._input
        if input_handle is None:
            raise RuntimeError(f"Cannot play {self.name}: item is not prepared")
        input_handle.play()

    def pause(self) -> None:
        input_handle = self._input
        if input_handle is None:
            return
        input_handle.pause()

    def seek(self, offset: float) -> bool:
        return False

    # Input notifications (device thread)

    def on_position(self, elapsed: float) -> None:
        self._post(ItemNotification(NotificationKind.POSITION, self.item_id, elapsed=elapsed))

    def on_stopped(self) -> None:
        pass

    # Internals

    @abstractmethod
    def _create_input(self, audio_channel_count: int) -> InputHandle:
        ...

    def _raise_property_changed(self, property_name: str) -> None:
        self._post(ItemNotification(
            NotificationKind.PROPERTY_CHANGED, self.item_id, property_name=property_name
        ))

    def _post(self, notification: ItemNotification) -> None:
        sink = self._sink
        if sink is not None:
            sink(notification)


class FileRundownItem(RundownItem):
    """Seekable, loopable clip from a media file."""

    kind = ItemKind.FILE

    def __init__(self, media: MediaFile, device: PlaybackDevice):
        super().__init__(device)
        self.media = media
        self._is_loop = False

    @property
    def name(self) -> str:
        return self.media.name

    @property
    def thumbnail(self) -> Optional[Any]:
        return self.media.thumbnail

    @property
    def can_seek(self) -> bool:
        return True

    @property
    def is_loop(self) -> bool:
        return self._is_loop

    @is_loop.setter
    def is_loop(self, value: bool) -> None:
        if self._is_loop == value:
            return
        self._is_loop = value
        input_handle = self._input
        if input_handle is not None:
            input_handle.is_loop = value
        self._raise_property_changed("is_loop")

    @property
    def is_eof(self) -> bool:
        input_handle = self._input
        return input_handle is not None and input_handle.is_eof

    def seek(self, offset: float) -> bool:
        input_handle = self._input
        if input_handle is None:
            return False
        return input_handle.seek(offset)

    def on_stopped(self) -> None:
        self._post(ItemNotification(NotificationKind.STOPPED, self.item_id))

    def _create_input(self, audio_channel_count: int) -> FileInputHandle:
        input_handle = self._device.create_file_input(self.media, audio_channel_count)
        input_handle.is_loop = self._is_loop
        return input_handle


class LiveRundownItem(RundownItem):
    """Pass-through of a live input; runs until unloaded, never stops by itself."""

    kind = ItemKind.LIVE

    def __init__(self, source: LiveSource, device: PlaybackDevice):
        super().__init__(device)
        self.source = source

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def thumbnail(self) -> Optional[Any]:
        return self.source.thumbnail

    @property
    def can_seek(self) -> bool:
        return False

    def _create_input(self, audio_channel_count: int) -> InputHandle:
        return self._device.create_live_input(self.source, audio_channel_count)

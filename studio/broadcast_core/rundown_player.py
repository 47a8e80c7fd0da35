"""
Rundown Player for one output channel.

Owns the ordered rundown, the playing item and the staged "next" item, and
drives the playback device from the notifications items post back:

- POSITION (device thread, every frame): re-broadcast, then stage the next
  item on the device once the playing clip is inside the preload window.
- STOPPED (device thread, end of clip): handed to a dedicated worker thread
  which promotes the staged next item and starts it.
- PROPERTY_CHANGED (caller thread): auto-start/disabled flag changes
  recompute the next item.
- REMOVE_REQUESTED (caller thread): remove the posting item.

Rundown, playing item and next item are guarded by a single lock.
"""

import logging
import queue
import threading
import uuid
from typing import List, Optional, Protocol, Tuple

from studio.broadcast_core.item_notification import ItemNotification, NotificationKind
from studio.broadcast_core.media_file import LiveSource, MediaFile
from studio.broadcast_core.playback_device import PlaybackDevice
from studio.broadcast_core.rundown_item import (
    FileRundownItem,
    ItemKind,
    LiveRundownItem,
    RundownItem,
)
from studio.config import ChannelConfig, StudioConfig

logger = logging.getLogger(__name__)

DEFAULT_PRELOAD_TIME = 2.0


class RundownPlayerCallback(Protocol):
    """
    Protocol for rundown player listeners (UI, now-playing state, ...).

    Callbacks run on the thread that caused them: on_position on the device
    thread, on_stopped and auto-advance on_item_loaded on the stop worker,
    everything else on the caller's thread.
    """

    def on_item_loaded(self, item: Optional[RundownItem]) -> None:
        """Called when the playing item changes (None when nothing is loaded)."""
        ...

    def on_item_removed(self, item: RundownItem) -> None:
        ...

    def on_item_submitted(self, item: RundownItem) -> None:
        ...

    def on_position(self, elapsed: float) -> None:
        """Called for every frame of the playing item."""
        ...

    def on_stopped(self) -> None:
        """Called when the playing clip ended and nothing was staged to follow it."""
        ...


class RundownPlayer:
    """
    Scheduler for the rundown of one output channel.

    The playback device is shared, not owned: the player hands it inputs
    and clears it, but never creates or closes it.
    """

    def __init__(
        self,
        device: PlaybackDevice,
        channel: ChannelConfig,
        preload_time: float = DEFAULT_PRELOAD_TIME,
        callback: Optional[RundownPlayerCallback] = None,
    ):
        """
        Initialize the rundown player.

        Args:
            device: Playback device of the output channel
            channel: Output channel configuration
            preload_time: Seconds before the end of a clip at which the next item is staged
            callback: Optional listener registered right away
        """
        self.channel = channel
        self._device = device
        self._preload_time = preload_time
        self._lock = threading.RLock()

        self._rundown: List[RundownItem] = []
        self._playing: Optional[RundownItem] = None
        self._next: Optional[RundownItem] = None

        self._is_loop = False
        self._disable_after_unload = False
        self.add_items_with_auto_play = False

        self._listeners: List[RundownPlayerCallback] = []
        if callback is not None:
            self._listeners.append(callback)

        # Stop notifications are processed off the device thread
        self._stop_queue: "queue.Queue[Optional[uuid.UUID]]" = queue.Queue()
        self._stop_worker: Optional[threading.Thread] = None
        self._pending_stops = 0
        self._idle = threading.Condition()
        self._is_initialized = False

    @classmethod
    def from_config(cls, device: PlaybackDevice, channel: ChannelConfig, config: StudioConfig) -> "RundownPlayer":
        """Create a player with the rundown policy of config."""
        player = cls(device, channel, preload_time=config.preload_time_sec)
        player._is_loop = config.loop
        player._disable_after_unload = config.disable_after_unload
        player.add_items_with_auto_play = config.add_items_with_auto_play
        return player

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.channel.name

    @property
    def audio_channel_count(self) -> int:
        return self.channel.audio_channel_count

    @property
    def preload_time(self) -> float:
        return self._preload_time

    @property
    def rundown(self) -> Tuple[RundownItem, ...]:
        """Snapshot of the rundown in play order."""
        with self._lock:
            return tuple(self._rundown)

    @property
    def playing_item(self) -> Optional[RundownItem]:
        return self._playing

    @property
    def next_item(self) -> Optional[RundownItem]:
        return self._next

    @property
    def is_loop(self) -> bool:
        return self._is_loop

    @property
    def disable_after_unload(self) -> bool:
        return self._disable_after_unload

    @property
    def is_playing(self) -> bool:
        playing = self._playing
        return playing is not None and playing.is_playing

    @property
    def is_eof(self) -> bool:
        playing = self._playing
        if playing is None or playing.kind is not ItemKind.FILE:
            return True
        return playing.is_eof

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def set_loop(self, is_loop: bool) -> None:
        """Enable or disable wrapping to the start of the rundown."""
        with self._lock:
            if self._is_loop == is_loop:
                return
            self._is_loop = is_loop
            self._update_next()

    def set_disable_after_unload(self, disable_after_unload: bool) -> None:
        """When set, file items are marked disabled once they have been unloaded."""
        self._disable_after_unload = disable_after_unload

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: RundownPlayerCallback) -> None:
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: RundownPlayerCallback) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _emit(self, method_name: str, *args) -> None:
        listeners = self._listeners.copy()
        for listener in listeners:
            try:
                getattr(listener, method_name)(*args)
            except Exception as e:
                logger.error(f"[RUNDOWN] Error in listener {method_name}: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Open the device and start the stop worker.

        Any previously playing item is unloaded.
        """
        if self._is_initialized:
            return
        self._device.initialize()
        self._stop_worker = threading.Thread(
            target=self._stop_worker_loop,
            daemon=True,
            name=f"RundownPlayer-StopWorker-{self.name}"
        )
        self._stop_worker.start()
        self._is_initialized = True
        with self._lock:
            self._set_playing(None)
        logger.info(f"[RUNDOWN] {self.name}: initialized")

    def uninitialize(self) -> None:
        """Stop the stop worker and close the device. Idempotent."""
        if not self._is_initialized:
            return
        self._is_initialized = False
        worker = self._stop_worker
        self._stop_worker = None
        self._stop_queue.put(None)
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=2.0)
            if worker.is_alive():
                logger.warning(f"[RUNDOWN] {self.name}: stop worker did not exit within 2s")
            else:
                # Stops queued behind the shutdown marker are dropped
                while True:
                    try:
                        self._stop_queue.get_nowait()
                    except queue.Empty:
                        break
                with self._idle:
                    self._pending_stops = 0
                    self._idle.notify_all()
        self._device.uninitialize()
        logger.info(f"[RUNDOWN] {self.name}: uninitialized")

    def dispose(self) -> None:
        """Unload everything, empty the rundown and uninitialize."""
        with self._lock:
            self._set_playing(None)
            self._set_next(None)
            for item in list(self._rundown):
                self.remove_item(item)
        self.uninitialize()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until all queued stop notifications have been processed.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            True if idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending_stops == 0, timeout)

    # ------------------------------------------------------------------
    # Playback control
    # ------------------------------------------------------------------

    def load(self, item: RundownItem) -> bool:
        """
        Make item the playing item.

        The previous playing item is paused and unloaded; item is prepared,
        loaded on the device and started if it is auto-start.

        Returns:
            False if item is not part of this rundown

        Raises:
            Exception: Whatever the device raised when it refused the item;
                the player is left empty and the load can be retried
        """
        with self._lock:
            if item not in self._rundown:
                logger.warning(f"[RUNDOWN] {self.name}: cannot load {item.name}: not in rundown")
                return False
            self._set_playing(item)
            return True

    def play(self) -> bool:
        with self._lock:
            playing = self._playing
            if playing is None:
                return False
            playing.play()
            return True

    def pause(self) -> None:
        with self._lock:
            playing = self._playing
            if playing is not None:
                playing.pause()

    def seek(self, offset: float) -> bool:
        """Seek the playing clip; False when nothing seekable is playing."""
        with self._lock:
            playing = self._playing
            if playing is None or playing.kind is not ItemKind.FILE:
                return False
            return playing.seek(offset)

    # ------------------------------------------------------------------
    # Rundown mutation
    # ------------------------------------------------------------------

    def add_file_item(self, media: MediaFile, index: int) -> FileRundownItem:
        """
        Insert a clip at index.

        Raises:
            ValueError: If index is negative or past the end of the rundown
        """
        item = FileRundownItem(media, self._device)
        self._add_to_queue(item, index)
        return item

    def add_live_item(self, source: LiveSource, index: int) -> LiveRundownItem:
        """
        Insert a live input at index.

        Raises:
            ValueError: If index is negative or past the end of the rundown
        """
        item = LiveRundownItem(source, self._device)
        self._add_to_queue(item, index)
        return item

    def submit(self, media: MediaFile) -> FileRundownItem:
        """Append a clip sent from the media browser and announce it."""
        with self._lock:
            item = FileRundownItem(media, self._device)
            self._add_to_queue(item, len(self._rundown))
            self._emit("on_item_submitted", item)
            return item

    def _add_to_queue(self, item: RundownItem, index: int) -> None:
        with self._lock:
            if index < 0 or index > len(self._rundown):
                raise ValueError(
                    f"Invalid rundown index {index} (rundown has {len(self._rundown)} items)"
                )
            if self.add_items_with_auto_play:
                item.is_auto_start = True
            item.attach(self.notify)
            self._rundown.insert(index, item)
            logger.info(f"[RUNDOWN] {self.name}: added {item.name} at {index}")
            self._update_next()

    def move_item(self, src_index: int, dest_index: int) -> None:
        """
        Move the item at src_index to dest_index.

        Raises:
            IndexError: If either index is out of range
        """
        with self._lock:
            if not 0 <= src_index < len(self._rundown):
                raise IndexError(f"Invalid source index {src_index} (rundown has {len(self._rundown)} items)")
            if not 0 <= dest_index < len(self._rundown):
                raise IndexError(f"Invalid destination index {dest_index} (rundown has {len(self._rundown)} items)")
            item = self._rundown.pop(src_index)
            self._rundown.insert(dest_index, item)
            logger.debug(f"[RUNDOWN] {self.name}: moved {item.name} {src_index} -> {dest_index}")
            self._update_next()

    def remove_item(self, item: RundownItem) -> bool:
        """
        Remove item from the rundown.

        The playing item keeps playing and is only unloaded when it is replaced;
        every other item is disposed right away.

        Returns:
            False if item is not part of this rundown
        """
        with self._lock:
            if item not in self._rundown:
                return False
            self._rundown.remove(item)
            if item is self._next:
                self._next = None
            if item is not self._playing:
                item.detach()
                item.dispose()
            logger.info(f"[RUNDOWN] {self.name}: removed {item.name}")
            self._emit("on_item_removed", item)
            self._update_next()
            return True

    def delete_disabled(self) -> None:
        """Remove every disabled item."""
        with self._lock:
            while True:
                item = next((i for i in self._rundown if i.is_disabled), None)
                if item is None:
                    break
                self.remove_item(item)

    def clear(self) -> None:
        """Unload the playing and next items, empty the rundown and clear the device."""
        with self._lock:
            self._set_playing(None)
            self._set_next(None)
            for item in list(self._rundown):
                self.remove_item(item)
            self._device.clear()
            logger.info(f"[RUNDOWN] {self.name}: cleared")

    # ------------------------------------------------------------------
    # Item notifications
    # ------------------------------------------------------------------

    def notify(self, notification: ItemNotification) -> None:
        """
        Single entry point for notifications posted by rundown items.

        Args:
            notification: Message tagged with the posting item's id
        """
        kind = notification.kind
        if kind is NotificationKind.POSITION:
            self._handle_position(notification)
        elif kind is NotificationKind.STOPPED:
            self._handle_stopped(notification)
        elif kind is NotificationKind.PROPERTY_CHANGED:
            self._handle_property_changed(notification)
        elif kind is NotificationKind.REMOVE_REQUESTED:
            self._handle_remove_requested(notification)

    def _handle_position(self, notification: ItemNotification) -> None:
        # Device thread: never wait for the lock, a skipped frame is retried on the next one
        playing = self._playing
        if playing is None or playing.item_id != notification.item_id:
            return
        elapsed = notification.elapsed
        self._emit("on_position", elapsed)
        if playing.kind is not ItemKind.FILE:
            return
        if not self._lock.acquire(blocking=False):
            logger.debug(f"[PRELOAD] {self.name}: rundown busy, skipping frame at {elapsed:.3f}s")
            return
        try:
            if self._playing is not playing:
                return
            next_item = self._next
            if next_item is None:
                return
            duration = playing.media.duration
            if duration is None:
                return
            if duration - elapsed >= self._preload_time:
                return
            self._stage_next(next_item)
        finally:
            self._lock.release()

    def _stage_next(self, next_item: RundownItem) -> None:
        try:
            if not next_item.prepare(self.audio_channel_count):
                return  # already staged for this cycle
        except Exception as e:
            logger.error(f"[PRELOAD] {self.name}: failed to prepare {next_item.name}: {e}", exc_info=True)
            return
        logger.info(f"[PRELOAD] {self.name}: staging {next_item.name}")
        try:
            self._device.preload(next_item.input)
        except Exception as e:
            logger.error(f"[PRELOAD] {self.name}: device refused {next_item.name}: {e}", exc_info=True)
            # Leave it unprepared so promotion loads it explicitly
            next_item.unload()

    def _handle_stopped(self, notification: ItemNotification) -> None:
        playing = self._playing
        if playing is None or playing.item_id != notification.item_id:
            logger.warning(
                f"[ADVANCE] {self.name}: ignoring stop from item {notification.item_id}: not the playing item"
            )
            return
        if not self._is_initialized:
            logger.warning(f"[ADVANCE] {self.name}: ignoring stop of {playing.name}: player not initialized")
            return
        with self._idle:
            self._pending_stops += 1
        self._stop_queue.put(notification.item_id)

    def _handle_property_changed(self, notification: ItemNotification) -> None:
        if notification.property_name not in ("is_auto_start", "is_disabled"):
            return
        with self._lock:
            if self._find_item(notification.item_id) is None:
                return
            self._update_next()

    def _handle_remove_requested(self, notification: ItemNotification) -> None:
        with self._lock:
            item = self._find_item(notification.item_id)
            if item is None:
                logger.warning(f"[RUNDOWN] {self.name}: remove requested for unknown item {notification.item_id}")
                return
            self.remove_item(item)

    def _find_item(self, item_id: uuid.UUID) -> Optional[RundownItem]:
        for item in self._rundown:
            if item.item_id == item_id:
                return item
        return None

    # ------------------------------------------------------------------
    # Auto-advance (stop worker thread)
    # ------------------------------------------------------------------

    def _stop_worker_loop(self) -> None:
        logger.debug(f"[ADVANCE] {self.name}: stop worker started")
        while True:
            item_id = self._stop_queue.get()
            if item_id is None:
                break
            try:
                self._advance(item_id)
            except Exception as e:
                logger.error(f"[ADVANCE] {self.name}: error advancing rundown: {e}", exc_info=True)
            finally:
                with self._idle:
                    self._pending_stops -= 1
                    self._idle.notify_all()
        logger.debug(f"[ADVANCE] {self.name}: stop worker exited")

    def _advance(self, stopped_item_id: uuid.UUID) -> None:
        with self._lock:
            playing = self._playing
            if playing is None or playing.item_id != stopped_item_id:
                logger.warning(f"[ADVANCE] {self.name}: stale stop for item {stopped_item_id}, ignoring")
                return
            next_item = self._next
            if next_item is None:
                logger.info(f"[ADVANCE] {self.name}: {playing.name} finished, nothing to follow")
                self._set_playing(None)
            else:
                try:
                    self._promote(next_item)
                    return
                except Exception as e:
                    # Rolled back to empty: report the rundown as stopped
                    logger.error(f"[ADVANCE] {self.name}: failed to start {next_item.name}: {e}", exc_info=True)
        self._emit("on_stopped")

    def _promote(self, next_item: RundownItem) -> None:
        # The successor is already staged on the device: skip the unload/load path
        old = self._playing
        logger.info(f"[ADVANCE] {self.name}: {old.name if old else None} -> {next_item.name}")
        self._next = None
        self._playing = next_item
        self._internal_unload(old)
        try:
            if next_item.prepare(self.audio_channel_count):
                # Stop arrived before the preload window (short clip or seek)
                self._device.load(next_item.input)
            next_item.play()
        except Exception:
            self._abort_load(next_item)
            raise
        self._emit("on_item_loaded", next_item)
        self._update_next()

    # ------------------------------------------------------------------
    # Playing / next slots (caller holds the lock)
    # ------------------------------------------------------------------

    def _set_playing(self, item: Optional[RundownItem]) -> None:
        old = self._playing
        if old is item:
            return
        self._playing = item
        if item is not None and self._next is item:
            self._next = None
        self._internal_unload(old)
        try:
            self._internal_load(item)
        except Exception:
            self._abort_load(item)
            raise
        self._update_next()

    def _internal_unload(self, item: Optional[RundownItem]) -> None:
        if item is None:
            return
        logger.debug(f"[RUNDOWN] {self.name}: unloading {item.name}")
        if item.kind is ItemKind.FILE and self._disable_after_unload:
            item.is_disabled = True
        item.pause()
        item.unload()
        if item not in self._rundown:
            # Removed while playing: it was kept attached until now
            item.detach()

    def _internal_load(self, item: Optional[RundownItem]) -> None:
        if item is not None:
            logger.info(f"[RUNDOWN] {self.name}: loading {item.name}")
            item.prepare(self.audio_channel_count)
            self._device.load(item.input)
            if item.is_auto_start:
                item.play()
        self._emit("on_item_loaded", item)

    def _abort_load(self, item: RundownItem) -> None:
        # Device refused the item: leave the player empty so the caller can retry
        logger.error(f"[RUNDOWN] {self.name}: could not load {item.name}, player is empty")
        self._playing = None
        item.unload()
        if item not in self._rundown:
            item.detach()
        self._emit("on_item_loaded", None)
        self._update_next()

    def _update_next(self) -> None:
        self._set_next(self._find_next_auto_play_item())

    def _set_next(self, item: Optional[RundownItem]) -> None:
        old = self._next
        if old is item:
            return
        self._next = item
        if old is not None and old is not self._playing:
            old.unload()
        logger.debug(f"[RUNDOWN] {self.name}: next item is {item.name if item else None}")

    def _find_next_auto_play_item(self) -> Optional[RundownItem]:
        current = self._playing
        found = False
        for item in self._rundown:
            if found and item.is_auto_start and not item.is_disabled:
                return item
            if item is current:
                found = True
        if self._is_loop:
            for item in self._rundown:
                if item is not current and item.is_auto_start and not item.is_disabled:
                    return item
        return None

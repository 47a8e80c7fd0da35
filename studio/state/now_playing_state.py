"""
Now Playing State Manager

Provides read-only state for the item currently loaded on a rundown player.
Registered as a RundownPlayerCallback; the player is the only writer.
"""

import logging
import time
import threading
from dataclasses import dataclass
from typing import Optional

from studio.broadcast_core.rundown_item import ItemKind, RundownItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NowPlayingState:
    """
    Immutable state snapshot for the loaded rundown item.

    Only facts known when the item was loaded; no elapsed/remaining fields.
    """
    name: str
    kind: str  # "file" or "live"
    loaded_at: float  # wall-clock timestamp (time.time())
    duration_sec: Optional[float] = None
    file_path: Optional[str] = None


class NowPlayingStateManager:
    """
    Manages NowPlayingState lifecycle.

    State is created on on_item_loaded, cleared when the player unloads
    everything or stops at the end of the rundown.
    """

    def __init__(self):
        """Initialize state manager."""
        self._state: Optional[NowPlayingState] = None
        self._lock = threading.RLock()  # Thread-safe state access
        self._listeners = []  # Callbacks for state changes

    def on_item_loaded(self, item: Optional[RundownItem]) -> None:
        """
        Handle the player's item-loaded event.

        Args:
            item: Item now loaded, or None when nothing is loaded
        """
        with self._lock:
            if item is None:
                self._clear()
                return

            duration_sec = None
            file_path = None
            if item.kind is ItemKind.FILE:
                duration_sec = item.media.duration
                file_path = item.media.path

            self._state = NowPlayingState(
                name=item.name,
                kind=item.kind.value,
                loaded_at=time.time(),
                duration_sec=duration_sec,
                file_path=file_path,
            )

            logger.debug(f"[NOW_PLAYING] State created: {self._state.kind} - {self._state.name}")

            self._notify_listeners(self._state)

    def on_stopped(self) -> None:
        """Handle the player's stopped event (end of rundown)."""
        with self._lock:
            self._clear()

    def on_item_removed(self, item: RundownItem) -> None:
        pass

    def on_item_submitted(self, item: RundownItem) -> None:
        pass

    def on_position(self, elapsed: float) -> None:
        pass

    def get_state(self) -> Optional[NowPlayingState]:
        """
        Get current state (read-only).

        Returns:
            Current NowPlayingState or None if nothing is loaded
        """
        with self._lock:
            return self._state

    def add_listener(self, callback) -> None:
        """
        Add a listener callback for state changes.

        Callback will be called with (state: Optional[NowPlayingState]) when state changes.

        Args:
            callback: Function to call on state changes
        """
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback) -> None:
        """
        Remove a listener callback.

        Args:
            callback: Function to remove
        """
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _clear(self) -> None:
        if self._state is None:
            return
        logger.debug(f"[NOW_PLAYING] State cleared: {self._state.kind} - {self._state.name}")
        self._state = None
        self._notify_listeners(None)

    def _notify_listeners(self, state: Optional[NowPlayingState]) -> None:
        # Copy listeners list to avoid lock contention during callback execution
        listeners = self._listeners.copy()

        for callback in listeners:
            try:
                callback(state)
            except Exception as e:
                # Listener failures must not affect playout
                logger.debug(f"[NOW_PLAYING] Listener callback error: {e}")

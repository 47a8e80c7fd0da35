"""
Broadcast Core module for the Studio rundown player.

This package contains the rundown items, the rundown player and the
playback device interface they drive.
"""

from studio.broadcast_core.media_file import LiveSource, MediaFile, probe_media
from studio.broadcast_core.playback_device import FileInputHandle, InputHandle, PlaybackDevice
from studio.broadcast_core.rundown_item import FileRundownItem, ItemKind, LiveRundownItem, RundownItem
from studio.broadcast_core.rundown_player import RundownPlayer, RundownPlayerCallback

__all__ = [
    "LiveSource",
    "MediaFile",
    "probe_media",
    "FileInputHandle",
    "InputHandle",
    "PlaybackDevice",
    "FileRundownItem",
    "ItemKind",
    "LiveRundownItem",
    "RundownItem",
    "RundownPlayer",
    "RundownPlayerCallback",
]

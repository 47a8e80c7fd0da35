"""
Outputs module for the Studio rundown player.

Sinks receive the frames rendered by a playback device.
"""

from .base_sink import BaseSink
from .null_sink import NullSink

__all__ = ["BaseSink", "NullSink"]

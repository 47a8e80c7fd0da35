"""
Studio rundown player.

Broadcast playout scheduling for file clips and live inputs on an output channel.
"""

__version__ = "0.1.0"

"""
Channel registry.

Holds one RundownPlayer per configured output channel and ties each
player's initialize/teardown to channel configuration changes and
application shutdown.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from studio.broadcast_core.playback_device import PlaybackDevice
from studio.broadcast_core.rundown_player import RundownPlayer
from studio.config import ChannelConfig, StudioConfig

logger = logging.getLogger(__name__)

DeviceFactory = Callable[[ChannelConfig], PlaybackDevice]


@dataclass
class ChannelUpdate:
    """A channel of the new configuration and whether its player must restart."""
    channel: ChannelConfig
    needs_reinitialization: bool = False


class ChannelRegistry:
    """
    Owner of the rundown players of the application.

    Constructed explicitly and passed to whatever needs players.
    """

    def __init__(self, config: StudioConfig, device_factory: DeviceFactory):
        """
        Initialize an empty registry.

        Args:
            config: Studio configuration (rundown policy for new players)
            device_factory: Creates the playback device of a channel
        """
        self.config = config
        self._device_factory = device_factory
        self._players: Dict[str, RundownPlayer] = {}

    @property
    def players(self) -> List[RundownPlayer]:
        return list(self._players.values())

    def get_player(self, name: str) -> Optional[RundownPlayer]:
        return self._players.get(name)

    def initialize(self) -> None:
        """Create and initialize a player for every configured channel."""
        self.update_channels(
            [ChannelUpdate(channel=channel, needs_reinitialization=True) for channel in self.config.channels]
        )

    def update_channels(self, updates: List[ChannelUpdate]) -> None:
        """
        Apply a new channel configuration.

        Players of channels no longer configured are disposed; players of
        channels flagged needs_reinitialization are restarted; new channels
        get a new player.

        Args:
            updates: Channels of the new configuration, in order
        """
        wanted = {update.channel.name for update in updates}
        for name in [name for name in self._players if name not in wanted]:
            logger.info(f"[CHANNELS] Removing channel {name}")
            self._players.pop(name).dispose()

        players: Dict[str, RundownPlayer] = {}
        for update in updates:
            player = self._players.get(update.channel.name)
            if player is not None and player.channel != update.channel:
                # Output format changed: the old player cannot be reused
                logger.info(f"[CHANNELS] Recreating channel {update.channel.name} (format changed)")
                player.dispose()
                player = None
            if player is None:
                logger.info(f"[CHANNELS] Adding channel {update.channel.name}")
                device = self._device_factory(update.channel)
                player = RundownPlayer.from_config(device, update.channel, self.config)
            elif update.needs_reinitialization:
                logger.info(f"[CHANNELS] Reinitializing channel {update.channel.name}")
                player.uninitialize()
            if not player.is_initialized:
                player.initialize()
            players[update.channel.name] = player
        self._players = players

    def shutdown(self) -> None:
        """Dispose every player. The registry is empty afterwards."""
        for player in self.players:
            try:
                player.dispose()
            except Exception as e:
                logger.error(f"[CHANNELS] Error disposing channel {player.name}: {e}", exc_info=True)
        self._players.clear()
        logger.info("[CHANNELS] All channels shut down")

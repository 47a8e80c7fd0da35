"""
Configuration management for the Studio rundown player.

Reads configuration from .env file and environment variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/studio/rundown.env")

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = os.getenv("STUDIO_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file)

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_channel_names(channels_str: str) -> List[str]:
    """
    Parse output channel names from comma-separated string.

    Args:
        channels_str: Comma-separated list of channel names (e.g., "Channel 1,Channel 2")

    Returns:
        List of channel names in configuration order

    Raises:
        ValueError: If no names are given or a name is repeated
    """
    names = [name.strip() for name in channels_str.split(",") if name.strip()]
    if not names:
        raise ValueError("Channel list must contain at least one name")
    if len(set(names)) != len(names):
        raise ValueError(f"Channel names must be unique: {channels_str}")
    return names


@dataclass(frozen=True)
class ChannelConfig:
    """Configuration of one output channel (one rundown player per channel)."""

    name: str
    audio_channel_count: int = 2
    frame_rate: float = 25.0
    sample_rate: int = 48000

    @property
    def samples_per_frame(self) -> int:
        """Number of audio samples rendered per video frame."""
        return int(round(self.sample_rate / self.frame_rate))


@dataclass
class StudioConfig:
    """Studio configuration loaded from .env file and environment variables."""

    channels: List[ChannelConfig] = field(
        default_factory=lambda: [ChannelConfig(name="Channel 1")]
    )

    # Rundown policy
    preload_time_sec: float = 2.0
    add_items_with_auto_play: bool = False
    disable_after_unload: bool = False
    loop: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def load_config(cls) -> "StudioConfig":
        """
        Load configuration from environment variables.

        Returns:
            StudioConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        # Channels
        channel_names = _parse_channel_names(os.getenv("STUDIO_CHANNELS", "Channel 1"))

        audio_channel_count_str = os.getenv("STUDIO_AUDIO_CHANNEL_COUNT", "2")
        try:
            audio_channel_count = int(audio_channel_count_str)
        except ValueError:
            raise ValueError(f"Invalid STUDIO_AUDIO_CHANNEL_COUNT: {audio_channel_count_str} (must be an integer)")

        frame_rate_str = os.getenv("STUDIO_FRAME_RATE", "25")
        try:
            frame_rate = float(frame_rate_str)
        except ValueError:
            raise ValueError(f"Invalid STUDIO_FRAME_RATE: {frame_rate_str} (must be a number)")

        channels = [
            ChannelConfig(
                name=name,
                audio_channel_count=audio_channel_count,
                frame_rate=frame_rate,
            )
            for name in channel_names
        ]

        # Rundown policy
        preload_time_str = os.getenv("STUDIO_PRELOAD_TIME_SEC", "2.0")
        try:
            preload_time_sec = float(preload_time_str)
        except ValueError:
            raise ValueError(f"Invalid STUDIO_PRELOAD_TIME_SEC: {preload_time_str} (must be a number)")

        add_items_with_auto_play = _parse_bool(os.getenv("STUDIO_ADD_ITEMS_WITH_AUTO_PLAY", ""))
        disable_after_unload = _parse_bool(os.getenv("STUDIO_DISABLE_AFTER_UNLOAD", ""))
        loop = _parse_bool(os.getenv("STUDIO_LOOP", ""))

        # Logging
        log_level = os.getenv("STUDIO_LOG_LEVEL", "INFO")
        log_file = os.getenv("STUDIO_LOG_FILE")
        if log_file == "":
            log_file = None

        config = cls(
            channels=channels,
            preload_time_sec=preload_time_sec,
            add_items_with_auto_play=add_items_with_auto_play,
            disable_after_unload=disable_after_unload,
            loop=loop,
            log_level=log_level,
            log_file=log_file,
        )

        # Validate configuration
        config.validate()

        return config

    def get_channel(self, name: str) -> Optional[ChannelConfig]:
        """Return the channel configuration with the given name, if any."""
        for channel in self.channels:
            if channel.name == name:
                return channel
        return None

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.channels:
            raise ValueError("At least one output channel must be configured")

        names = [channel.name for channel in self.channels]
        if len(set(names)) != len(names):
            raise ValueError(f"Channel names must be unique: {', '.join(names)}")

        for channel in self.channels:
            if channel.audio_channel_count < 1 or channel.audio_channel_count > 16:
                raise ValueError(
                    f"Invalid audio channel count for {channel.name}: "
                    f"{channel.audio_channel_count} (must be 1-16)"
                )
            if channel.frame_rate <= 0:
                raise ValueError(f"Invalid frame rate for {channel.name}: {channel.frame_rate} (must be > 0)")
            if channel.sample_rate <= 0:
                raise ValueError(f"Invalid sample rate for {channel.name}: {channel.sample_rate} (must be > 0)")

        if self.preload_time_sec < 0:
            raise ValueError(f"Invalid preload time: {self.preload_time_sec} (must be >= 0)")

        # Validate log level
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(valid_log_levels)})"
            )


def load_config() -> StudioConfig:
    """
    Load and validate Studio configuration from environment variables.

    Returns:
        StudioConfig instance with loaded and validated values

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return StudioConfig.load_config()
    except ValueError as e:
        logger.error(f"[CONFIG] Configuration error: {e}")
        raise

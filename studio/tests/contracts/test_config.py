"""
Tests for configuration loading and validation.

Environment variables are set with monkeypatch; STUDIO_ENV_FILE points at a
missing file so no .env on the test machine is read.
"""

import pytest

from studio.config import ChannelConfig, StudioConfig, load_config

STUDIO_VARS = [
    "STUDIO_CHANNELS",
    "STUDIO_AUDIO_CHANNEL_COUNT",
    "STUDIO_FRAME_RATE",
    "STUDIO_PRELOAD_TIME_SEC",
    "STUDIO_ADD_ITEMS_WITH_AUTO_PLAY",
    "STUDIO_DISABLE_AFTER_UNLOAD",
    "STUDIO_LOOP",
    "STUDIO_LOG_LEVEL",
    "STUDIO_LOG_FILE",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in STUDIO_VARS:
        # setenv first so variables written by load_dotenv are removed on undo
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("STUDIO_ENV_FILE", str(tmp_path / "missing.env"))
    return monkeypatch


class TestDefaults:

    def test_defaults(self, clean_env):
        config = load_config()
        assert config.channels == [ChannelConfig(name="Channel 1")]
        assert config.preload_time_sec == 2.0
        assert config.add_items_with_auto_play is False
        assert config.disable_after_unload is False
        assert config.loop is False
        assert config.log_level == "INFO"
        assert config.log_file is None

    def test_samples_per_frame(self):
        assert ChannelConfig(name="PGM").samples_per_frame == 1920
        assert ChannelConfig(name="PGM", frame_rate=29.97).samples_per_frame == 1602


class TestEnvironment:

    def test_channels_and_format(self, clean_env):
        clean_env.setenv("STUDIO_CHANNELS", "PGM, PVW")
        clean_env.setenv("STUDIO_AUDIO_CHANNEL_COUNT", "8")
        clean_env.setenv("STUDIO_FRAME_RATE", "50")
        config = load_config()
        assert [c.name for c in config.channels] == ["PGM", "PVW"]
        assert all(c.audio_channel_count == 8 for c in config.channels)
        assert all(c.frame_rate == 50.0 for c in config.channels)
        assert config.get_channel("PVW").name == "PVW"
        assert config.get_channel("AUX") is None

    @pytest.mark.parametrize("value,expected", [
        ("1", True), ("true", True), ("YES", True), ("on", True),
        ("0", False), ("false", False), ("", False),
    ])
    def test_boolean_flags(self, clean_env, value, expected):
        clean_env.setenv("STUDIO_LOOP", value)
        clean_env.setenv("STUDIO_DISABLE_AFTER_UNLOAD", value)
        clean_env.setenv("STUDIO_ADD_ITEMS_WITH_AUTO_PLAY", value)
        config = load_config()
        assert config.loop is expected
        assert config.disable_after_unload is expected
        assert config.add_items_with_auto_play is expected

    def test_env_file_does_not_override_environment(self, clean_env, tmp_path):
        env_file = tmp_path / "rundown.env"
        env_file.write_text("STUDIO_PRELOAD_TIME_SEC=3.5\nSTUDIO_LOG_LEVEL=DEBUG\n")
        clean_env.setenv("STUDIO_ENV_FILE", str(env_file))
        clean_env.setenv("STUDIO_LOG_LEVEL", "WARNING")
        config = load_config()
        assert config.preload_time_sec == 3.5
        assert config.log_level == "WARNING"

    def test_empty_log_file_means_console_only(self, clean_env):
        clean_env.setenv("STUDIO_LOG_FILE", "")
        assert load_config().log_file is None


class TestValidation:

    @pytest.mark.parametrize("name,value", [
        ("STUDIO_AUDIO_CHANNEL_COUNT", "two"),
        ("STUDIO_AUDIO_CHANNEL_COUNT", "0"),
        ("STUDIO_AUDIO_CHANNEL_COUNT", "17"),
        ("STUDIO_FRAME_RATE", "0"),
        ("STUDIO_FRAME_RATE", "fast"),
        ("STUDIO_PRELOAD_TIME_SEC", "-1"),
        ("STUDIO_PRELOAD_TIME_SEC", "soon"),
        ("STUDIO_LOG_LEVEL", "VERBOSE"),
        ("STUDIO_CHANNELS", "PGM,PGM"),
        ("STUDIO_CHANNELS", " , "),
    ])
    def test_invalid_values_raise(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValueError):
            load_config()

    def test_duplicate_channels_rejected(self):
        config = StudioConfig(channels=[ChannelConfig(name="PGM"), ChannelConfig(name="PGM")])
        with pytest.raises(ValueError):
            config.validate()

    def test_no_channels_rejected(self):
        with pytest.raises(ValueError):
            StudioConfig(channels=[]).validate()

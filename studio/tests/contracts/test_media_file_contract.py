"""
Contract tests for media descriptors and ffprobe probing.

ffprobe is never executed; subprocess.run is replaced with a stub.
"""

import subprocess
from unittest.mock import Mock

from studio.broadcast_core import media_file
from studio.broadcast_core.media_file import MediaFile, probe_media


def test_name_defaults_to_file_name():
    assert MediaFile(path="/media/clips/news.mxf").name == "news.mxf"
    assert MediaFile(path="/media/clips/news.mxf", name="News").name == "News"


def test_probe_reads_duration_and_title(monkeypatch):
    result = Mock(returncode=0, stdout='{"format": {"duration": "12.5", "tags": {"title": "Headlines"}}}')
    monkeypatch.setattr(media_file.subprocess, "run", lambda *args, **kwargs: result)

    media = probe_media("/media/clips/news.mxf")
    assert media.duration == 12.5
    assert media.name == "Headlines"
    assert media.metadata == {"title": "Headlines"}
    assert media.path == "/media/clips/news.mxf"


def test_probe_without_ffprobe_leaves_duration_unknown(monkeypatch):
    def missing(*args, **kwargs):
        raise FileNotFoundError("ffprobe")

    monkeypatch.setattr(media_file.subprocess, "run", missing)
    media = probe_media("/media/clips/news.mxf")
    assert media.duration is None
    assert media.name == "news.mxf"
    assert media.metadata is None


def test_probe_timeout_and_bad_output(monkeypatch):
    def slow(*args, **kwargs):
        raise subprocess.TimeoutExpired(cmd="ffprobe", timeout=2.0)

    monkeypatch.setattr(media_file.subprocess, "run", slow)
    assert probe_media("/media/a.mxf").duration is None

    garbage = Mock(returncode=0, stdout="not json")
    monkeypatch.setattr(media_file.subprocess, "run", lambda *args, **kwargs: garbage)
    assert probe_media("/media/a.mxf").duration is None

    failed = Mock(returncode=1, stdout="")
    monkeypatch.setattr(media_file.subprocess, "run", lambda *args, **kwargs: failed)
    assert probe_media("/media/a.mxf").duration is None

"""
Media descriptors for rundown items.

A MediaFile describes a clip on disk; a LiveSource describes a live input
(capture card, NDI source, ...). Both are supplied by the media catalog and
are only read by the rundown player.
"""

import json
import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class MediaFile:
    """
    A playable media file.

    Attributes:
        path: Full path to the media file
        name: Display name (defaults to the file name)
        duration: Media duration in seconds, None if not known yet
        thumbnail: Opaque thumbnail reference supplied by the catalog
        metadata: Optional tags (title, artist, ...) extracted by probing
    """
    path: str
    name: str = ""
    duration: Optional[float] = None
    thumbnail: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = field(default=None)

    def __post_init__(self):
        if not self.name:
            self.name = os.path.basename(self.path)


@dataclass
class LiveSource:
    """A live input available on the machine."""
    name: str
    device_index: Optional[int] = None
    thumbnail: Optional[Any] = None


def probe_media(path: str, timeout: float = 2.0) -> MediaFile:
    """
    Build a MediaFile for a path using ffprobe.

    Uses a single ffprobe call to get both format duration and tags.
    Probe failures leave duration as None; they never raise.

    Args:
        path: Path to media file
        timeout: Seconds to wait for ffprobe

    Returns:
        MediaFile describing the path
    """
    metadata: Dict[str, Any] = {}
    duration: Optional[float] = None

    try:
        cmd = [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration:format_tags=title",
            "-of", "json",
            path
        ]
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout
        )
        if result.returncode == 0 and result.stdout.strip():
            try:
                data = json.loads(result.stdout)
                format_info = data.get("format", {})

                duration_str = format_info.get("duration")
                if duration_str:
                    duration = float(duration_str)

                tags = format_info.get("tags", {})
                if "title" in tags:
                    metadata["title"] = tags["title"]
            except (json.JSONDecodeError, KeyError, ValueError):
                logger.debug(f"[MEDIA] Unparseable ffprobe output for {path}")
        else:
            logger.debug(f"[MEDIA] ffprobe failed for {path} (rc={result.returncode})")
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug(f"[MEDIA] ffprobe unavailable for {path}: {e}")

    return MediaFile(
        path=path,
        name=metadata.get("title") or os.path.basename(path),
        duration=duration,
        metadata=metadata or None,
    )

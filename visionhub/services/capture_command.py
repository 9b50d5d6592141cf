# visionhub/services/capture_command.py
"""
Builds ffmpeg command lines and output paths for recordings and thumbnails.

Layout: <storage root>/<device id>/<safe name>_<timestamp>.mp4
        <storage root>/<device id>/<safe name>_<timestamp>_thumb.jpg
"""

import os
import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote

_UNSAFE = re.compile(r"[^A-Za-z0-9]")
_KNOWN_SCHEMES = ("rtsp://", "rtsps://", "rtmp://", "http://", "https://")


def safe_filename(name: str) -> str:
    return _UNSAFE.sub("_", name) or "device"


def build_input_url(stream_url: str, username: Optional[str] = None,
                    password: Optional[str] = None) -> str:
    """Default to rtsp:// and embed credentials only when both are present."""
    url = stream_url if stream_url.startswith(_KNOWN_SCHEMES) else f"rtsp://{stream_url}"
    if username and password:
        creds = f"{quote(username, safe='')}:{quote(password, safe='')}@"
        url = url.replace("://", f"://{creds}", 1)
    return url


def recording_paths(storage_root: str, device_id: str, device_name: str,
                    started_at: datetime) -> tuple[str, str, str]:
    """Returns (device directory, video path, thumbnail path)."""
    device_dir = os.path.join(storage_root, device_id)
    stem = f"{safe_filename(device_name)}_{started_at.strftime('%Y-%m-%dT%H-%M-%S-%f')}"
    return (
        device_dir,
        os.path.join(device_dir, f"{stem}.mp4"),
        os.path.join(device_dir, f"{stem}_thumb.jpg"),
    )


def _input_args(input_url: str) -> list[str]:
    args = []
    if input_url.startswith(("rtsp://", "rtsps://")):
        args += ["-rtsp_transport", "tcp"]
    return args + ["-i", input_url]


def scene_threshold(sensitivity: int) -> str:
    return f"{max(0, min(100, sensitivity)) / 100:g}"


def build_record_command(ffmpeg: str, input_url: str, output_path: str, device_name: str,
                         motion_detection: bool = False, motion_sensitivity: int = 50) -> list[str]:
    """
    Stream copy by default. With motion detection the video has to be
    re-encoded, since the scene-change filter cannot run on copied packets.
    """
    if motion_detection:
        video = [
            "-vf", f"select='gte(scene,{scene_threshold(motion_sensitivity)})'",
            "-vsync", "vfr",
            "-c:v", "libx264", "-preset", "veryfast",
        ]
    else:
        video = ["-c:v", "copy"]

    return [
        ffmpeg, "-y",
        *_input_args(input_url),
        *video,
        "-c:a", "aac",
        "-metadata", f"title={device_name}",
        "-metadata", "comment=Recorded by VisionHub",
        output_path,
    ]


def build_thumbnail_command(ffmpeg: str, input_url: str, thumbnail_path: str) -> list[str]:
    return [
        ffmpeg, "-y",
        *_input_args(input_url),
        "-vframes", "1",
        "-q:v", "2",
        thumbnail_path,
    ]

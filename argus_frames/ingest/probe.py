from __future__ import annotations

import json
import logging
from typing import Any

from argus_frames.errors import InvalidVideoFileError, MetadataParsingError
from argus_frames.ingest.tools import ToolRunner
from argus_frames.models import VideoMetadata

DEFAULT_FPS = 30.0
VFR_TOLERANCE_FPS = 1.0

logger = logging.getLogger(__name__)


def read_metadata(video_path: str, ffprobe_path: str, runner: ToolRunner) -> VideoMetadata:
    """Probe a video with ffprobe and normalize its first video stream."""

    payload = _run_ffprobe(video_path, ffprobe_path, runner)
    metadata = parse_probe_payload(payload)
    logger.debug(
        "Probed %s: %.3fs %s @ %.3f fps (%s)",
        video_path,
        metadata.duration,
        metadata.resolution,
        metadata.fps,
        metadata.codec,
    )
    return metadata


def _run_ffprobe(video_path: str, ffprobe_path: str, runner: ToolRunner) -> Any:
    command = [
        ffprobe_path,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(video_path),
    ]

    completed = runner.run(command)
    if completed.returncode != 0:
        raise InvalidVideoFileError(str(video_path), completed.stderr or "Unknown error")

    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise MetadataParsingError("Invalid JSON") from exc


def parse_probe_payload(payload: Any) -> VideoMetadata:
    if not isinstance(payload, dict):
        raise MetadataParsingError("Invalid JSON")

    stream_entries = payload.get("streams") or []
    format_entry = payload.get("format") or {}
    if not isinstance(format_entry, dict):
        format_entry = {}

    video_stream = next(
        (
            stream
            for stream in stream_entries
            if isinstance(stream, dict) and stream.get("codec_type") == "video"
        ),
        None,
    )
    if video_stream is None:
        raise MetadataParsingError("No video stream found")

    width = _to_int(video_stream.get("width"))
    height = _to_int(video_stream.get("height"))
    if width is None or height is None:
        raise MetadataParsingError("Missing dimensions")

    duration = _to_float(format_entry.get("duration"))
    if duration is None:
        duration = _to_float(video_stream.get("duration"))

    r_fps = parse_fraction(video_stream.get("r_frame_rate"))
    avg_fps = parse_fraction(video_stream.get("avg_frame_rate"))
    if avg_fps > 0:
        fps = avg_fps
    elif r_fps > 0:
        fps = r_fps
    else:
        fps = DEFAULT_FPS

    return VideoMetadata(
        duration=duration if duration is not None else 0.0,
        width=width,
        height=height,
        fps=fps,
        codec=video_stream.get("codec_name") or "unknown",
        bitrate=_to_int(format_entry.get("bit_rate")),
        is_variable_frame_rate=r_fps > 0 and avg_fps > 0 and abs(r_fps - avg_fps) > VFR_TOLERANCE_FPS,
    )


def parse_fraction(raw_value: Any) -> float:
    """Parse an ffprobe "N/D" rate, returning 0.0 for anything unusable."""

    if not isinstance(raw_value, str):
        return 0.0

    parts = raw_value.split("/")
    if len(parts) != 2:
        return 0.0

    try:
        numerator = float(parts[0])
        denominator = float(parts[1])
    except ValueError:
        return 0.0

    if denominator <= 0:
        return 0.0
    return numerator / denominator


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        return None


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", "") or isinstance(raw_value, bool):
        return None
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        return None

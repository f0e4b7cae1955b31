from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from argus_frames.extract.frames import FrameExtractor
from argus_frames.ingest.tools import ToolOutput, ToolPaths

FAKE_TOOLS = ToolPaths(ffmpeg="/usr/bin/ffmpeg", ffprobe="/usr/bin/ffprobe")


def probe_payload(
    duration: str | None = "60.000000",
    width: int | None = 1280,
    height: int | None = 720,
    r_frame_rate: str = "30/1",
    avg_frame_rate: str = "30/1",
    bit_rate: str | None = "2500000",
) -> dict[str, Any]:
    video_stream: dict[str, Any] = {
        "index": 0,
        "codec_type": "video",
        "codec_name": "h264",
        "r_frame_rate": r_frame_rate,
        "avg_frame_rate": avg_frame_rate,
        "duration": "59.900000",
    }
    if width is not None:
        video_stream["width"] = width
    if height is not None:
        video_stream["height"] = height

    format_entry: dict[str, Any] = {"format_name": "mov,mp4,m4a,3gp,3g2,mj2"}
    if duration is not None:
        format_entry["duration"] = duration
    if bit_rate is not None:
        format_entry["bit_rate"] = bit_rate

    return {
        "streams": [
            {"index": 1, "codec_type": "audio", "codec_name": "aac"},
            video_stream,
        ],
        "format": format_entry,
    }


class FakeRunner:
    """Stands in for ffprobe/ffmpeg: canned probe JSON, frame files written on demand."""

    def __init__(
        self,
        payload: dict[str, Any] | None = None,
        failing_timestamps: set[str] | None = None,
        probe_returncode: int = 0,
        probe_stdout: str | None = None,
    ) -> None:
        self.payload = payload if payload is not None else probe_payload()
        self.failing_timestamps = failing_timestamps or set()
        self.probe_returncode = probe_returncode
        self.probe_stdout = probe_stdout
        self.commands: list[list[str]] = []

    @property
    def grab_commands(self) -> list[list[str]]:
        return [command for command in self.commands if command[0] == FAKE_TOOLS.ffmpeg]

    def run(self, args: list[str]) -> ToolOutput:
        self.commands.append(list(args))
        if args[0] == FAKE_TOOLS.ffprobe:
            if self.probe_returncode != 0:
                return ToolOutput(self.probe_returncode, "", "moov atom not found")
            stdout = self.probe_stdout if self.probe_stdout is not None else json.dumps(self.payload)
            return ToolOutput(0, stdout, "")

        timestamp = args[args.index("-ss") + 1]
        if timestamp in self.failing_timestamps:
            return ToolOutput(1, "", "Output file is empty, nothing was encoded")

        output_path = Path(args[-1])
        output_path.write_bytes(f"jpeg@{timestamp}".encode("ascii"))
        return ToolOutput(0, "", "")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def extractor(tmp_path: Path, fake_runner: FakeRunner) -> FrameExtractor:
    return FrameExtractor(scratch_root=tmp_path / "scratch", tools=FAKE_TOOLS, runner=fake_runner)

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol

from argus_frames.errors import ToolNotFoundError


@dataclass(frozen=True, slots=True)
class ToolPaths:
    ffmpeg: str
    ffprobe: str


@dataclass(frozen=True, slots=True)
class ToolOutput:
    returncode: int
    stdout: str
    stderr: str


class ToolRunner(Protocol):
    def run(self, args: list[str]) -> ToolOutput: ...


class SubprocessRunner:
    """Run an external tool to completion and capture its output."""

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds

    def run(self, args: list[str]) -> ToolOutput:
        try:
            completed = subprocess.run(
                args,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise ToolNotFoundError(args[0]) from exc
        except subprocess.TimeoutExpired:
            return ToolOutput(
                returncode=-1,
                stdout="",
                stderr=f"{args[0]} timed out after {self.timeout_seconds}s",
            )

        return ToolOutput(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def locate_tools(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> ToolPaths:
    """Resolve ffmpeg and ffprobe on PATH once, failing on the first missing tool."""

    resolved: dict[str, str] = {}
    for name in (ffmpeg, ffprobe):
        path = shutil.which(name)
        if not path:
            raise ToolNotFoundError(name)
        resolved[name] = path

    return ToolPaths(ffmpeg=resolved[ffmpeg], ffprobe=resolved[ffprobe])

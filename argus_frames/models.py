from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

QUALITY_RANGE = (1, 31)


@dataclass(frozen=True, slots=True)
class VideoMetadata:
    """Normalized ffprobe view of the first video stream."""

    duration: float
    width: int
    height: int
    fps: float
    codec: str
    bitrate: int | None = None
    is_variable_frame_rate: bool = False

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    """Output shape of extracted frames.

    `quality` is passed to ffmpeg as `-q:v`; lower values mean higher JPEG quality.
    Height is derived by ffmpeg to keep the source aspect ratio.
    """

    target_width: int = 720
    quality: int = 5
    max_frames: int = 30

    def __post_init__(self) -> None:
        if self.target_width <= 0:
            raise ValueError(f"target_width must be positive, got {self.target_width}")
        low, high = QUALITY_RANGE
        if not low <= self.quality <= high:
            raise ValueError(f"quality must be between {low} and {high}, got {self.quality}")
        if self.max_frames < 1:
            raise ValueError(f"max_frames must be at least 1, got {self.max_frames}")

    @classmethod
    def quick(cls) -> ExtractionConfig:
        return cls(target_width=480, quality=10, max_frames=30)

    @classmethod
    def high_detail(cls) -> ExtractionConfig:
        return cls(target_width=480, quality=8, max_frames=180)

    @classmethod
    def simple(cls) -> ExtractionConfig:
        return cls(target_width=480, quality=10, max_frames=120)

    @classmethod
    def preset(cls, name: str) -> ExtractionConfig:
        normalized = name.strip().lower().replace("-", "_")
        factories = {
            "quick": cls.quick,
            "high_detail": cls.high_detail,
            "simple": cls.simple,
        }
        if normalized not in factories:
            raise ValueError(f"Unknown extraction preset: {name!r}. Expected one of: {', '.join(factories)}")
        return factories[normalized]()


@dataclass(frozen=True, slots=True)
class SimpleMode:
    """1 fps single pass, capped at 120 frames."""

    name = "simple"


@dataclass(frozen=True, slots=True)
class QuickMode:
    """3-6 segments with four anchor frames each."""

    name = "quick"


@dataclass(frozen=True, slots=True)
class HighDetailMode:
    """6-12 segments sampled densely, 80-180 frames total."""

    name = "high_detail"


@dataclass(frozen=True, slots=True)
class CustomMode:
    """Uniform sampling at `fps`, capped at `max_frames`, bucketed into 10s segments."""

    fps: float
    max_frames: int

    name = "custom"

    def __post_init__(self) -> None:
        if self.fps <= 0:
            raise ValueError(f"fps must be positive, got {self.fps}")
        if self.max_frames < 0:
            raise ValueError(f"max_frames must not be negative, got {self.max_frames}")


SamplingMode = Union[SimpleMode, QuickMode, HighDetailMode, CustomMode]


@dataclass(slots=True)
class Segment:
    """A contiguous `[start_time, end_time)` slice of the timeline."""

    index: int
    start_time: float
    end_time: float
    frame_indices: list[int] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(slots=True)
class SamplingPlan:
    """Timestamps to extract plus the global-pass and per-segment views over them."""

    timestamps: list[float]
    global_pass_indices: list[int]
    segments: list[Segment]
    duration: float
    mode: SamplingMode

    @property
    def global_pass_timestamps(self) -> list[float]:
        return [self.timestamps[idx] for idx in self.global_pass_indices]

    @property
    def frame_count(self) -> int:
        return len(self.timestamps)

    @property
    def estimated_cost(self) -> str:
        """Rough vision-model cost of sending every planned frame."""

        if isinstance(self.mode, SimpleMode):
            return "~$0.001-0.003"
        if isinstance(self.mode, QuickMode):
            return "~$0.003"
        if isinstance(self.mode, HighDetailMode):
            return "~$0.01"
        if self.frame_count <= 30:
            return "~$0.003"
        if self.frame_count <= 100:
            return "~$0.005"
        return "~$0.01"


@dataclass(slots=True)
class ExtractedFrame:
    path: Path
    timestamp: float
    index: int
    size_bytes: int
    base64_data: str


@dataclass(slots=True)
class ExtractionResult:
    """Frames from one extraction call.

    The result owns `scratch_dir` until `cleanup_result` removes it.
    """

    frames: list[ExtractedFrame]
    metadata: VideoMetadata
    scratch_dir: Path
    extraction_seconds: float

from __future__ import annotations

import base64
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING

from argus_frames.errors import NoFramesExtractedError, ResolutionTooLowError, VideoTooLongError
from argus_frames.ingest.probe import read_metadata
from argus_frames.ingest.tools import SubprocessRunner, ToolPaths, ToolRunner, locate_tools
from argus_frames.models import ExtractedFrame, ExtractionConfig, ExtractionResult, SamplingPlan, VideoMetadata
from argus_frames.sampling.planner import uniform_timestamps

if TYPE_CHECKING:
    from argus_frames.config import Settings

DEFAULT_MAX_DURATION_SECONDS = 120.0
MIN_WIDTH = 320
MIN_HEIGHT = 240
SCRATCH_PREFIX = "argus-frames-"

logger = logging.getLogger(__name__)


class FrameExtractor:
    """Grab still frames from a video with ffmpeg, one subprocess per timestamp."""

    def __init__(
        self,
        scratch_root: str | Path | None = None,
        tools: ToolPaths | None = None,
        runner: ToolRunner | None = None,
    ) -> None:
        self.scratch_root = Path(scratch_root) if scratch_root else Path(tempfile.gettempdir())
        self.tools = tools or locate_tools()
        self.runner = runner or SubprocessRunner()

    @classmethod
    def from_settings(cls, settings: Settings, runner: ToolRunner | None = None) -> FrameExtractor:
        return cls(
            scratch_root=settings.extraction.scratch_dir,
            tools=locate_tools(ffmpeg=settings.tools.ffmpeg, ffprobe=settings.tools.ffprobe),
            runner=runner or SubprocessRunner(timeout_seconds=settings.tools.timeout_seconds),
        )

    def get_metadata(self, video_path: str | Path) -> VideoMetadata:
        return read_metadata(str(video_path), self.tools.ffprobe, self.runner)

    def validate(
        self,
        metadata: VideoMetadata,
        max_duration: float = DEFAULT_MAX_DURATION_SECONDS,
        *,
        min_width: int = MIN_WIDTH,
        min_height: int = MIN_HEIGHT,
    ) -> None:
        validate_metadata(metadata, max_duration, min_width=min_width, min_height=min_height)

    def extract_frames(
        self,
        video_path: str | Path,
        timestamps: list[float],
        config: ExtractionConfig,
    ) -> ExtractionResult:
        """Extract one JPEG per timestamp into a fresh scratch directory.

        A timestamp whose grab leaves no output file is skipped. Only a run
        where nothing was produced raises `NoFramesExtractedError`. The caller
        owns the returned scratch directory and must release it with `cleanup`.
        """

        started_at = perf_counter()
        metadata = self.get_metadata(video_path)
        scratch_dir = self._create_scratch_dir()

        requested = list(timestamps)[: config.max_frames]
        try:
            frames = self._grab_frames(str(video_path), requested, config, scratch_dir)
        except BaseException:
            # nothing owns the scratch directory until a result is returned
            shutil.rmtree(scratch_dir, ignore_errors=True)
            raise

        if not frames:
            shutil.rmtree(scratch_dir, ignore_errors=True)
            raise NoFramesExtractedError(len(requested))

        elapsed = perf_counter() - started_at
        logger.info(
            "Extracted %d/%d frames from %s in %.2fs",
            len(frames),
            len(requested),
            video_path,
            elapsed,
        )
        return ExtractionResult(
            frames=frames,
            metadata=metadata,
            scratch_dir=scratch_dir,
            extraction_seconds=elapsed,
        )

    def extract_frames_at_fps(
        self,
        video_path: str | Path,
        fps: float,
        config: ExtractionConfig,
    ) -> ExtractionResult:
        metadata = self.get_metadata(video_path)
        timestamps = uniform_timestamps(metadata.duration, fps, config.max_frames)
        return self.extract_frames(video_path, timestamps, config)

    def cleanup(self, result: ExtractionResult) -> None:
        cleanup_result(result)

    def _grab_frames(
        self,
        video_path: str,
        requested: list[float],
        config: ExtractionConfig,
        scratch_dir: Path,
    ) -> list[ExtractedFrame]:
        frames: list[ExtractedFrame] = []

        for request_index, timestamp in enumerate(requested):
            output_path = scratch_dir / f"frame_{request_index:04d}.jpg"
            self.runner.run(_grab_command(self.tools.ffmpeg, video_path, timestamp, config, output_path))

            if not output_path.exists():
                logger.debug("No frame produced at %.3fs for %s; skipping", timestamp, video_path)
                continue

            try:
                data = output_path.read_bytes()
            except OSError as exc:
                logger.debug("Unreadable frame %s (%s); skipping", output_path, exc)
                continue

            frames.append(
                ExtractedFrame(
                    path=output_path,
                    timestamp=timestamp,
                    index=len(frames),
                    size_bytes=len(data),
                    base64_data=base64.b64encode(data).decode("ascii"),
                )
            )

        return frames

    def _create_scratch_dir(self) -> Path:
        scratch_dir = self.scratch_root / f"{SCRATCH_PREFIX}{uuid.uuid4().hex}"
        scratch_dir.mkdir(parents=True, exist_ok=False)
        return scratch_dir


def validate_metadata(
    metadata: VideoMetadata,
    max_duration: float = DEFAULT_MAX_DURATION_SECONDS,
    *,
    min_width: int = MIN_WIDTH,
    min_height: int = MIN_HEIGHT,
) -> None:
    if metadata.duration > max_duration:
        raise VideoTooLongError(metadata.duration, max_duration)
    if metadata.width < min_width or metadata.height < min_height:
        raise ResolutionTooLowError(metadata.width, metadata.height, min_width, min_height)


def cleanup_result(result: ExtractionResult) -> None:
    """Remove the scratch directory of `result`. Never raises; safe to repeat."""

    try:
        shutil.rmtree(result.scratch_dir)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.debug("Failed to remove scratch directory %s: %s", result.scratch_dir, exc)


def frames_for_indices(
    plan: SamplingPlan,
    frames: list[ExtractedFrame],
    indices: list[int],
) -> list[ExtractedFrame]:
    """Map plan timestamp indices onto the frames that were actually extracted.

    Frames are matched by requested timestamp, so indices whose grab failed (or
    that fall outside the plan) are dropped instead of shifting onto neighbours.
    """

    by_timestamp = {frame.timestamp: frame for frame in frames}
    selected: list[ExtractedFrame] = []
    for idx in indices:
        if not 0 <= idx < len(plan.timestamps):
            continue
        frame = by_timestamp.get(plan.timestamps[idx])
        if frame is not None:
            selected.append(frame)
    return selected


def _grab_command(
    ffmpeg_path: str,
    video_path: str,
    timestamp: float,
    config: ExtractionConfig,
    output_path: Path,
) -> list[str]:
    return [
        ffmpeg_path,
        "-v",
        "error",
        "-ss",
        f"{timestamp:.3f}",
        "-i",
        video_path,
        "-frames:v",
        "1",
        "-vf",
        f"scale={config.target_width}:-1",
        "-q:v",
        str(config.quality),
        "-y",
        str(output_path),
    ]

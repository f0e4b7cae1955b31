from __future__ import annotations


class FrameSamplingError(RuntimeError):
    """Base error for probing, validation and frame extraction failures."""

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(f"{message} ({details})" if details else message)


class ToolNotFoundError(FrameSamplingError):
    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(
            f"{tool} executable was not found. Install FFmpeg so {tool} is available on PATH."
        )


class InvalidVideoFileError(FrameSamplingError):
    def __init__(self, video_path: str, stderr: str | None = None) -> None:
        self.video_path = video_path
        super().__init__(f"Invalid video file: {video_path}", (stderr or "").strip() or None)


class MetadataParsingError(FrameSamplingError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to parse video metadata: {reason}")


class VideoTooLongError(FrameSamplingError):
    def __init__(self, duration: float, max_duration: float) -> None:
        self.duration = duration
        self.max_duration = max_duration
        super().__init__(f"Video too long: {duration:.1f}s (max: {max_duration:.0f}s)")


class ResolutionTooLowError(FrameSamplingError):
    def __init__(self, width: int, height: int, min_width: int = 320, min_height: int = 240) -> None:
        self.width = width
        self.height = height
        super().__init__(
            f"Resolution too low: {width}x{height} (minimum: {min_width}x{min_height})"
        )


class NoFramesExtractedError(FrameSamplingError):
    def __init__(self, requested: int = 0) -> None:
        self.requested = requested
        super().__init__(
            "No frames were extracted from the video",
            f"{requested} timestamps attempted" if requested else None,
        )

from __future__ import annotations

import math

from argus_frames.models import (
    CustomMode,
    HighDetailMode,
    QuickMode,
    SamplingMode,
    SamplingPlan,
    Segment,
    SimpleMode,
)

SIMPLE_FPS = 1.0
SIMPLE_MAX_FRAMES = 120

QUICK_SEGMENTS = (3, 6)
QUICK_OFFSETS = (0.0, 0.33, 0.66)
QUICK_END_MARGIN_SECONDS = 0.01
QUICK_GLOBAL_FRAMES = 6

HIGH_DETAIL_SEGMENTS = (6, 12)
HIGH_DETAIL_FRAMES = (80, 180)
HIGH_DETAIL_MIN_FRAMES_PER_SEGMENT = 10
HIGH_DETAIL_GLOBAL_FRAMES = 8

CUSTOM_SEGMENT_SECONDS = 10.0
CUSTOM_GLOBAL_FRAMES = 8

SECONDS_PER_SEGMENT_HINT = 10


def create_plan(duration: float, mode: SamplingMode) -> SamplingPlan:
    """Plan which timestamps to extract for a video of `duration` seconds.

    Pure and total: a non-positive duration yields an empty timestamp list
    rather than an error.
    """

    if isinstance(mode, SimpleMode):
        return _simple_plan(duration, mode)
    if isinstance(mode, QuickMode):
        return _quick_plan(duration, mode)
    if isinstance(mode, HighDetailMode):
        return _high_detail_plan(duration, mode)
    if isinstance(mode, CustomMode):
        return _custom_plan(duration, mode)
    raise TypeError(f"Unsupported sampling mode: {mode!r}")


def parse_mode(name: str, fps: float | None = None, max_frames: int | None = None) -> SamplingMode:
    normalized = name.strip().lower().replace("-", "_")
    if normalized == "simple":
        return SimpleMode()
    if normalized == "quick":
        return QuickMode()
    if normalized in {"high_detail", "highdetail"}:
        return HighDetailMode()
    if normalized == "custom":
        if fps is None:
            raise ValueError("Custom sampling mode requires an fps value.")
        return CustomMode(fps=fps, max_frames=max_frames if max_frames is not None else SIMPLE_MAX_FRAMES)
    raise ValueError(f"Unknown sampling mode: {name!r}. Expected simple, quick, high_detail or custom.")


def select_even_indices(length: int, count: int) -> list[int]:
    """Pick `count` evenly spread indices out of `length`, always keeping first and last.

    Rounding can repeat an index when `count` is close to `length`; callers get
    the repeats as-is.
    """

    if length <= 0 or count <= 0:
        return []
    if length <= count:
        return list(range(length))
    if count == 1:
        return [0]

    step = (length - 1) / (count - 1)
    return [min(_round_half_up(i * step), length - 1) for i in range(count)]


def uniform_timestamps(duration: float, fps: float, max_frames: int, start: float = 0.0) -> list[float]:
    """Timestamps `start + i / fps` below `duration`, at most `max_frames` of them."""

    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")

    interval = 1.0 / fps
    timestamps: list[float] = []
    while len(timestamps) < max_frames:
        timestamp = start + len(timestamps) * interval
        if timestamp >= duration:
            break
        timestamps.append(timestamp)
    return timestamps


def _simple_plan(duration: float, mode: SimpleMode) -> SamplingPlan:
    timestamps = uniform_timestamps(duration, SIMPLE_FPS, SIMPLE_MAX_FRAMES)
    return SamplingPlan(
        timestamps=timestamps,
        global_pass_indices=list(range(len(timestamps))),
        segments=[],
        duration=duration,
        mode=mode,
    )


def _quick_plan(duration: float, mode: QuickMode) -> SamplingPlan:
    if duration <= 0:
        return _empty_segmented_plan(duration, mode)

    bounds = _segment_bounds(duration, _clamp(int(duration / SECONDS_PER_SEGMENT_HINT), *QUICK_SEGMENTS))
    timestamps: list[float] = []
    segments: list[Segment] = []

    for seg_index, (seg_start, seg_end) in enumerate(bounds):
        seg_duration = seg_end - seg_start
        candidates = [seg_start + seg_duration * offset for offset in QUICK_OFFSETS]
        candidates.append(seg_end - QUICK_END_MARGIN_SECONDS)
        # very short segments can push the end anchor before the earlier ones
        kept = sorted(t for t in candidates if seg_start <= t < seg_end)

        start_idx = len(timestamps)
        timestamps.extend(kept)
        segments.append(Segment(seg_index, seg_start, seg_end, list(range(start_idx, len(timestamps)))))

    return SamplingPlan(
        timestamps=timestamps,
        global_pass_indices=select_even_indices(len(timestamps), QUICK_GLOBAL_FRAMES),
        segments=segments,
        duration=duration,
        mode=mode,
    )


def _high_detail_plan(duration: float, mode: HighDetailMode) -> SamplingPlan:
    if duration <= 0:
        return _empty_segmented_plan(duration, mode)

    target_frames = _clamp(int(duration * 1.5), *HIGH_DETAIL_FRAMES)
    segment_count = _clamp(int(duration / SECONDS_PER_SEGMENT_HINT), *HIGH_DETAIL_SEGMENTS)
    frames_per_segment = max(HIGH_DETAIL_MIN_FRAMES_PER_SEGMENT, target_frames // segment_count)

    timestamps: list[float] = []
    segments: list[Segment] = []

    for seg_index, (seg_start, seg_end) in enumerate(_segment_bounds(duration, segment_count)):
        segment_fps = frames_per_segment / (seg_end - seg_start)
        # float drift must not squeeze an extra frame in at the segment end
        budget = min(frames_per_segment, max(target_frames - len(timestamps), 0))
        seg_timestamps = uniform_timestamps(seg_end, segment_fps, budget, start=seg_start)

        start_idx = len(timestamps)
        timestamps.extend(seg_timestamps)
        segments.append(Segment(seg_index, seg_start, seg_end, list(range(start_idx, len(timestamps)))))

    return SamplingPlan(
        timestamps=timestamps,
        global_pass_indices=select_even_indices(len(timestamps), HIGH_DETAIL_GLOBAL_FRAMES),
        segments=segments,
        duration=duration,
        mode=mode,
    )


def _custom_plan(duration: float, mode: CustomMode) -> SamplingPlan:
    if duration <= 0:
        return _empty_segmented_plan(duration, mode)

    timestamps = uniform_timestamps(duration, mode.fps, mode.max_frames)
    segment_count = max(1, math.ceil(duration / CUSTOM_SEGMENT_SECONDS))

    segments: list[Segment] = []
    for seg_index in range(segment_count):
        seg_start = seg_index * CUSTOM_SEGMENT_SECONDS
        seg_end = duration if seg_index == segment_count - 1 else min(seg_start + CUSTOM_SEGMENT_SECONDS, duration)
        frame_indices = [idx for idx, t in enumerate(timestamps) if seg_start <= t < seg_end]
        segments.append(Segment(seg_index, seg_start, seg_end, frame_indices))

    return SamplingPlan(
        timestamps=timestamps,
        global_pass_indices=select_even_indices(len(timestamps), CUSTOM_GLOBAL_FRAMES),
        segments=segments,
        duration=duration,
        mode=mode,
    )


def _empty_segmented_plan(duration: float, mode: SamplingMode) -> SamplingPlan:
    return SamplingPlan(
        timestamps=[],
        global_pass_indices=[],
        segments=[Segment(0, 0.0, 0.0, [])],
        duration=duration,
        mode=mode,
    )


def _segment_bounds(duration: float, segment_count: int) -> list[tuple[float, float]]:
    segment_duration = duration / segment_count
    bounds: list[tuple[float, float]] = []
    for seg_index in range(segment_count):
        seg_start = seg_index * segment_duration
        seg_end = duration if seg_index == segment_count - 1 else (seg_index + 1) * segment_duration
        bounds.append((seg_start, seg_end))
    return bounds


def _clamp(value: int, lower: int, upper: int) -> int:
    return min(upper, max(lower, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

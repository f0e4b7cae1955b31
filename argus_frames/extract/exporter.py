from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from argus_frames.models import CustomMode, ExtractionResult, SamplingPlan, VideoMetadata

MANIFEST_NAME = "manifest.json"


def metadata_to_dict(metadata: VideoMetadata) -> dict[str, Any]:
    return {
        **asdict(metadata),
        "duration": round(metadata.duration, 3),
        "fps": round(metadata.fps, 3),
        "resolution": metadata.resolution,
    }


def plan_to_dict(plan: SamplingPlan) -> dict[str, Any]:
    mode: dict[str, Any] = {"name": plan.mode.name}
    if isinstance(plan.mode, CustomMode):
        mode.update(fps=plan.mode.fps, max_frames=plan.mode.max_frames)

    return {
        "mode": mode,
        "duration_seconds": round(plan.duration, 3),
        "frame_count": plan.frame_count,
        "estimated_cost": plan.estimated_cost,
        "timestamps": [round(t, 3) for t in plan.timestamps],
        "global_pass_indices": list(plan.global_pass_indices),
        "segments": [
            {
                "index": segment.index,
                "start_seconds": round(segment.start_time, 3),
                "end_seconds": round(segment.end_time, 3),
                "duration_seconds": round(segment.duration, 3),
                "frame_indices": list(segment.frame_indices),
            }
            for segment in plan.segments
        ],
    }


def result_to_dict(result: ExtractionResult, include_data: bool = False) -> dict[str, Any]:
    """JSON-ready view of an extraction; base64 payloads only when asked for."""

    frames: list[dict[str, Any]] = []
    for frame in result.frames:
        entry: dict[str, Any] = {
            "index": frame.index,
            "timestamp_seconds": round(frame.timestamp, 3),
            "path": str(frame.path),
            "size_bytes": frame.size_bytes,
        }
        if include_data:
            entry["base64_data"] = frame.base64_data
        frames.append(entry)

    return {
        "status": "ok",
        "scratch_dir": str(result.scratch_dir),
        "extraction_seconds": round(result.extraction_seconds, 3),
        "frame_count": len(frames),
        "total_bytes": sum(frame.size_bytes for frame in result.frames),
        "metadata": metadata_to_dict(result.metadata),
        "frames": frames,
    }


def export_manifest(result: ExtractionResult, plan: SamplingPlan | None = None) -> Path:
    """Write a manifest next to the extracted frames and return its path."""

    payload = result_to_dict(result)
    if plan is not None:
        payload["plan"] = plan_to_dict(plan)

    manifest_path = Path(result.scratch_dir) / MANIFEST_NAME
    manifest_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return manifest_path

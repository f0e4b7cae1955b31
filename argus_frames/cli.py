from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from time import perf_counter
from typing import Callable, TypeVar

import typer

from argus_frames.config import Settings, load_settings, resolve_extraction_config
from argus_frames.extract.exporter import export_manifest, metadata_to_dict, plan_to_dict, result_to_dict
from argus_frames.extract.frames import FrameExtractor, cleanup_result
from argus_frames.logging_config import configure_logging
from argus_frames.models import CustomMode, ExtractionConfig, SamplingMode, SamplingPlan
from argus_frames.sampling.planner import create_plan, parse_mode, uniform_timestamps

app = typer.Typer(help="Plan and extract sparse video frames for vision models.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_OPTION_HELP = "Path to YAML configuration file."


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _bootstrap(config_path: Path | None) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path or "defaults")
    return settings


def _build_extractor(settings: Settings) -> FrameExtractor:
    return FrameExtractor.from_settings(settings)


def _parse_timestamps(raw: str) -> list[float]:
    timestamps: list[float] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            timestamps.append(float(part))
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp {part!r}; expected seconds such as 1.5") from exc
    if not timestamps:
        raise ValueError("No timestamps given.")
    return timestamps


def _extraction_config_for(
    settings: Settings,
    preset: str | None,
    sampling_mode: SamplingMode | None,
) -> ExtractionConfig:
    """Pick the extraction preset matching the sampling mode unless one was given explicitly."""

    if preset is not None or sampling_mode is None:
        return resolve_extraction_config(settings.extraction, preset)
    if isinstance(sampling_mode, CustomMode):
        config = resolve_extraction_config(settings.extraction)
        return replace(config, max_frames=max(config.max_frames, sampling_mode.max_frames))
    return resolve_extraction_config(settings.extraction, sampling_mode.name)


def _fail(exc: Exception, label: str) -> typer.Exit:
    logger.error("%s failed: %s", label, exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


@config_app.command("show")
def show_config(
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="ARGUS_FRAMES_CONFIG",
        help=CONFIG_OPTION_HELP,
    )
) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command()
def probe(
    video_path: str,
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="ARGUS_FRAMES_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
) -> None:
    """Read video metadata with ffprobe and print it as JSON."""

    settings = _bootstrap(config_path)
    try:
        metadata = _build_extractor(settings).get_metadata(video_path)
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc, "Probe") from exc

    logger.info("Probe completed for %s", video_path)
    typer.echo(json.dumps(metadata_to_dict(metadata), indent=2))


@app.command()
def plan(
    duration: float = typer.Argument(..., help="Video duration in seconds."),
    mode: str = typer.Option("quick", help="Sampling mode: simple, quick, high_detail or custom."),
    fps: float | None = typer.Option(None, help="Sampling rate for custom mode."),
    max_frames: int | None = typer.Option(None, help="Frame cap for custom mode."),
) -> None:
    """Print the sampling plan for a duration without touching any video."""

    try:
        sampling_mode = parse_mode(mode, fps=fps, max_frames=max_frames)
    except ValueError as exc:
        raise _fail(exc, "Plan") from exc

    typer.echo(json.dumps(plan_to_dict(create_plan(duration, sampling_mode)), indent=2))


@app.command()
def extract(
    video_path: str,
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar="ARGUS_FRAMES_CONFIG",
        help=CONFIG_OPTION_HELP,
    ),
    mode: str | None = typer.Option(None, help="Sampling mode. Defaults to sampling.mode from config."),
    timestamps: str | None = typer.Option(None, help="Comma-separated timestamps in seconds; bypasses the planner."),
    fps: float | None = typer.Option(None, help="Fixed extraction rate; bypasses the planner unless --mode custom."),
    max_frames: int | None = typer.Option(None, help="Frame cap for custom mode."),
    preset: str | None = typer.Option(None, help="Extraction preset: quick, high_detail or simple."),
    include_data: bool = typer.Option(False, help="Include base64 image payloads in the JSON output."),
    manifest: bool = typer.Option(False, help="Write manifest.json into the scratch directory."),
    keep: bool = typer.Option(False, help="Keep the scratch directory instead of removing it after output."),
) -> None:
    """Probe, validate, plan and extract frames from a video, printing the result JSON."""

    settings = _bootstrap(config_path)
    resolved_video_path = Path(video_path).expanduser().resolve()
    if not resolved_video_path.exists():
        typer.echo(f"Error: Video file not found: {resolved_video_path}", err=True)
        raise typer.Exit(code=1)

    total_steps = 4
    sampling_plan: SamplingPlan | None = None

    try:
        sampling_mode: SamplingMode | None = None
        if timestamps is None and (fps is None or mode is not None):
            sampling_mode = parse_mode(
                mode or settings.sampling.mode,
                fps=fps if fps is not None else settings.sampling.custom_fps,
                max_frames=max_frames if max_frames is not None else settings.sampling.custom_max_frames,
            )
            if fps is not None and not isinstance(sampling_mode, CustomMode):
                sampling_mode = None

        config = _extraction_config_for(settings, preset, sampling_mode)
        extractor = _build_extractor(settings)

        metadata = _run_with_progress(1, total_steps, "Probe video", lambda: extractor.get_metadata(resolved_video_path))

        if settings.validation.enabled:
            _run_with_progress(
                2,
                total_steps,
                "Validate video",
                lambda: extractor.validate(
                    metadata,
                    settings.validation.max_duration_seconds,
                    min_width=settings.validation.min_width,
                    min_height=settings.validation.min_height,
                ),
            )
        else:
            typer.echo(f"[2/{total_steps}] Validate video skipped", err=True)

        if timestamps is not None:
            requested = _parse_timestamps(timestamps)
        elif sampling_mode is None:
            requested = uniform_timestamps(metadata.duration, fps, config.max_frames)
        else:
            planned_mode = sampling_mode
            sampling_plan = _run_with_progress(
                3,
                total_steps,
                "Plan timestamps",
                lambda: create_plan(metadata.duration, planned_mode),
            )
            requested = sampling_plan.timestamps

        if sampling_plan is None:
            typer.echo(f"[3/{total_steps}] Plan timestamps: {len(requested)} explicit", err=True)

        result = _run_with_progress(
            4,
            total_steps,
            "Extract frames",
            lambda: extractor.extract_frames(resolved_video_path, requested, config),
        )
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc, "Extraction") from exc

    try:
        payload = result_to_dict(result, include_data=include_data)
        if sampling_plan is not None:
            payload["plan"] = plan_to_dict(sampling_plan)
        if manifest:
            payload["manifest_path"] = str(export_manifest(result, sampling_plan))
        payload["kept"] = keep
        typer.echo(json.dumps(payload, indent=2))
    finally:
        if not keep:
            cleanup_result(result)


def main() -> None:
    app()


if __name__ == "__main__":
    main()

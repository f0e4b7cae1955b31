from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from argus_frames.models import ExtractionConfig

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "ARGUS_FRAMES_"


class ToolSettings(BaseModel):
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    timeout_seconds: float | None = None


class ExtractionSettings(BaseModel):
    preset: str = "quick"
    target_width: int | None = None
    quality: int | None = None
    max_frames: int | None = None
    scratch_dir: Path | None = None


class ValidationSettings(BaseModel):
    enabled: bool = True
    max_duration_seconds: float = 120.0
    min_width: int = 320
    min_height: int = 240


class SamplingSettings(BaseModel):
    mode: str = "quick"
    custom_fps: float = 1.0
    custom_max_frames: int = 30


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    tools: ToolSettings = Field(default_factory=ToolSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    sampling: SamplingSettings = Field(default_factory=SamplingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides.

    A missing file at the default location falls back to built-in defaults;
    an explicitly requested file must exist.
    """

    explicit_path = config_path or os.getenv(f"{ENV_PREFIX}CONFIG")
    resolved_path = Path(explicit_path or DEFAULT_CONFIG_PATH)
    if explicit_path or resolved_path.exists():
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    else:
        raw_config = {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def resolve_extraction_config(settings: ExtractionSettings, preset: str | None = None) -> ExtractionConfig:
    """Start from a named preset and apply any explicit per-field overrides."""

    base = ExtractionConfig.preset(preset or settings.preset)
    return ExtractionConfig(
        target_width=settings.target_width if settings.target_width is not None else base.target_width,
        quality=settings.quality if settings.quality is not None else base.quality,
        max_frames=settings.max_frames if settings.max_frames is not None else base.max_frames,
    )


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value

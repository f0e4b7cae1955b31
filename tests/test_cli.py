from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import FAKE_TOOLS, FakeRunner, probe_payload

import argus_frames.cli as cli
from argus_frames.config import Settings
from argus_frames.errors import ToolNotFoundError
from argus_frames.extract.frames import FrameExtractor


def _patch_extractor(monkeypatch, tmp_path: Path, runner: FakeRunner) -> Path:
    scratch_root = tmp_path / "scratch"
    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())
    monkeypatch.setattr(
        cli,
        "_build_extractor",
        lambda settings: FrameExtractor(scratch_root=scratch_root, tools=FAKE_TOOLS, runner=runner),
    )
    return scratch_root


def _video(tmp_path: Path) -> Path:
    video_path = tmp_path / "demo.mp4"
    video_path.write_bytes(b"data")
    return video_path


def test_plan_command_prints_custom_plan() -> None:
    result = CliRunner().invoke(cli.app, ["plan", "100", "--mode", "custom", "--fps", "2", "--max-frames", "10"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["timestamps"] == [0.0, 0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5]
    assert payload["mode"] == {"name": "custom", "fps": 2.0, "max_frames": 10}
    assert len(payload["segments"]) == 10


def test_plan_command_rejects_unknown_mode() -> None:
    result = CliRunner().invoke(cli.app, ["plan", "60", "--mode", "motion"])

    assert result.exit_code == 1
    assert "Error: Unknown sampling mode" in result.output


def test_probe_command_prints_metadata(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner())

    result = CliRunner().invoke(cli.app, ["probe", "/videos/demo.mp4"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["resolution"] == "1280x720"
    assert payload["codec"] == "h264"


def test_probe_command_reports_missing_tool_without_traceback(monkeypatch) -> None:
    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())

    def _missing(settings: Settings) -> FrameExtractor:
        raise ToolNotFoundError("ffprobe")

    monkeypatch.setattr(cli, "_build_extractor", _missing)

    result = CliRunner().invoke(cli.app, ["probe", "/videos/demo.mp4"])

    assert result.exit_code == 1
    assert "Error: ffprobe executable was not found" in result.output
    assert "Traceback" not in result.output


def test_extract_command_runs_all_stages_and_cleans_up(tmp_path: Path, monkeypatch) -> None:
    scratch_root = _patch_extractor(monkeypatch, tmp_path, FakeRunner())

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path)), "--mode", "quick"])

    assert result.exit_code == 0
    for label in ("[1/4] Probe video", "[2/4] Validate video", "[3/4] Plan timestamps", "[4/4] Extract frames"):
        assert label in result.output
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload["frame_count"] == 24
    assert payload["plan"]["mode"]["name"] == "quick"
    assert payload["kept"] is False
    assert list(scratch_root.iterdir()) == []


def test_extract_command_with_explicit_timestamps_and_keep(tmp_path: Path, monkeypatch) -> None:
    scratch_root = _patch_extractor(monkeypatch, tmp_path, FakeRunner())

    result = CliRunner().invoke(
        cli.app,
        ["extract", str(_video(tmp_path)), "--timestamps", "0, 2.5,5", "--keep", "--manifest", "--include-data"],
    )

    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{") :])
    assert [frame["timestamp_seconds"] for frame in payload["frames"]] == [0.0, 2.5, 5.0]
    assert "base64_data" in payload["frames"][0]
    assert "plan" not in payload
    assert Path(payload["manifest_path"]).exists()
    assert len(list(scratch_root.iterdir())) == 1


def test_extract_command_fails_validation_for_long_video(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner(payload=probe_payload(duration="600")))

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path))])

    assert result.exit_code == 1
    assert "[2/4] Validate video failed" in result.output
    assert "Error: Video too long: 600.0s (max: 120s)" in result.output


def test_extract_command_reports_missing_video(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())

    result = CliRunner().invoke(cli.app, ["extract", str(tmp_path / "missing.mp4")])

    assert result.exit_code == 1
    assert "Video file not found" in result.output


def test_extract_command_reports_total_failure(tmp_path: Path, monkeypatch) -> None:
    runner = FakeRunner(failing_timestamps={"0.000", "1.000"})
    _patch_extractor(monkeypatch, tmp_path, runner)

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path)), "--timestamps", "0,1"])

    assert result.exit_code == 1
    assert "[4/4] Extract frames failed" in result.output
    assert "Error: No frames were extracted" in result.output


def test_config_show_prints_settings(monkeypatch) -> None:
    monkeypatch.setattr(cli, "_bootstrap", lambda _: Settings())

    result = CliRunner().invoke(cli.app, ["config", "show"])

    assert result.exit_code == 0
    assert json.loads(result.output)["validation"]["max_duration_seconds"] == 120.0


def test_extract_command_high_detail_keeps_every_planned_frame(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner(payload=probe_payload(duration="120")))

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path)), "--mode", "high_detail"])

    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload["plan"]["frame_count"] == 180
    assert payload["frame_count"] == payload["plan"]["frame_count"]
    assert payload["frames"][-1]["timestamp_seconds"] == payload["plan"]["timestamps"][-1]


def test_extract_command_simple_mode_uses_simple_preset(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner(payload=probe_payload(duration="120")))

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path)), "--mode", "simple"])

    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload["frame_count"] == 120


def test_extract_command_explicit_preset_still_caps_frames(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner(payload=probe_payload(duration="120")))

    result = CliRunner().invoke(
        cli.app,
        ["extract", str(_video(tmp_path)), "--mode", "high_detail", "--preset", "quick"],
    )

    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload["frame_count"] == 30


def test_extract_command_custom_mode_name_is_case_insensitive(tmp_path: Path, monkeypatch) -> None:
    runner = FakeRunner()
    _patch_extractor(monkeypatch, tmp_path, runner)

    result = CliRunner().invoke(
        cli.app,
        ["extract", str(_video(tmp_path)), "--mode", " Custom ", "--fps", "2", "--max-frames", "50"],
    )

    assert result.exit_code == 0
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload["plan"]["mode"] == {"name": "custom", "fps": 2.0, "max_frames": 50}
    assert len(payload["plan"]["segments"]) == 6
    assert payload["frame_count"] == 50


def test_extract_command_fps_without_mode_skips_planner(tmp_path: Path, monkeypatch) -> None:
    _patch_extractor(monkeypatch, tmp_path, FakeRunner(payload=probe_payload(duration="3")))

    result = CliRunner().invoke(cli.app, ["extract", str(_video(tmp_path)), "--fps", "1"])

    assert result.exit_code == 0
    assert "[3/4] Plan timestamps: 3 explicit" in result.output
    payload = json.loads(result.output[result.output.index("{") :])
    assert "plan" not in payload
    assert [frame["timestamp_seconds"] for frame in payload["frames"]] == [0.0, 1.0, 2.0]

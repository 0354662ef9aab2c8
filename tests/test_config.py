from __future__ import annotations

import json
from pathlib import Path

import pytest

from needlevis.api import build_calibration, build_seed
from needlevis.apps.analyze_video import build_arg_parser
from needlevis.config import load_analysis_config


def _write_cfg(tmp_path: Path, **overrides) -> Path:
    data = {
        "video": str(tmp_path / "Steel_1mm 2 - 20171103T101500.MP4"),
        "out_jsonl": str(tmp_path / "out" / "vis.jsonl"),
        "calibration": {"px_per_mm": 3.0, "roi_half_width_px": 40},
        "angles": {"start": 30, "stop": 40, "step": 5},
        "seed": {
            "first": {"line": [[0, 0], [10, 10]], "frame_index": 10},
            "second": {"line": [[20, 0], [10, 10]], "angle_deg": 150},
        },
    }
    data.update(overrides)
    p = tmp_path / "analysis.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    return p


def test_load_analysis_config_from_json(tmp_path: Path) -> None:
    # 说明：使用 JSON 配置来避免测试环境对 PyYAML 的依赖。
    cfg = load_analysis_config(_write_cfg(tmp_path))

    assert cfg.video.name == "Steel_1mm 2 - 20171103T101500.MP4"
    assert cfg.out_jsonl.name == "vis.jsonl"
    assert cfg.calibration.px_per_mm == 3.0
    assert cfg.calibration.width == 40
    assert cfg.angles.angles == (30.0, 35.0, 40.0)
    assert cfg.seed_first.frame_index == 10
    assert cfg.seed_first.angle_deg is None
    assert cfg.seed_second.frame_index is None
    assert cfg.seed_second.angle_deg == 150.0
    assert cfg.include_samples is False
    assert cfg.needle is None


def test_load_analysis_config_accepts_explicit_angle_list(tmp_path: Path) -> None:
    cfg = load_analysis_config(_write_cfg(tmp_path, angles=[90, 45, 60], include_samples=True))
    assert cfg.angles.angles == (90.0, 45.0, 60.0)
    assert cfg.include_samples is True


def test_load_analysis_config_rejects_bad_input(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        load_analysis_config(_write_cfg(tmp_path, seed={"first": {"line": [[0, 0], [1, 1]]}}))

    with pytest.raises(RuntimeError):
        load_analysis_config(_write_cfg(tmp_path, calibration={"pixels_per_mm": 3.0}))

    bad = tmp_path / "analysis.toml"
    bad.write_text("video = 'x'", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_analysis_config(bad)

    arr = tmp_path / "list.json"
    arr.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_analysis_config(arr)


def test_build_calibration_resolves_needle_diameter(tmp_path: Path) -> None:
    cfg = load_analysis_config(_write_cfg(tmp_path))
    # 文件名解析出 Steel_1mm -> 1.0mm。
    assert build_calibration(cfg).needle_diameter_mm == 1.0

    cfg2 = load_analysis_config(_write_cfg(tmp_path, needle="Bevel_22G"))
    assert build_calibration(cfg2).needle_diameter_mm == 0.7

    cfg3 = load_analysis_config(_write_cfg(tmp_path, needle="Bevel_22G", needle_diameter_mm=1.5))
    assert build_calibration(cfg3).needle_diameter_mm == 1.5

    cfg4 = load_analysis_config(_write_cfg(tmp_path, video=str(tmp_path / "unknown.mp4")))
    assert build_calibration(cfg4).needle_diameter_mm == 2.0


def test_build_seed_uses_lines_and_default_frames(tmp_path: Path) -> None:
    cfg = load_analysis_config(_write_cfg(tmp_path))
    seed = build_seed(cfg, frame_size=(21, 21), frame_count=100)

    # 线段靠近帧中心 (10, 10) 的一端是针尖。
    assert seed.first.tip == (10.0, 10.0)
    # role=1：90 - atan(dy/dx)，dy = 0 - 10，dx = 10 - 0。
    assert seed.first.angle_deg == pytest.approx(135.0)
    assert seed.first.frame_index == 10
    assert seed.second.angle_deg == 150.0
    assert seed.second.frame_index == 80


def test_analyze_arg_parser() -> None:
    args = build_arg_parser().parse_args(
        ["--config", "cfg.yaml", "--include-samples", "--log-level", "DEBUG", "--out-jsonl", "x.jsonl"]
    )
    assert str(args.config) == "cfg.yaml"
    assert bool(args.include_samples) is True
    assert str(args.log_level) == "DEBUG"
    assert str(args.out_jsonl).endswith("x.jsonl")


def test_load_analysis_config_logging_section(tmp_path: Path) -> None:
    default = load_analysis_config(_write_cfg(tmp_path))
    assert default.log.console_level == "INFO"
    assert default.log.file_level == "DEBUG"
    assert default.log.file is None

    cfg = load_analysis_config(
        _write_cfg(tmp_path, logging={"console_level": "warning", "file": str(tmp_path / "run.log")})
    )
    assert cfg.log.console_level == "WARNING"
    assert cfg.log.file == tmp_path / "run.log"

    with pytest.raises(RuntimeError):
        load_analysis_config(_write_cfg(tmp_path, logging={"console_level": "LOUD"}))

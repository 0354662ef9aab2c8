"""配置模型（dataclass）与 YAML/JSON 加载。

目标：
- 用 dataclass 表达分析入口所需的关键配置
- 支持从 `.yaml/.yml/.json` 加载

示例（YAML）：

    video: data/Steel_2mm 3 - 20171103T101500.MP4
    out_jsonl: data/out/steel_2mm_3.jsonl
    calibration:
      px_per_mm: 2.85
    angles: {start: 25, stop: 180, step: 5}
    logging: {console_level: INFO, file: data/out/steel_2mm_3.log}
    seed:
      first:  {line: [[120, 80], [320, 240]], frame_index: 100}
      second: {line: [[520, 80], [320, 240]], frame_index: 400}

说明：
- needle 省略时从视频文件名解析针型；needle_diameter_mm 显式给出时优先级最高。
- seed 的 angle_deg 省略时由标注线段推导；frame_index 省略时取视频 1/5 与 4/5 处。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from needlevis.logging_utils import LoggingSettings
from needlevis.models import CalibrationProfile, LineSegment, TargetAngleSet


def _load_mapping(path: Path) -> dict[str, Any]:
    path = Path(path)
    suf = path.suffix.lower()

    if suf == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    elif suf in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("PyYAML 未安装，无法读取 YAML 配置") from exc

        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    else:
        raise RuntimeError(f"不支持的配置文件类型: {path}（仅支持 .json/.yaml/.yml）")

    if not isinstance(data, dict):
        raise RuntimeError("配置文件顶层必须是对象（dict）")

    return data


def _as_path(x: Any) -> Path:
    return Path(str(x)).expanduser()


def _as_optional_path(x: Any) -> Path | None:
    if x is None:
        return None
    s = str(x).strip()
    if not s:
        return None
    return Path(s).expanduser()


def _as_optional_float(x: Any) -> float | None:
    if x is None:
        return None
    return float(x)


def _as_optional_int(x: Any) -> int | None:
    if x is None:
        return None
    return int(x)


def _as_point(x: Any, *, where: str) -> tuple[float, float]:
    if not isinstance(x, (list, tuple)) or len(x) != 2:
        raise RuntimeError(f"{where}: point must be [x, y], got {x!r}")
    return (float(x[0]), float(x[1]))


@dataclass(frozen=True)
class SeedLineConfig:
    """一个参考帧上的手动标注。

    Attributes:
        line: 针线段两个端点（帧像素坐标）。
        frame_index: 参考帧号（0 基）；None 表示使用默认参考帧。
        angle_deg: 参考角度；None 表示由线段推导。
    """

    line: LineSegment
    frame_index: int | None = None
    angle_deg: float | None = None


def _parse_seed_line(raw: Any, *, where: str) -> SeedLineConfig:
    if not isinstance(raw, dict):
        raise RuntimeError(f"config field '{where}' must be an object")
    pts = raw.get("line")
    if not isinstance(pts, (list, tuple)) or len(pts) != 2:
        raise RuntimeError(f"config field '{where}.line' must be [[x0, y0], [x1, y1]]")
    return SeedLineConfig(
        line=LineSegment(p0=_as_point(pts[0], where=f"{where}.line"), p1=_as_point(pts[1], where=f"{where}.line")),
        frame_index=_as_optional_int(raw.get("frame_index")),
        angle_deg=_as_optional_float(raw.get("angle_deg")),
    )


def _parse_calibration(raw: Any) -> CalibrationProfile:
    if raw is None:
        return CalibrationProfile()
    if not isinstance(raw, dict):
        raise RuntimeError("config field 'calibration' must be an object")

    known = {f.name for f in fields(CalibrationProfile)}
    unknown = sorted(set(raw.keys()) - known)
    if unknown:
        raise RuntimeError(f"unknown calibration field(s): {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for k, v in raw.items():
        if k == "roi_half_width_px":
            kwargs[k] = int(v)
        elif k == "search_deviation_px":
            kwargs[k] = _as_optional_int(v)
        else:
            kwargs[k] = float(v)
    return CalibrationProfile(**kwargs)


def _parse_angles(raw: Any) -> TargetAngleSet:
    if raw is None:
        return TargetAngleSet.from_range()
    if isinstance(raw, (list, tuple)):
        return TargetAngleSet.of([float(a) for a in raw])
    if isinstance(raw, dict):
        return TargetAngleSet.from_range(
            float(raw.get("start", 25.0)),
            float(raw.get("stop", 180.0)),
            float(raw.get("step", 5.0)),
        )
    raise RuntimeError("config field 'angles' must be a list or {start, stop, step}")


def _parse_logging(raw: Any) -> LoggingSettings:
    if raw is None:
        return LoggingSettings()
    if not isinstance(raw, dict):
        raise RuntimeError("config field 'logging' must be an object")
    try:
        return LoggingSettings(
            console_level=str(raw.get("console_level", "INFO")),
            file_level=str(raw.get("file_level", "DEBUG")),
            file=_as_optional_path(raw.get("file")),
        )
    except ValueError as exc:
        raise RuntimeError(f"config field 'logging': {exc}") from exc


@dataclass(frozen=True)
class AnalysisConfig:
    video: Path
    seed_first: SeedLineConfig
    seed_second: SeedLineConfig
    out_jsonl: Path = Path("data/tools_output/needle_visibility.jsonl")
    # 针型名；None 表示从视频文件名解析。
    needle: str | None = None
    # 显式针径（mm），优先于针型目录。
    needle_diameter_mm: float | None = None
    calibration: CalibrationProfile = field(default_factory=CalibrationProfile)
    angles: TargetAngleSet = field(default_factory=TargetAngleSet.from_range)
    include_samples: bool = False
    log: LoggingSettings = field(default_factory=LoggingSettings)


def load_analysis_config(path: Path) -> AnalysisConfig:
    """加载分析入口配置。"""

    data = _load_mapping(Path(path))

    if "video" not in data:
        raise RuntimeError("analysis config missing required field 'video'")

    seed = data.get("seed")
    if not isinstance(seed, dict) or "first" not in seed or "second" not in seed:
        raise RuntimeError("analysis config field 'seed' must contain 'first' and 'second'")

    needle_raw = data.get("needle")
    needle = str(needle_raw).strip() if needle_raw is not None and str(needle_raw).strip() else None

    return AnalysisConfig(
        video=_as_path(data["video"]),
        seed_first=_parse_seed_line(seed["first"], where="seed.first"),
        seed_second=_parse_seed_line(seed["second"], where="seed.second"),
        out_jsonl=_as_path(data.get("out_jsonl", "data/tools_output/needle_visibility.jsonl")),
        needle=needle,
        needle_diameter_mm=_as_optional_float(data.get("needle_diameter_mm")),
        calibration=_parse_calibration(data.get("calibration")),
        angles=_parse_angles(data.get("angles")),
        include_samples=bool(data.get("include_samples", False)),
        log=_parse_logging(data.get("logging")),
    )

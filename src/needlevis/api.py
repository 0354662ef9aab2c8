"""needlevis 对外稳定调用入口（public API）。

设计目标：
- 让其他程序以稳定的方式 `import needlevis` / `from needlevis.api import ...` 调用核心能力。
- 保持 apps/CLI 只是“参数解析 + 调用”，核心逻辑复用 `needlevis.pipeline`。

注意：
- 这里不做过度封装；优先提供少量、清晰、可组合的函数。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from needlevis.config import AnalysisConfig
from needlevis.geometry.canonical import frame_indices_for_angles
from needlevis.io.video import default_reference_frames, probe_video, read_frames
from needlevis.models import CalibrationProfile, ManualSeed, SeedReference
from needlevis.needles import needle_diameter_mm, parse_video_name
from needlevis.pipeline import PerFrameState, run_visibility_pipeline


def build_calibration(cfg: AnalysisConfig, video_name: str | Path | None = None) -> CalibrationProfile:
    """按配置与视频文件名确定本次运行的标定参数。

    针径优先级：配置里的 needle_diameter_mm > 针型目录（needle 或文件名解析） > calibration 默认值。

    Args:
        cfg: 分析配置。
        video_name: 视频文件名（用于解析针型）；为 None 时使用 cfg.video。

    Returns:
        CalibrationProfile。
    """

    base = cfg.calibration
    if cfg.needle_diameter_mm is not None:
        return base.with_needle_diameter(float(cfg.needle_diameter_mm))

    needle = cfg.needle
    if needle is None:
        needle = parse_video_name(video_name if video_name is not None else cfg.video).needle

    return base.with_needle_diameter(needle_diameter_mm(needle, base.needle_diameter_mm))


def build_seed(
    cfg: AnalysisConfig,
    *,
    frame_size: tuple[int, int],
    frame_count: int,
) -> ManualSeed:
    """由配置里的两条标注线段构造手动种子。

    Args:
        cfg: 分析配置。
        frame_size: 帧尺寸 (width, height)，用于判定线段哪一端是针尖。
        frame_count: 视频总帧数；标注未给出帧号时取默认参考帧（1/5 与 4/5 处）。

    Raises:
        CalibrationInconsistencyError: 两个参考角度相同。
    """

    default_first, default_second = default_reference_frames(frame_count)
    refs = []
    for role, line_cfg, default_frame in (
        (1, cfg.seed_first, default_first),
        (2, cfg.seed_second, default_second),
    ):
        refs.append(
            SeedReference.from_segment(
                segment=line_cfg.line,
                role=role,
                frame_index=line_cfg.frame_index if line_cfg.frame_index is not None else default_frame,
                frame_size=frame_size,
                angle_deg=line_cfg.angle_deg,
            )
        )
    return ManualSeed(first=refs[0], second=refs[1])


def iter_visibility_from_video(
    cfg: AnalysisConfig,
    *,
    logger: logging.Logger | None = None,
) -> Iterator[PerFrameState]:
    """从视频读取目标帧并输出逐角度可见性结果。

    这是应用 `needlevis.apps.analyze_video` 的“可复用库接口”。

    Args:
        cfg: 分析配置。
        logger: 可选 logger。

    Yields:
        每个目标角度一个 PerFrameState（与 cfg.angles 同序）。
    """

    if logger is None:
        logger = logging.getLogger("needlevis")

    video = Path(cfg.video)
    info = probe_video(video)
    calibration = build_calibration(cfg, video.name)
    seed = build_seed(cfg, frame_size=info.frame_size, frame_count=info.frame_count)

    logger.info(
        "video=%s frames=%d fps=%.2f size=%dx%d needle_d=%.2fmm seed=(%.1f deg @ %d, %.1f deg @ %d)",
        video.name,
        info.frame_count,
        info.fps,
        info.width,
        info.height,
        calibration.needle_diameter_mm,
        seed.first.angle_deg,
        seed.first.frame_index,
        seed.second.angle_deg,
        seed.second.frame_index,
    )

    indices = frame_indices_for_angles(seed, cfg.angles)
    return run_visibility_pipeline(
        frames=read_frames(video, indices),
        seed=seed,
        angles=cfg.angles,
        calibration=calibration,
        logger=logger,
    )

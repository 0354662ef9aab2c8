"""可见性流水线核心：规范化 -> 增强 -> 线拟合 -> 针尖跟踪 -> 采样 -> CNR。

本模块只依赖三类输入：
- frames：迭代器，按目标角度顺序产出灰度帧（取不到的帧为 None）
- seed / angles：手动种子与目标角度序列
- calibration：标定参数

输出为逐角度的 PerFrameState，可通过 `to_record()` 转成 JSON 记录。

说明：
- 角度必须严格按顺序处理：针尖搜索窗口依赖前几个角度的针尖位置。
- 单个角度的失败（NeedleVisError）只记录在该角度的结果里，不中断后续角度。
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

import numpy as np

from needlevis.errors import FailureKind, GeometryOutOfBoundsError, NeedleVisError
from needlevis.geometry.canonical import GlobalCoordinateSystem, frame_index_for_angle
from needlevis.geometry.roi import FrameGeometry, prepare_frame
from needlevis.models import CalibrationProfile, FrameFailure, ManualSeed, TargetAngleSet
from needlevis.pipeline.state import PerFrameState, PipelineState
from needlevis.sampling.cnr import compute_cnr, extract_samples
from needlevis.sampling.placement import place_samples
from needlevis.search.filtering import LocationBias
from needlevis.search.line_fit import extract_line_fit
from needlevis.search.tip_tracker import track_tip

_MISSING = object()


def process_roi(
    *,
    roi: np.ndarray,
    calibration: CalibrationProfile,
    state: PipelineState,
    index: int = 0,
    angle_deg: float = 0.0,
    frame_index: int = -1,
    geometry: FrameGeometry | None = None,
    bias: LocationBias | None = None,
    logger: logging.Logger | None = None,
) -> PerFrameState:
    """对一个已规范化的 ROI 执行增强、拟合、跟踪与 CNR 计算。

    Args:
        roi: 原始 ROI，形状 (2*width+1, 4*width+1)。
        calibration: 标定参数。
        state: 跨角度跟踪状态；跟踪到针尖后会被更新。
        index: 角度序号（0 基）。
        angle_deg: 目标角度。
        frame_index: 源视频帧号。
        geometry: 几何结果（可选，仅用于输出记录）。
        bias: 位置先验；为 None 时由标定构造。
        logger: 可选 logger。

    Returns:
        PerFrameState；失败时 failure 非空且保留已完成步骤的结果。
    """

    if logger is None:
        logger = logging.getLogger(__name__)
    if bias is None:
        bias = LocationBias.from_calibration(calibration)

    parts: dict[str, Any] = {
        "index": int(index),
        "angle_deg": float(angle_deg),
        "frame_index": int(frame_index),
        "geometry": geometry,
    }

    try:
        y_est = state.row_estimate(calibration.width)
        filtered = bias.apply(roi, y_est)
        parts["filtered_roi"] = filtered

        fit, peaks = extract_line_fit(filtered, fallback_row=y_est, logger=logger)
        parts["fit"] = fit
        parts["peaks"] = peaks

        track = track_tip(filtered, fit, state.tip_history, calibration, logger=logger)
        state.record_tip(track.x, track.y)
        parts["tip"] = (track.x, track.y)
        parts["tip_low_confidence"] = track.low_confidence
        parts["search_window"] = track.window

        rects = place_samples(
            tip=(track.x, track.y),
            fit=fit,
            profile=track.profile,
            calibration=calibration,
            roi_shape=(int(filtered.shape[0]), int(filtered.shape[1])),
            logger=logger,
        )
        parts["rects"] = rects

        samples = extract_samples(roi, fit, rects)
        parts["samples"] = samples
        parts["cnr"] = compute_cnr(samples)
    except NeedleVisError as exc:
        logger.warning("angle %.1f deg (frame %d): %s: %s", float(angle_deg), int(frame_index), exc.kind.value, exc)
        parts["failure"] = FrameFailure(kind=exc.kind, message=str(exc))

    return PerFrameState(**parts)


def run_visibility_pipeline(
    *,
    frames: Iterable[np.ndarray | None],
    seed: ManualSeed,
    angles: TargetAngleSet,
    calibration: CalibrationProfile,
    logger: logging.Logger | None = None,
) -> Iterator[PerFrameState]:
    """对一段视频的目标帧运行端到端可见性流水线。

    Args:
        frames: 与 angles 一一对应的灰度帧（顺序一致）；None 表示该帧不可用。
        seed: 手动种子。
        angles: 目标角度序列（顺序即跟踪顺序）。
        calibration: 标定参数。
        logger: 可选 logger。

    Yields:
        每个目标角度一个 PerFrameState（与 angles 同序）。

    Raises:
        ValueError: frames 数量与 angles 不一致。
    """

    if logger is None:
        logger = logging.getLogger(__name__)

    gcs = GlobalCoordinateSystem.from_seed(seed)
    bias = LocationBias.from_calibration(calibration)
    state = PipelineState()
    width = calibration.width

    it = iter(frames)
    for i, angle in enumerate(angles):
        frame = next(it, _MISSING)
        if frame is _MISSING:
            raise ValueError(f"frames exhausted after {i} of {len(angles)} angles")

        frame_index = frame_index_for_angle(seed, angle)
        if frame is None:
            msg = f"frame {frame_index} not available"
            logger.warning("angle %.1f deg: %s", float(angle), msg)
            yield PerFrameState(
                index=i,
                angle_deg=float(angle),
                frame_index=frame_index,
                failure=FrameFailure(kind=FailureKind.GEOMETRY_OUT_OF_BOUNDS, message=msg),
            )
            continue

        try:
            geometry = prepare_frame(gcs=gcs, frame=np.asarray(frame), angle_deg=angle, width=width)
        except GeometryOutOfBoundsError as exc:
            logger.warning("angle %.1f deg (frame %d): %s", float(angle), frame_index, exc)
            yield PerFrameState(
                index=i,
                angle_deg=float(angle),
                frame_index=frame_index,
                failure=FrameFailure(kind=exc.kind, message=str(exc)),
            )
            continue

        result = process_roi(
            roi=geometry.roi,
            calibration=calibration,
            state=state,
            index=i,
            angle_deg=angle,
            frame_index=frame_index,
            geometry=geometry,
            bias=bias,
            logger=logger,
        )
        if result.ok:
            logger.debug(
                "angle %.1f deg (frame %d): tip=%s cnr_tip=%.3f cnr_shaft=%.3f",
                float(angle),
                frame_index,
                result.tip,
                float(result.cnr_tip or 0.0),
                float(result.cnr_shaft or 0.0),
            )
        yield result

    if next(it, _MISSING) is not _MISSING:
        raise ValueError(f"more frames than target angles ({len(angles)})")

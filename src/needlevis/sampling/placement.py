"""由针尖与拟合线推导四个采样框（ROI 坐标）。

说明：
- 所有水平长度都乘以 cos(slope)，让倾斜拟合线下的样本沿针方向保持标定长度；
  当前只用 0 阶拟合，slope 恒为 0。
- 前景框高度为针径，以拟合线为中心（上方 d//2 行）；背景框位于前景框正上方，
  中间隔 fg_bg_gap 行。
- 针杆前景框：在针尖框右侧、不超过 needle_length 的范围内找最亮窗口（避开针夹）。
- 超出 ROI 右边界的框在水平方向截断（debug 日志）；垂直越界或截断后为空则报错。
"""

from __future__ import annotations

import logging
import math

import numpy as np

from needlevis.errors import CalibrationInconsistencyError
from needlevis.models import CalibrationProfile, LineFit, Rect, SampleRects, round_half_away
from needlevis.search.window import best_window


def _clamp_rect(rect: Rect, *, roi_shape: tuple[int, int], name: str, logger: logging.Logger | None) -> Rect:
    n_rows, n_cols = int(roi_shape[0]), int(roi_shape[1])

    if rect.y0 < 0 or rect.y1 > n_rows:
        raise CalibrationInconsistencyError(
            f"{name} rows {rect.y0}:{rect.y1} outside ROI height {n_rows}"
        )

    x0 = max(int(rect.x0), 0)
    x1 = min(int(rect.x1), n_cols)
    if x1 <= x0:
        raise CalibrationInconsistencyError(f"{name} columns {rect.x0}:{rect.x1} outside ROI width {n_cols}")

    if (x0, x1) != (rect.x0, rect.x1) and logger is not None:
        logger.debug("%s clipped horizontally: %d:%d -> %d:%d", name, rect.x0, rect.x1, x0, x1)
    return Rect(x0=x0, y0=int(rect.y0), width=x1 - x0, height=int(rect.height))


def place_samples(
    *,
    tip: tuple[int, int],
    fit: LineFit,
    profile: np.ndarray,
    calibration: CalibrationProfile,
    roi_shape: tuple[int, int],
    logger: logging.Logger | None = None,
) -> SampleRects:
    """计算 FG-tip / FG-shaft / BG-tip / BG-shaft 四个采样框。

    Args:
        tip: 针尖 (x, y)，ROI 坐标。
        fit: 针线拟合。
        profile: 沿拟合线的像素带（未加惩罚），用于定位针杆前景框。
        calibration: 标定参数。
        roi_shape: ROI 形状 (rows, cols)。
        logger: 可选 logger。

    Raises:
        CalibrationInconsistencyError: 采样框无法放进 ROI。
    """

    n_rows, n_cols = int(roi_shape[0]), int(roi_shape[1])
    tip_x, tip_y = int(tip[0]), int(tip[1])

    d = calibration.needle_diameter_px
    bg_w = calibration.bg_width_px
    gap = calibration.fg_bg_gap_px
    half = d // 2

    cos_s = math.cos(fit.slope(n_cols))
    tip_dx = max(1, round_half_away(calibration.tip_length_px * cos_s))
    shaft_dx = max(1, round_half_away(calibration.shaft_length_px * cos_s))
    bg_shaft_dx = max(1, round_half_away(calibration.bg_shaft_length_px * cos_s))

    fg_tip = Rect(x0=tip_x, y0=tip_y - half, width=tip_dx, height=d)
    bg_tip = Rect(x0=tip_x, y0=fg_tip.y0 - gap - bg_w, width=tip_dx, height=bg_w)

    # 针杆：从针尖框右侧开始，最多 needle_length，避开 ROI 末端可能出现的针夹。
    s0 = tip_x + tip_dx
    if s0 >= n_cols:
        raise CalibrationInconsistencyError(f"no room for shaft sample: tip sample ends at column {s0} of {n_cols}")
    s1 = min(s0 + calibration.needle_length_px, n_cols)
    hit = best_window(np.asarray(profile)[:, s0:s1], shaft_dx)
    if not hit.found and logger is not None:
        logger.debug("shaft search found no bright window in columns %d:%d", s0, s1)

    fs_x0 = s0 + hit.offset
    fg_shaft = Rect(x0=fs_x0, y0=fit.row_at(fs_x0) - half, width=shaft_dx, height=d)
    bg_shaft = Rect(x0=fs_x0, y0=fg_shaft.y0 - gap - bg_w, width=bg_shaft_dx, height=bg_w)

    shape = (n_rows, n_cols)
    return SampleRects(
        fg_tip=_clamp_rect(fg_tip, roi_shape=shape, name="fg_tip", logger=logger),
        fg_shaft=_clamp_rect(fg_shaft, roi_shape=shape, name="fg_shaft", logger=logger),
        bg_tip=_clamp_rect(bg_tip, roi_shape=shape, name="bg_tip", logger=logger),
        bg_shaft=_clamp_rect(bg_shaft, roi_shape=shape, name="bg_shaft", logger=logger),
    )

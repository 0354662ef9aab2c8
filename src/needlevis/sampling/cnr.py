"""在原始（未增强）ROI 上取样并计算 CNR。

CNR = |mean(FG) - mean(BG)| / std(BG)
- BG 为针尖背景与针杆背景横向拼接后的全部像素；
- std 为样本标准差（ddof=1）。
"""

from __future__ import annotations

import math

import numpy as np

from needlevis.errors import DegenerateBackgroundError
from needlevis.models import CnrResult, CnrSamples, LineFit, Rect, SampleRects
from needlevis.search.bands import take_band


def _sample(roi: np.ndarray, fit: LineFit, rect: Rect) -> np.ndarray:
    # 行跟随拟合线；对 0 阶拟合即矩形本身。
    top = int(rect.y0) - fit.row_at(rect.x0)
    return take_band(roi, fit, col_start=rect.x0, col_stop=rect.x1, top_offset=top, height=rect.height)


def extract_samples(roi: np.ndarray, fit: LineFit, rects: SampleRects) -> CnrSamples:
    """按采样框从原始 ROI 中取像素。"""

    bg_tip = _sample(roi, fit, rects.bg_tip)
    bg_shaft = _sample(roi, fit, rects.bg_shaft)
    return CnrSamples(
        fg_tip=_sample(roi, fit, rects.fg_tip),
        fg_shaft=_sample(roi, fit, rects.fg_shaft),
        bg=np.hstack([bg_tip, bg_shaft]),
    )


def compute_cnr(samples: CnrSamples) -> CnrResult:
    """计算针尖/针杆 CNR。

    Raises:
        DegenerateBackgroundError: 背景像素少于 2 个，或背景标准差为 0/非有限值。
    """

    bg = np.asarray(samples.bg, dtype=np.float64).ravel()
    if bg.size < 2:
        raise DegenerateBackgroundError(f"background sample has {bg.size} pixel(s); need at least 2")

    bg_mean = float(np.mean(bg))
    bg_std = float(np.std(bg, ddof=1))
    if not math.isfinite(bg_std) or bg_std <= 0.0:
        raise DegenerateBackgroundError(f"background std is {bg_std}; CNR undefined")

    fg_tip_mean = float(np.mean(np.asarray(samples.fg_tip, dtype=np.float64)))
    fg_shaft_mean = float(np.mean(np.asarray(samples.fg_shaft, dtype=np.float64)))

    return CnrResult(
        cnr_tip=abs(fg_tip_mean - bg_mean) / bg_std,
        cnr_shaft=abs(fg_shaft_mean - bg_mean) / bg_std,
        fg_tip_mean=fg_tip_mean,
        fg_shaft_mean=fg_shaft_mean,
        bg_mean=bg_mean,
        bg_std=bg_std,
    )

"""沿拟合针线搜索针尖。

流程：
1) 在增强 ROI 上沿拟合线取高度为针径的像素带（逐列，行跟随拟合线）；
2) 乘以方向惩罚（左侧权重高：规范化后针尖朝左）；
3) 按历史针尖位置收窄搜索窗口；
4) 窗口内滑动平均最亮的位置即针尖列，行由拟合线给出。

搜索窗口策略（依赖角度顺序）：
- 尚无历史：整条像素带；
- 历史不足 3 个：覆盖全部历史针尖的 [min - 2*L, max + 2*L]；
- 否则：只看最近 3 个针尖。
L 为针尖样本长度（px）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from needlevis.models import CalibrationProfile, LineFit
from needlevis.search.bands import take_band
from needlevis.search.window import best_window

HISTORY_DEPTH = 3


def directional_penalty(n_cols: int, n_rows: int) -> np.ndarray:
    """线性惩罚：列 c < n_rows 处为 (n_rows - c) / n_rows，其余为 0。"""

    p = np.zeros(int(n_cols), dtype=np.float64)
    k = min(int(n_rows), int(n_cols))
    c = np.arange(k, dtype=np.float64)
    p[:k] = (float(n_rows) - c) / float(n_rows)
    return p


@dataclass(frozen=True)
class SearchWindow:
    """像素带上的列区间 [start, stop)。"""

    start: int
    stop: int

    @property
    def size(self) -> int:
        return max(0, self.stop - self.start)


def search_window(history: Sequence[int], *, tip_length: int, n_cols: int) -> SearchWindow:
    """由历史针尖列决定本次搜索区间（已裁剪到 [0, n_cols)）。"""

    n = int(n_cols)
    if not history:
        return SearchWindow(0, n)

    recent = list(history) if len(history) < HISTORY_DEPTH else list(history)[-HISTORY_DEPTH:]
    margin = 2 * int(tip_length)
    lo = min(int(x) for x in recent) - margin
    hi = max(int(x) for x in recent) + margin

    start = min(max(lo, 0), n)
    stop = max(min(hi + 1, n), start)
    return SearchWindow(start, stop)


@dataclass(frozen=True, eq=False)
class TipTrack:
    """针尖搜索结果。

    Attributes:
        x: 针尖列（ROI 坐标）。
        y: 针尖行（拟合线在 x 处的取值）。
        window: 实际使用的搜索区间。
        mean: 最亮窗口的平均值（已乘惩罚）。
        low_confidence: 搜索区间内没有均值为正的窗口，x 退回区间起点。
        profile: 未加惩罚的像素带，形状 (needle_diameter_px, n_cols)；针杆样本定位复用。
    """

    x: int
    y: int
    window: SearchWindow
    mean: float
    low_confidence: bool
    profile: np.ndarray


def line_profile(filtered: np.ndarray, fit: LineFit, *, diameter: int) -> np.ndarray:
    """沿拟合线取高度为 diameter 的像素带（覆盖 ROI 全部列）。"""

    d = int(diameter)
    return take_band(
        filtered,
        fit,
        col_start=0,
        col_stop=int(np.asarray(filtered).shape[1]),
        top_offset=-(d // 2),
        height=d,
    )


def track_tip(
    filtered: np.ndarray,
    fit: LineFit,
    history: Sequence[int],
    calibration: CalibrationProfile,
    *,
    logger: logging.Logger | None = None,
) -> TipTrack:
    """在增强 ROI 上定位针尖。"""

    img = np.asarray(filtered, dtype=np.float64)
    n_rows, n_cols = img.shape

    profile = line_profile(img, fit, diameter=calibration.needle_diameter_px)
    penalized = profile * directional_penalty(n_cols, n_rows)[None, :]

    tip_len = calibration.tip_length_px
    win = search_window(history, tip_length=tip_len, n_cols=n_cols)
    hit = best_window(penalized[:, win.start : win.stop], tip_len)

    x = win.start + hit.offset
    low_confidence = not hit.found
    if low_confidence and logger is not None:
        logger.warning(
            "tip search found no bright window in columns %d:%d; using column %d",
            win.start,
            win.stop,
            x,
        )

    return TipTrack(
        x=int(x),
        y=fit.row_at(x),
        window=win,
        mean=float(hit.mean),
        low_confidence=bool(low_confidence),
        profile=profile,
    )
